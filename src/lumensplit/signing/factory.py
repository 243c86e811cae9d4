"""Signer factory.

Creates the appropriate signing backend based on configuration. Only one
signer is active per session; switching means disconnecting and creating
a new one.
"""

import logging
from typing import Optional, Union

from lumensplit.config import Settings, get_settings
from lumensplit.signing.base import SignerBackend, SignerType

logger = logging.getLogger(__name__)


def get_signer_type(settings: Optional[Settings] = None) -> SignerType:
    """Determine which signer to use.

    Priority:
    1. SIGNER_BACKEND setting (explicit)
    2. LOCAL_SECRET_KEY present -> Local
    3. Default to the extension signer

    Returns:
        SignerType enum
    """
    settings = settings or get_settings()
    explicit = settings.signer_backend.strip().lower().replace("-", "_")

    if explicit:
        try:
            return SignerType(explicit)
        except ValueError:
            logger.warning(f"Unknown SIGNER_BACKEND '{settings.signer_backend}', auto-detecting")

    if settings.local_secret_key:
        return SignerType.LOCAL

    return SignerType.EXTENSION


def create_signer(
    signer_type: Optional[Union[SignerType, str]] = None,
    settings: Optional[Settings] = None,
) -> SignerBackend:
    """Create a fresh signer instance.

    Args:
        signer_type: Backend to create (default: from settings)
        settings: Settings to read endpoints/keys from

    Returns:
        SignerBackend instance, not yet connected
    """
    settings = settings or get_settings()
    signer_type = SignerType(signer_type) if signer_type else get_signer_type(settings)
    logger.info(f"Initializing {signer_type.value} signer")

    if signer_type == SignerType.WEB_INTENT:
        from lumensplit.signing.web_intent import WebIntentSigner
        return WebIntentSigner(settings.web_intent_url, network=settings.web_intent_network)

    if signer_type == SignerType.LOCAL:
        from lumensplit.signing.local import LocalSigner
        return LocalSigner(settings.local_secret_key)

    from lumensplit.signing.extension import ExtensionSigner, HttpExtensionBridge
    return ExtensionSigner(HttpExtensionBridge(settings.extension_bridge_url))
