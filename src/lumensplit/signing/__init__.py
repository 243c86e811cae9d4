"""Transaction signing backends.

Provides interchangeable signers:
- ExtensionSigner: wallet extension, signs prepared envelopes
- WebIntentSigner: external signing service, signs unprepared envelopes
- LocalSigner: in-memory key for development
"""

from lumensplit.signing.base import (
    SignerBackend,
    SignerType,
    SigningRequest,
)
from lumensplit.signing.extension import ExtensionSigner, HttpExtensionBridge, WalletExtension
from lumensplit.signing.factory import create_signer, get_signer_type
from lumensplit.signing.local import LocalSigner
from lumensplit.signing.web_intent import WebIntentSigner

__all__ = [
    "SignerBackend",
    "SignerType",
    "SigningRequest",
    "ExtensionSigner",
    "HttpExtensionBridge",
    "WalletExtension",
    "WebIntentSigner",
    "LocalSigner",
    "create_signer",
    "get_signer_type",
]
