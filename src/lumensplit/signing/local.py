"""Local signing backend.

Holds a secret seed in memory. Suitable for:
- Development/testing
- Scripted use against testnet

WARNING: The secret key lives in process memory. Use a wallet backend for
accounts holding real funds.
"""

import logging
from typing import Optional

from stellar_sdk import Keypair, TransactionBuilder
from stellar_sdk.exceptions import SdkError

from lumensplit.signing.base import (
    SignerBackend,
    SignerRejected,
    SignerType,
    SignerUnavailable,
    SigningRequest,
)

logger = logging.getLogger(__name__)


class LocalSigner(SignerBackend):
    """Signing backend using an in-memory keypair.

    The secret comes from ``LOCAL_SECRET_KEY`` via settings, or is passed in.
    """

    requires_prepared = True

    def __init__(self, secret_key: Optional[str] = None):
        super().__init__(SignerType.LOCAL)
        self._keypair: Optional[Keypair] = None
        if secret_key:
            self.set_secret(secret_key)

    def set_secret(self, secret_key: str) -> None:
        """Load a secret seed, replacing any previous one."""
        try:
            self._keypair = Keypair.from_secret(secret_key)
        except (ValueError, SdkError) as e:
            raise SignerUnavailable("Invalid local secret key") from e
        logger.info(f"Loaded local key {self._keypair.public_key[:8]}...")

    async def is_available(self) -> bool:
        return self._keypair is not None

    async def connect(self) -> str:
        if self._keypair is None:
            raise SignerUnavailable("No local secret key configured")
        self._address = self._keypair.public_key
        return self._address

    async def sign(self, request: SigningRequest) -> str:
        if self._keypair is None:
            raise SignerUnavailable("No local secret key configured")
        if request.address and request.address != self._keypair.public_key:
            raise SignerRejected(
                f"Local key does not match requested signer {request.address[:8]}..."
            )

        try:
            envelope = TransactionBuilder.from_xdr(request.envelope_xdr, request.network_passphrase)
            envelope.sign(self._keypair)
        except Exception as e:
            raise SignerRejected(f"Local signing failed: {e}") from e
        return envelope.to_xdr()
