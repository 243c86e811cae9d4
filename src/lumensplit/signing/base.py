"""Base interfaces for transaction signing.

Signing flow:
1. Connect: availability check, access grant, address retrieval
2. Build transaction (prepared or not, depending on backend)
3. Hand the envelope XDR to the signer with the network context
4. Signer returns a signed envelope XDR (never key material)
5. Submitter reconstructs the envelope and broadcasts it

Each backend normalises its own response shapes inside ``sign``; nothing
outside this package branches on which backend is active.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from lumensplit.errors import SignerError, SignerRejected, SignerUnavailable

logger = logging.getLogger(__name__)


class SignerType(str, Enum):
    """Type of signing backend."""
    EXTENSION = "extension"     # Browser wallet extension (via bridge)
    WEB_INTENT = "web_intent"   # External signing page/service
    LOCAL = "local"             # Secret key in memory (development)


@dataclass(frozen=True)
class SigningRequest:
    """Request to sign a transaction envelope.

    Attributes:
        envelope_xdr: Base64 transaction envelope to sign
        network_passphrase: Network passphrase the signature commits to
        network: Network label as the signer expects it (e.g. TESTNET)
        address: Account expected to sign
    """
    envelope_xdr: str
    network_passphrase: str
    network: str
    address: str


class SignerBackend(ABC):
    """Abstract base class for signing backends.

    ``requires_prepared`` tells the submitter whether the envelope must be
    run through resource preparation before it is handed to ``sign``.
    """

    requires_prepared: bool = True

    def __init__(self, signer_type: SignerType):
        self.signer_type = signer_type
        self._address: str = ""

    @property
    def address(self) -> str:
        """Address obtained by the last successful ``connect``."""
        return self._address

    @abstractmethod
    async def is_available(self) -> bool:
        """Probe whether the backend can be reached at all."""
        pass

    @abstractmethod
    async def connect(self) -> str:
        """Obtain access and return the account address.

        Raises:
            SignerUnavailable: backend missing or access refused
        """
        pass

    @abstractmethod
    async def sign(self, request: SigningRequest) -> str:
        """Sign an envelope and return the signed envelope XDR.

        Raises:
            SignerUnavailable: backend not connected or unreachable
            SignerRejected: user declined, backend error, malformed response
        """
        pass

    async def health_check(self) -> bool:
        """Check if the signing backend is available."""
        try:
            return await self.is_available()
        except SignerError:
            return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.signer_type.value})"


__all__ = [
    "SignerBackend",
    "SignerType",
    "SigningRequest",
    "SignerError",
    "SignerRejected",
    "SignerUnavailable",
]
