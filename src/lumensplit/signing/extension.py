"""Extension-backed signer.

Talks to a browser wallet extension through a small local bridge. The
extension must report itself available and grant access before any
signing; it signs the prepared (simulation-annotated) envelope.

Different extension versions answer ``signTransaction`` with different
shapes: a bare XDR string, or an object carrying it under one of several
keys, or an error object. ``normalize_signed_response`` folds these into
a single XDR string.
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

import httpx

from lumensplit.signing.base import (
    SignerBackend,
    SignerRejected,
    SignerType,
    SignerUnavailable,
    SigningRequest,
)

logger = logging.getLogger(__name__)

# Keys under which extensions have returned the signed envelope
SIGNED_XDR_KEYS = ("signedTxXdr", "signedTransaction", "transaction", "result")


@runtime_checkable
class WalletExtension(Protocol):
    """Interface of the wallet extension (implemented outside this package)."""

    async def is_connected(self) -> bool:
        ...

    async def request_access(self) -> Any:
        ...

    async def get_address(self) -> Any:
        ...

    async def sign_transaction(self, xdr: str, network: str, network_passphrase: str) -> Any:
        ...


def _error_message(raw: Any) -> Optional[str]:
    if isinstance(raw, dict) and raw.get("error"):
        error = raw["error"]
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)
    return None


def normalize_signed_response(raw: Any) -> str:
    """Extract the signed envelope XDR from any known response shape.

    Raises:
        SignerRejected: the response carries an error or no envelope
    """
    if isinstance(raw, str):
        if raw.strip():
            return raw.strip()
        raise SignerRejected("Extension returned an empty signature")

    message = _error_message(raw)
    if message:
        raise SignerRejected(f"Extension declined to sign: {message}")

    if isinstance(raw, dict):
        for key in SIGNED_XDR_KEYS:
            value = raw.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

    raise SignerRejected(f"Malformed extension response: {type(raw).__name__}")


def normalize_address_response(raw: Any) -> str:
    if isinstance(raw, str):
        return raw.strip()
    if isinstance(raw, dict):
        if _error_message(raw):
            return ""
        value = raw.get("address") or raw.get("publicKey")
        if isinstance(value, str):
            return value.strip()
    return ""


class HttpExtensionBridge:
    """WalletExtension implementation over a local HTTP bridge.

    Endpoints: ``GET /status``, ``POST /access``, ``GET /address`` and
    ``POST /sign``. Bodies are passed through unmodified so the signer can
    normalise them.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _call(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, f"{self.base_url}{path}", json=json)
            response.raise_for_status()
            return response.json()

    async def is_connected(self) -> bool:
        try:
            data = await self._call("GET", "/status")
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Extension bridge not reachable: {e}")
            return False
        if isinstance(data, dict):
            return bool(data.get("isConnected"))
        return bool(data)

    async def request_access(self) -> Any:
        return await self._call("POST", "/access")

    async def get_address(self) -> Any:
        return await self._call("GET", "/address")

    async def sign_transaction(self, xdr: str, network: str, network_passphrase: str) -> Any:
        return await self._call(
            "POST",
            "/sign",
            json={"xdr": xdr, "network": network, "networkPassphrase": network_passphrase},
        )


class ExtensionSigner(SignerBackend):
    """Signer backed by a wallet extension."""

    requires_prepared = True

    def __init__(self, extension: WalletExtension):
        super().__init__(SignerType.EXTENSION)
        self.extension = extension
        self._access_granted = False

    async def is_available(self) -> bool:
        return bool(await self.extension.is_connected())

    async def connect(self) -> str:
        if not await self.is_available():
            raise SignerUnavailable("Wallet extension not found")

        try:
            access = await self.extension.request_access()
            address = normalize_address_response(access) or normalize_address_response(
                await self.extension.get_address()
            )
        except Exception as e:
            raise SignerUnavailable(f"Extension access request failed: {e}") from e

        if not address:
            raise SignerUnavailable("Extension did not grant access to an account")

        self._access_granted = True
        self._address = address
        logger.info(f"Extension signer connected for {address[:8]}...")
        return address

    async def sign(self, request: SigningRequest) -> str:
        if not self._access_granted:
            raise SignerUnavailable("Extension access has not been granted")

        try:
            raw = await self.extension.sign_transaction(
                request.envelope_xdr,
                request.network,
                request.network_passphrase,
            )
        except Exception as e:
            raise SignerRejected(f"Extension signing failed: {e}") from e

        return normalize_signed_response(raw)
