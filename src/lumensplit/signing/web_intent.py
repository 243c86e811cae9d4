"""Web-intent signer.

Delegates to an external signing service with one request/response per
intent (``public_key``, ``tx``). The service signs the unprepared envelope
and answers with ``signed_envelope_xdr``.
"""

import logging
from typing import Any, Optional

import httpx

from lumensplit.signing.base import (
    SignerBackend,
    SignerRejected,
    SignerType,
    SignerUnavailable,
    SigningRequest,
)

logger = logging.getLogger(__name__)


class WebIntentSigner(SignerBackend):
    """Signer that forwards intents to a web signing service."""

    requires_prepared = False

    def __init__(
        self,
        intent_url: str,
        network: str = "testnet",
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(SignerType.WEB_INTENT)
        self.intent_url = intent_url.rstrip("/")
        self.network = network
        self.timeout = timeout
        self._transport = transport

    async def _intent(self, intent: str, params: dict) -> dict:
        """Run one intent and return the response body.

        Raises:
            SignerUnavailable: the service cannot be reached
            SignerRejected: the user declined or the service failed
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.intent_url}/intent",
                    json={"intent": intent, **params},
                )
        except httpx.TransportError as e:
            raise SignerUnavailable(f"Intent service unreachable: {e}") from e
        except httpx.HTTPError as e:
            raise SignerRejected(f"Intent '{intent}' failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400 or not isinstance(data, dict):
            raise SignerRejected(
                f"Intent '{intent}' failed with HTTP {response.status_code}"
            )

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise SignerRejected(f"Intent '{intent}' declined: {message}")

        return data

    async def is_available(self) -> bool:
        return bool(self.intent_url)

    async def connect(self) -> str:
        if not await self.is_available():
            raise SignerUnavailable("No intent service configured")

        try:
            data = await self._intent("public_key", {})
        except SignerRejected as e:
            raise SignerUnavailable(str(e)) from e

        pubkey = data.get("pubkey")
        if not isinstance(pubkey, str) or not pubkey:
            raise SignerUnavailable("Intent service returned no public key")

        self._address = pubkey
        logger.info(f"Web-intent signer connected for {pubkey[:8]}...")
        return pubkey

    async def sign(self, request: SigningRequest) -> str:
        data = await self._intent(
            "tx",
            {
                "xdr": request.envelope_xdr,
                "network": self.network,
                "pubkey": request.address,
            },
        )
        signed: Any = data.get("signed_envelope_xdr")
        if not isinstance(signed, str) or not signed:
            raise SignerRejected("Intent service returned no signed envelope")
        return signed
