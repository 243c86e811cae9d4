"""Horizon account-state client.

Only used to read the current sequence number (and native balance) of
the connected account, fresh before every write.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from lumensplit.errors import AccountNotFoundError, NetworkError
from lumensplit.models import AccountState

logger = logging.getLogger(__name__)


class HorizonClient:
    """Minimal Horizon REST client."""

    def __init__(
        self,
        horizon_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.horizon_url = horizon_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def load_account(self, account_id: str) -> AccountState:
        """Load current account state.

        Raises:
            AccountNotFoundError: the account does not exist on the network
            NetworkError: on any other transport or payload failure
        """
        url = f"{self.horizon_url}/accounts/{account_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    raise AccountNotFoundError(f"Account not found: {account_id}")
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to load account {account_id}: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Account response for {account_id} is not JSON") from e

        try:
            sequence = int(data["sequence"])
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Account response for {account_id} has no sequence") from e

        native = Decimal("0")
        for balance in data.get("balances", []):
            if balance.get("asset_type") == "native":
                try:
                    native = Decimal(str(balance.get("balance", "0")))
                except InvalidOperation:
                    logger.warning(f"Unparseable native balance for {account_id}")
                break

        return AccountState(account_id=account_id, sequence=sequence, native_balance=native)
