"""Confirmation polling for submitted transactions.

Each attempt asks the primary status path (direct JSON-RPC query) and,
only if that errors, the secondary SDK path. If both fail the attempt is
inconclusive and counts as pending. The first definitive status from
either path wins; disagreement between paths is not reconciled.

Running out of attempts raises ConfirmationTimeout, which means "unknown",
not "failed".
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from lumensplit.errors import ConfirmationTimeout, OnChainFailure, WriteCancelled
from lumensplit.utils.locks import CancelToken

logger = logging.getLogger(__name__)

StatusSource = Callable[[str], Awaitable[str]]


class TxStatus(str, Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "TxStatus":
        """Map a remote status string; anything non-final is pending."""
        value = str(raw or "").strip().upper()
        if value == cls.SUCCESS.value:
            return cls.SUCCESS
        if value == cls.FAILED.value:
            return cls.FAILED
        # PENDING, NOT_FOUND, empty
        return cls.PENDING


class ConfirmationPoller:
    """Polls until a transaction is final or the attempt bound is hit."""

    def __init__(
        self,
        primary: StatusSource,
        fallback: Optional[StatusSource] = None,
        interval: float = 0.15,
        max_attempts: int = 100,
    ):
        self.primary = primary
        self.fallback = fallback
        self.interval = interval
        self.max_attempts = max_attempts

    async def check_once(self, tx_hash: str) -> TxStatus:
        """One poll attempt across both status paths."""
        try:
            return TxStatus.parse(await self.primary(tx_hash))
        except Exception as e:
            logger.debug(f"Primary status path failed for {tx_hash}: {e}")

        if self.fallback is None:
            return TxStatus.PENDING

        try:
            return TxStatus.parse(await self.fallback(tx_hash))
        except Exception as e:
            logger.debug(f"Fallback status path failed for {tx_hash}: {e}")

        return TxStatus.PENDING

    async def wait(
        self,
        tx_hash: str,
        cancel_token: Optional[CancelToken] = None,
        on_attempt: Optional[Callable[[int, TxStatus], None]] = None,
    ) -> int:
        """Poll until SUCCESS.

        Returns:
            Number of attempts used

        Raises:
            OnChainFailure: the transaction failed on the ledger
            ConfirmationTimeout: no final status within ``max_attempts``
            WriteCancelled: the token was cancelled while waiting
        """
        token = cancel_token or CancelToken()

        for attempt in range(1, self.max_attempts + 1):
            if token.cancelled:
                raise WriteCancelled(
                    f"Stopped waiting for {tx_hash}: {token.reason}", tx_hash=tx_hash
                )

            status = await self.check_once(tx_hash)
            logger.debug(f"Poll {attempt}/{self.max_attempts} for {tx_hash}: {status.value}")
            if on_attempt:
                on_attempt(attempt, status)

            if status == TxStatus.SUCCESS:
                return attempt
            if status == TxStatus.FAILED:
                raise OnChainFailure("Transaction failed on-chain", tx_hash=tx_hash)

            if attempt < self.max_attempts and await token.sleep(self.interval):
                raise WriteCancelled(
                    f"Stopped waiting for {tx_hash}: {token.reason}", tx_hash=tx_hash
                )

        logger.warning(f"No final status for {tx_hash} after {self.max_attempts} polls")
        raise ConfirmationTimeout(
            "Confirmation timeout (check history)",
            tx_hash=tx_hash,
            attempts=self.max_attempts,
        )
