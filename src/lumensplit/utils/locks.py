"""Concurrency control utilities for write operations.

Provides a per-account write gate so that only one write is ever in flight
for a connected account, and a cancellation token for cooperative loops.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from lumensplit.errors import SessionBusyError

logger = logging.getLogger(__name__)

# Global lock registry: account address -> asyncio.Lock
_account_locks: dict[str, asyncio.Lock] = {}


def get_account_lock(account: str) -> asyncio.Lock:
    """Get or create the write lock for an account.

    Args:
        account: Account address

    Returns:
        asyncio.Lock for the account
    """
    if account not in _account_locks:
        _account_locks[account] = asyncio.Lock()
    return _account_locks[account]


class AccountWriteLock:
    """Context manager granting exclusive write access for an account.

    Unlike a waiting lock, a busy gate is refused immediately: the second
    write fails with SessionBusyError before it contacts any endpoint.

    Example:
        async with AccountWriteLock(address, operation="add_expense"):
            await submitter.submit(...)
    """

    def __init__(self, account: str, operation: str = "write"):
        self.account = account
        self.operation = operation
        self._lock: Optional[asyncio.Lock] = None
        self._acquired = False

    async def __aenter__(self) -> "AccountWriteLock":
        self._lock = get_account_lock(self.account)

        # No suspension point between the check and the acquire
        if self._lock.locked():
            logger.warning(f"Write refused for {self.account[:8]}..., busy: {self.operation}")
            raise SessionBusyError(
                f"A write is already in progress for {self.account}; wait for it to finish"
            )
        await self._lock.acquire()
        self._acquired = True
        logger.debug(f"Write lock acquired for {self.account[:8]}...: {self.operation}")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._acquired and self._lock and self._lock.locked():
            self._lock.release()
            logger.debug(f"Write lock released for {self.account[:8]}...: {self.operation}")
        self._acquired = False
        return False


@asynccontextmanager
async def account_write_lock(account: str, operation: str = "write"):
    """Functional form of AccountWriteLock.

    Example:
        async with account_write_lock(address, operation="register"):
            pass
    """
    async with AccountWriteLock(account, operation=operation):
        yield


def is_account_busy(account: str) -> bool:
    lock = _account_locks.get(account)
    return bool(lock and lock.locked())


def clear_account_locks() -> None:
    """Clear all account locks (useful for testing)."""
    _account_locks.clear()


class CancelToken:
    """Cooperative cancellation passed through every iteration of a loop.

    Cancelling is advisory: it stops local waiting, nothing more.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def sleep(self, delay: float) -> bool:
        """Wait up to ``delay`` seconds. Returns True if cancelled meanwhile."""
        if self.cancelled:
            return True
        if delay <= 0:
            await asyncio.sleep(0)
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
