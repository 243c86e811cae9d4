"""Utility modules for LumenSplit."""

from lumensplit.utils.locks import AccountWriteLock, CancelToken, get_account_lock

__all__ = ["AccountWriteLock", "CancelToken", "get_account_lock"]
