"""LumenSplit - client for the lumen_split shared-expense contract on Soroban."""

__version__ = "0.1.0"

from lumensplit.client import LumenSplitClient
from lumensplit.models import (
    AccountId,
    Activity,
    ActivityKind,
    Amount,
    Expense,
    Group,
    GroupDetail,
    Member,
    Settlement,
)
from lumensplit.transactions import WriteResult, WriteState

__all__ = [
    "LumenSplitClient",
    "AccountId",
    "Activity",
    "ActivityKind",
    "Amount",
    "Expense",
    "Group",
    "GroupDetail",
    "Member",
    "Settlement",
    "WriteResult",
    "WriteState",
]
