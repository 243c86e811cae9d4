"""Domain entities.

Everything here is a read-only snapshot of remote state. Nothing is ever
patched in place: a refresh replaces whole objects.
"""

from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from enum import IntEnum
from typing import Optional, Union

from stellar_sdk import Address

from lumensplit.errors import CodecError

# 1 unit = 10^7 minor units (stroops)
AMOUNT_DECIMALS = 7
AMOUNT_SCALE = 10**AMOUNT_DECIMALS

I128_MIN = -(2**127)
I128_MAX = 2**127 - 1


def short_address(address: str) -> str:
    """Shortened form of an account id used as a fallback display name."""
    if not address:
        return ""
    return f"{address[:8]}...{address[-6:]}"


@dataclass(frozen=True)
class AccountId:
    """Validated ledger account identifier (G... account or C... contract)."""

    address: str

    def __post_init__(self):
        if not isinstance(self.address, str) or not self.address:
            raise CodecError(f"Invalid account id: {self.address!r}")
        try:
            Address(self.address)
        except (ValueError, TypeError) as e:
            raise CodecError(f"Invalid account id: {self.address!r}") from e

    @classmethod
    def parse(cls, value: Union[str, "AccountId"]) -> "AccountId":
        if isinstance(value, AccountId):
            return value
        return cls(value.strip() if isinstance(value, str) else value)

    @property
    def short(self) -> str:
        return short_address(self.address)

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True, order=True)
class Amount:
    """Signed 128-bit fixed-point quantity with 7 decimals, held in minor units."""

    minor: int = 0

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise CodecError(f"Amount minor units must be an int, got {self.minor!r}")
        if not I128_MIN <= self.minor <= I128_MAX:
            raise CodecError(f"Amount out of i128 range: {self.minor}")

    @classmethod
    def zero(cls) -> "Amount":
        return cls(0)

    @classmethod
    def from_decimal(cls, value) -> "Amount":
        from lumensplit.codec import to_minor_units

        return cls(to_minor_units(value))

    def to_decimal(self) -> Decimal:
        # i128 needs 39 digits, more than the default context keeps
        with localcontext() as ctx:
            ctx.prec = 60
            return Decimal(self.minor).scaleb(-AMOUNT_DECIMALS)

    def __str__(self) -> str:
        return f"{self.to_decimal():.7f}"


class ActivityKind(IntEnum):
    """Activity kinds as numbered by the contract."""
    EXPENSE = 1
    SETTLEMENT = 2
    MEMBER_ADDED = 3


@dataclass(frozen=True)
class Member:
    identifier: str
    display_name: str
    balance: Amount = field(default_factory=Amount.zero)


@dataclass(frozen=True)
class Group:
    id: int
    name: str
    creator: str
    members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class Expense:
    payer: str
    amount: Amount
    timestamp: int
    participants: tuple[str, ...] = ()


@dataclass(frozen=True)
class Settlement:
    """Balance-clearing instruction computed by the contract."""
    from_account: str
    to_account: str
    amount: Amount


@dataclass(frozen=True)
class Activity:
    id: int
    kind: Union[ActivityKind, int]
    actor: str
    recipient: Optional[str]
    amount: Amount
    timestamp: int


@dataclass(frozen=True)
class GroupDetail:
    """Everything shown for one selected group, read in one fan-out."""
    group: Group
    settlements: tuple[Settlement, ...] = ()
    expenses: tuple[Expense, ...] = ()
    activities: tuple[Activity, ...] = ()


@dataclass(frozen=True)
class AccountState:
    """Account-state endpoint response, consumed read-only."""
    account_id: str
    sequence: int
    native_balance: Decimal = Decimal("0")
