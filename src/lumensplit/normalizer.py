"""Map decoded contract structures onto domain entities.

Pure functions. Missing fields get defaults (shortened id for names, zero
for amounts); undecodable input yields empty results. Reported values are
never corrected: balances that do not sum to zero stay that way.
"""

import logging
from typing import Any, Iterable, Optional

from lumensplit.errors import CodecError
from lumensplit.models import (
    Activity,
    ActivityKind,
    Amount,
    Expense,
    Group,
    GroupDetail,
    Member,
    Settlement,
    short_address,
)

logger = logging.getLogger(__name__)

# Name the contract returns for members that never registered
UNKNOWN_NAME = "Unknown"


def _as_dict(raw: Any) -> dict:
    return raw if isinstance(raw, dict) else {}


def _as_list(raw: Any) -> list:
    return list(raw) if isinstance(raw, (list, tuple)) else []


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or value is None:
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def _amount(value: Any) -> Amount:
    minor = _int(value)
    try:
        return Amount(minor)
    except CodecError:
        logger.debug(f"Amount outside i128 range reported: {value!r}")
        return Amount.zero()


def _kind(value: Any):
    number = _int(value, default=-1)
    try:
        return ActivityKind(number)
    except ValueError:
        return number if number >= 0 else value


def normalize_member(raw: Any) -> Member:
    data = _as_dict(raw)
    address = _text(data.get("address"))
    name = _text(data.get("name"))
    if not name or name == UNKNOWN_NAME:
        name = short_address(address)
    return Member(identifier=address, display_name=name, balance=_amount(data.get("balance")))


def normalize_group(raw: Any, group_id: int) -> Group:
    """Build a Group snapshot from a decoded ``get_group_with_balances`` result."""
    data = _as_dict(raw)
    return Group(
        id=int(group_id),
        name=_text(data.get("name")),
        creator=_text(data.get("creator")),
        members=tuple(normalize_member(m) for m in _as_list(data.get("members"))),
    )


def normalize_settlements(raw: Any) -> list[Settlement]:
    out = []
    for item in _as_list(raw):
        data = _as_dict(item)
        out.append(
            Settlement(
                from_account=_text(data.get("from")),
                to_account=_text(data.get("to")),
                amount=_amount(data.get("amount")),
            )
        )
    return out


def normalize_expenses(raw: Any) -> list[Expense]:
    """Expenses, newest first."""
    out = []
    for item in _as_list(raw):
        data = _as_dict(item)
        out.append(
            Expense(
                payer=_text(data.get("payer")),
                amount=_amount(data.get("amount")),
                timestamp=_int(data.get("timestamp")),
                participants=tuple(_text(p) for p in _as_list(data.get("participants"))),
            )
        )
    out.sort(key=lambda e: e.timestamp, reverse=True)
    return out


def normalize_activities(raw: Any) -> list[Activity]:
    """Activities, highest id first."""
    out = []
    for item in _as_list(raw):
        data = _as_dict(item)
        recipient = data.get("recipient")
        out.append(
            Activity(
                id=_int(data.get("id")),
                kind=_kind(data.get("kind")),
                actor=_text(data.get("actor")),
                recipient=_text(recipient) if recipient is not None else None,
                amount=_amount(data.get("amount")),
                timestamp=_int(data.get("timestamp")),
            )
        )
    out.sort(key=lambda a: a.id, reverse=True)
    return out


def normalize_group_ids(raw: Any) -> list[int]:
    """Group ids from ``get_groups_for_member``; zero and junk entries dropped."""
    ids = []
    for item in _as_list(raw):
        gid = _int(item)
        if gid:
            ids.append(gid)
    return ids


def normalize_group_detail(
    group_id: int,
    group_raw: Any,
    settlements_raw: Any = None,
    expenses_raw: Any = None,
    activities_raw: Any = None,
) -> Optional[GroupDetail]:
    """Join the four independent group reads. None if the group itself is missing."""
    if not isinstance(group_raw, dict):
        return None
    return GroupDetail(
        group=normalize_group(group_raw, group_id),
        settlements=tuple(normalize_settlements(settlements_raw)),
        expenses=tuple(normalize_expenses(expenses_raw)),
        activities=tuple(normalize_activities(activities_raw)),
    )


def normalize_groups(raws: Iterable[Any], group_ids: Iterable[int]) -> list[Group]:
    return [normalize_group(raw, gid) for raw, gid in zip(raws, group_ids)]
