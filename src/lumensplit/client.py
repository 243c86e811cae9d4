"""LumenSplit client.

Reads run as simulations and may run in parallel. Writes go through the
session's write gate one at a time; a confirmed write schedules one
background refresh of the group list and the selected group, whose
failures are logged and never reach the write's caller.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional, Sequence, Union

from stellar_sdk import xdr as stellar_xdr

from lumensplit.builder import InvocationBuilder
from lumensplit.codec import (
    encode_address,
    encode_address_vec,
    encode_amount,
    encode_string,
    encode_u32,
)
from lumensplit.config import Settings, get_settings
from lumensplit.confirmation import ConfirmationPoller, StatusSource
from lumensplit.errors import CodecError
from lumensplit.models import AccountId, AccountState, Amount, Group, GroupDetail
from lumensplit.network.horizon import HorizonClient
from lumensplit.network.soroban import SdkStatusClient, SorobanRpcClient
from lumensplit.normalizer import (
    normalize_group,
    normalize_group_detail,
    normalize_group_ids,
    normalize_groups,
)
from lumensplit.queries import ReadQueryExecutor
from lumensplit.session import Session, SessionIdentity
from lumensplit.signing.base import SignerBackend
from lumensplit.transactions import TransactionSubmitter, WriteResult

logger = logging.getLogger(__name__)

AccountLike = Union[str, AccountId]
AmountLike = Union[str, int, float, Any]


def _unique_accounts(values: Iterable[AccountLike]) -> list[AccountId]:
    """Validate accounts and drop duplicates, keeping first-seen order."""
    seen = set()
    out = []
    for value in values:
        account = AccountId.parse(value)
        if account.address not in seen:
            seen.add(account.address)
            out.append(account)
    return out


class LumenSplitClient:
    """Client for the lumen_split contract."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        rpc: Optional[SorobanRpcClient] = None,
        horizon: Optional[HorizonClient] = None,
        status_fallback: Optional[StatusSource] = None,
        session: Optional[Session] = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self.rpc = rpc or SorobanRpcClient(s.soroban_rpc_url, timeout=s.http_timeout)
        self.horizon = horizon or HorizonClient(s.horizon_url, timeout=s.http_timeout)
        self.builder = InvocationBuilder(
            contract_id=s.contract_id,
            network_passphrase=s.network_passphrase,
            base_fee=s.base_fee,
            timeout=s.tx_timeout_seconds,
        )
        self.reader = ReadQueryExecutor(self.rpc, self.builder, stub_source=s.read_source_account)

        self._status_client: Optional[SdkStatusClient] = None
        if status_fallback is None:
            self._status_client = SdkStatusClient(s.soroban_rpc_url)
            status_fallback = self._status_client.get_transaction_status
        self.poller = ConfirmationPoller(
            primary=self.rpc.get_transaction_status,
            fallback=status_fallback,
            interval=s.confirm_poll_interval,
            max_attempts=s.confirm_max_attempts,
        )
        self.submitter = TransactionSubmitter(
            rpc=self.rpc,
            accounts=self.horizon,
            builder=self.builder,
            poller=self.poller,
            network_label=s.network_label,
        )
        self.session = session or Session()
        self._background: set[asyncio.Task] = set()

    # ======================
    # Session
    # ======================

    async def connect(self, signer: SignerBackend) -> SessionIdentity:
        return await self.session.connect(signer)

    def disconnect(self) -> None:
        self.session.disconnect()

    def close(self) -> None:
        """Release the SDK status client, if one was created."""
        if self._status_client is not None:
            self._status_client.close()

    @property
    def account(self) -> Optional[str]:
        identity = self.session.identity
        return identity.account.address if identity else None

    def _account_arg(self, account: Optional[AccountLike]) -> AccountId:
        if account is not None:
            return AccountId.parse(account)
        return self.session.require_identity().account

    # ======================
    # Reads
    # ======================

    async def query(self, method: str, args: Sequence[stellar_xdr.SCVal] = ()) -> Any:
        """Raw contract read; None means no data."""
        return await self.reader.query(method, args, source=self.account)

    async def load_account_state(self, account: Optional[AccountLike] = None) -> AccountState:
        return await self.horizon.load_account(self._account_arg(account).address)

    async def is_registered(self, account: Optional[AccountLike] = None) -> Optional[bool]:
        """True/False as reported, or None if the read produced no data."""
        result = await self.query("is_registered", [encode_address(self._account_arg(account))])
        return result if isinstance(result, bool) else None

    async def get_user_name(self, account: Optional[AccountLike] = None) -> Optional[str]:
        result = await self.query("get_user_name", [encode_address(self._account_arg(account))])
        return result if isinstance(result, str) and result else None

    async def get_group_ids(self, account: Optional[AccountLike] = None) -> list[int]:
        result = await self.query(
            "get_groups_for_member", [encode_address(self._account_arg(account))]
        )
        return normalize_group_ids(result)

    async def get_group(self, group_id: int) -> Optional[Group]:
        raw = await self.query("get_group_with_balances", [encode_u32(group_id)])
        if not isinstance(raw, dict):
            return None
        return normalize_group(raw, group_id)

    async def get_balance(self, group_id: int, member: AccountLike) -> Optional[Amount]:
        result = await self.query("get_balance", [encode_u32(group_id), encode_address(member)])
        if isinstance(result, bool) or not isinstance(result, int):
            return None
        return Amount(result)

    async def get_group_count(self) -> Optional[int]:
        result = await self.query("get_group_count")
        if isinstance(result, bool) or not isinstance(result, int):
            return None
        return result

    async def load_group_detail(
        self, group_id: int, group_raw: Any = None
    ) -> Optional[GroupDetail]:
        """Read group, settlements, expenses and activities in parallel.

        A ``group_raw`` already read in the same refresh is reused instead of
        querying the group again.
        """
        gid = encode_u32(group_id)
        reads = [
            self.query("get_settlements", [gid]),
            self.query("get_expenses", [gid]),
            self.query("get_activities", [gid]),
        ]
        if group_raw is None:
            reads.insert(0, self.query("get_group_with_balances", [gid]))
            group_raw, settlements_raw, expenses_raw, activities_raw = await asyncio.gather(*reads)
        else:
            settlements_raw, expenses_raw, activities_raw = await asyncio.gather(*reads)
        return normalize_group_detail(
            int(group_id), group_raw, settlements_raw, expenses_raw, activities_raw
        )

    async def select_group(self, group_id: Optional[int]) -> Optional[GroupDetail]:
        """Make ``group_id`` the selected group and load its detail."""
        self.session.select(group_id)
        if group_id is None:
            return None
        identity = self.session.identity
        detail = await self.load_group_detail(group_id)
        self.session.replace_selected(identity, group_id, detail)
        return detail

    async def refresh_groups(self) -> list[Group]:
        """Re-read the connected account's groups and the selected group.

        Snapshots are replaced as a whole; a selected group the account no
        longer belongs to is deselected.
        """
        identity = self.session.identity
        if identity is None:
            return []

        group_ids = await self.get_group_ids(identity.account)
        raws = await asyncio.gather(
            *(self.query("get_group_with_balances", [encode_u32(gid)]) for gid in group_ids)
        )
        groups = normalize_groups(raws, group_ids)
        if not self.session.replace_groups(identity, groups):
            return groups

        selected = self.session.selected_group_id
        if selected is not None:
            if selected not in group_ids:
                self.session.select(None)
            else:
                group_raw = raws[group_ids.index(selected)]
                detail = await self.load_group_detail(selected, group_raw=group_raw)
                self.session.replace_selected(identity, selected, detail)
        return groups

    # ======================
    # Writes
    # ======================

    async def _run_write(self, method: str, args: list[stellar_xdr.SCVal]) -> WriteResult:
        identity = self.session.require_identity()
        async with self.session.write_lock(identity, operation=method):
            result = await self.submitter.submit(
                method,
                args,
                signer=identity.signer,
                source=identity.account.address,
                cancel_token=self.session.cancel_token,
            )
        self._schedule_refresh(identity)
        return result

    def _schedule_refresh(self, identity: SessionIdentity) -> None:
        task = asyncio.create_task(self._background_refresh(identity))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _background_refresh(self, identity: SessionIdentity) -> None:
        if not self.session.is_current(identity):
            return
        try:
            await self.refresh_groups()
        except Exception as e:
            logger.warning(f"Background refresh failed: {e}")

    async def drain_background(self) -> None:
        """Wait for scheduled background refreshes to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def register(self, name: str) -> WriteResult:
        if not isinstance(name, str) or not name.strip():
            raise CodecError("Name must not be empty")
        me = self.session.require_identity().account
        return await self._run_write("register", [encode_address(me), encode_string(name)])

    async def create_group(self, name: str, members: Iterable[AccountLike] = ()) -> WriteResult:
        if not isinstance(name, str) or not name.strip():
            raise CodecError("Group name must not be empty")
        me = self.session.require_identity().account
        args = [encode_address(me), encode_string(name), encode_address_vec(_unique_accounts(members))]
        return await self._run_write("create_group", args)

    async def add_member(self, group_id: int, member: AccountLike) -> WriteResult:
        me = self.session.require_identity().account
        args = [encode_address(me), encode_u32(group_id), encode_address(member)]
        return await self._run_write("add_member", args)

    async def add_expense(
        self,
        group_id: int,
        amount: AmountLike,
        participants: Iterable[AccountLike],
        payer: Optional[AccountLike] = None,
    ) -> WriteResult:
        payer_id = self._account_arg(payer)
        people = _unique_accounts(participants)
        if not people:
            raise CodecError("An expense needs at least one participant")
        args = [
            encode_address(payer_id),
            encode_u32(group_id),
            encode_amount(amount),
            encode_address_vec(people),
        ]
        return await self._run_write("add_expense", args)

    async def settle_debt(self, group_id: int, to: AccountLike, amount: AmountLike) -> WriteResult:
        me = self.session.require_identity().account
        args = [encode_address(me), encode_u32(group_id), encode_address(to), encode_amount(amount)]
        return await self._run_write("settle_debt", args)

    async def delete_group(self, group_id: int) -> WriteResult:
        me = self.session.require_identity().account
        return await self._run_write("delete_group", [encode_address(me), encode_u32(group_id)])
