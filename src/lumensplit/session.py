"""Connected-session state.

The session identity (account + signer) is one immutable object swapped
in a single assignment on connect/disconnect, so nobody can observe half
of it. Group snapshots are replaced wholesale and only if they were read
under the identity that is still current.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lumensplit.errors import CodecError, NotConnectedError, SignerUnavailable
from lumensplit.models import AccountId, Group, GroupDetail
from lumensplit.signing.base import SignerBackend
from lumensplit.utils.locks import AccountWriteLock, CancelToken, is_account_busy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SessionIdentity:
    account: AccountId
    signer: SignerBackend


class Session:
    """One logical session per connected account."""

    def __init__(self):
        self._identity: Optional[SessionIdentity] = None
        self._cancel_token = CancelToken()
        self.groups: tuple[Group, ...] = ()
        self.selected_group_id: Optional[int] = None
        self.selected: Optional[GroupDetail] = None

    @property
    def identity(self) -> Optional[SessionIdentity]:
        return self._identity

    @property
    def connected(self) -> bool:
        return self._identity is not None

    @property
    def cancel_token(self) -> CancelToken:
        return self._cancel_token

    @property
    def busy(self) -> bool:
        identity = self._identity
        return bool(identity and is_account_busy(identity.account.address))

    def require_identity(self) -> SessionIdentity:
        identity = self._identity
        if identity is None:
            raise NotConnectedError("No account connected")
        return identity

    async def connect(self, signer: SignerBackend) -> SessionIdentity:
        """Connect through ``signer``, replacing any previous session.

        Raises:
            SignerUnavailable: the signer is missing, refused access or
                returned an invalid address
        """
        if self._identity is not None:
            self.disconnect()

        address = await signer.connect()
        try:
            account = AccountId.parse(address)
        except CodecError as e:
            raise SignerUnavailable(f"Signer returned an invalid address: {address!r}") from e

        identity = SessionIdentity(account=account, signer=signer)
        self._cancel_token = CancelToken()
        self._identity = identity
        logger.info(f"Connected {account.short} via {signer.signer_type.value}")
        return identity

    def disconnect(self) -> None:
        """Drop the identity, abandon in-flight polling and clear all snapshots.

        Already-submitted transactions are not affected on the ledger.
        """
        identity = self._identity
        self._cancel_token.cancel("session disconnected")
        self._identity = None
        self.groups = ()
        self.selected_group_id = None
        self.selected = None
        if identity is not None:
            logger.info(f"Disconnected {identity.account.short}")

    def write_lock(self, identity: SessionIdentity, operation: str) -> AccountWriteLock:
        return AccountWriteLock(identity.account.address, operation=operation)

    def is_current(self, identity: Optional[SessionIdentity]) -> bool:
        return identity is not None and identity is self._identity

    def replace_groups(self, identity: SessionIdentity, groups: list[Group]) -> bool:
        if not self.is_current(identity):
            logger.debug("Discarding group list read under a previous session")
            return False
        self.groups = tuple(groups)
        return True

    def select(self, group_id: Optional[int]) -> None:
        self.selected_group_id = group_id
        self.selected = None

    def replace_selected(
        self,
        identity: Optional[SessionIdentity],
        group_id: int,
        detail: Optional[GroupDetail],
    ) -> bool:
        if identity is not None and not self.is_current(identity):
            return False
        if self.selected_group_id != group_id:
            return False
        if detail is None:
            self.selected_group_id = None
            self.selected = None
        else:
            self.selected = detail
        return True
