"""Write path: build, sign, submit and confirm one contract call.

State machine per write:

    BUILDING -> SIGNING -> SUBMITTING -> CONFIRMING
        -> CONFIRMED | ONCHAIN_FAILED | TIMED_OUT | REJECTED

Failures raise; the exception carries the hash when one exists. A signer
failure ends in REJECTED and the submit endpoint is never called.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

from stellar_sdk import TransactionEnvelope
from stellar_sdk import xdr as stellar_xdr

from lumensplit.builder import InvocationBuilder
from lumensplit.confirmation import ConfirmationPoller, TxStatus
from lumensplit.errors import (
    ConfirmationTimeout,
    LedgerClientError,
    NetworkError,
    OnChainFailure,
    RpcError,
    SignerError,
    SignerRejected,
    SimulationError,
    SubmissionError,
    WriteCancelled,
)
from lumensplit.models import AccountState
from lumensplit.network.soroban import SendTransactionResult
from lumensplit.signing.base import SignerBackend, SigningRequest
from lumensplit.utils.locks import CancelToken

logger = logging.getLogger(__name__)


class WriteState(str, Enum):
    BUILDING = "building"
    SIGNING = "signing"
    SUBMITTING = "submitting"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    ONCHAIN_FAILED = "onchain_failed"
    TIMED_OUT = "timed_out"
    REJECTED = "rejected"

    @property
    def is_final(self) -> bool:
        return self in (
            WriteState.CONFIRMED,
            WriteState.ONCHAIN_FAILED,
            WriteState.TIMED_OUT,
            WriteState.REJECTED,
        )


@dataclass
class WriteResult:
    """Record of one write operation."""
    method: str
    state: WriteState = WriteState.BUILDING
    tx_hash: Optional[str] = None
    attempts: int = 0
    error: Optional[str] = None
    error_payload: Any = None
    history: list[WriteState] = field(default_factory=lambda: [WriteState.BUILDING])

    @property
    def confirmed(self) -> bool:
        return self.state == WriteState.CONFIRMED


class TransactionRpc(Protocol):
    """The parts of the Soroban RPC client the submitter needs."""

    async def prepare_transaction(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        ...

    async def send_transaction(self, envelope_xdr: str) -> SendTransactionResult:
        ...


class AccountLoader(Protocol):
    async def load_account(self, account_id: str) -> AccountState:
        ...


class TransactionSubmitter:
    """Executes write operations through a signer."""

    def __init__(
        self,
        rpc: TransactionRpc,
        accounts: AccountLoader,
        builder: InvocationBuilder,
        poller: ConfirmationPoller,
        network_label: str = "TESTNET",
    ):
        self.rpc = rpc
        self.accounts = accounts
        self.builder = builder
        self.poller = poller
        self.network_label = network_label

    async def submit(
        self,
        method: str,
        args: Sequence[stellar_xdr.SCVal],
        signer: SignerBackend,
        source: str,
        cancel_token: Optional[CancelToken] = None,
        on_transition: Optional[Callable[[WriteResult], None]] = None,
    ) -> WriteResult:
        """Run one write to completion.

        Returns:
            WriteResult in state CONFIRMED

        Raises:
            SignerUnavailable / SignerRejected: REJECTED, nothing submitted; any
                unexpected signer exception is raised as SignerRejected
            SimulationError: REJECTED, preparation failed, nothing submitted
            SubmissionError: ONCHAIN_FAILED, submit endpoint refused the envelope
            OnChainFailure: ONCHAIN_FAILED, included but failed
            ConfirmationTimeout: TIMED_OUT, outcome unknown
            WriteCancelled: session went away while waiting
        """
        token = cancel_token or CancelToken()
        result = WriteResult(method=method)

        def transition(state: WriteState, error: Optional[Exception] = None, payload: Any = None):
            result.state = state
            result.history.append(state)
            if error is not None:
                result.error = str(error)
            if payload is not None:
                result.error_payload = payload
            logger.debug(f"{method}: -> {state.value}")
            if on_transition:
                on_transition(result)

        # BUILDING: sequence is loaded fresh for every write
        try:
            account = await self.accounts.load_account(source)
            envelope = self.builder.build(source, account.sequence, method, args)
        except LedgerClientError as e:
            transition(WriteState.REJECTED, e)
            raise

        # SIGNING
        transition(WriteState.SIGNING)
        try:
            if signer.requires_prepared:
                envelope = await self.rpc.prepare_transaction(envelope)
            signed_xdr = await signer.sign(
                SigningRequest(
                    envelope_xdr=envelope.to_xdr(),
                    network_passphrase=self.builder.network_passphrase,
                    network=self.network_label,
                    address=source,
                )
            )
        except (SignerError, SimulationError, NetworkError, RpcError) as e:
            logger.warning(f"{method}: not signed ({type(e).__name__}: {e})")
            transition(WriteState.REJECTED, e)
            raise
        except Exception as e:
            logger.error(f"{method}: signer failed unexpectedly: {e}")
            error = SignerRejected(f"Signing failed: {e}")
            transition(WriteState.REJECTED, error)
            raise error from e

        if token.cancelled:
            transition(WriteState.REJECTED, WriteCancelled("Session disconnected before submit"))
            raise WriteCancelled("Session disconnected before submit")

        # SUBMITTING: rebuild from what the signer actually returned
        transition(WriteState.SUBMITTING)
        try:
            signed = self.builder.from_xdr(signed_xdr)
        except Exception as e:
            error = SignerRejected(f"Signer returned an unreadable envelope: {e}")
            transition(WriteState.REJECTED, error)
            raise error from e

        try:
            sent = await self.rpc.send_transaction(signed.to_xdr())
        except (NetworkError, RpcError) as e:
            error = SubmissionError(f"Submission failed: {e}", payload=str(e))
            transition(WriteState.ONCHAIN_FAILED, error, payload=str(e))
            raise error from e

        result.tx_hash = sent.hash or None
        logger.info(f"{method}: submitted, status {sent.status}, hash {sent.hash}")

        if not sent.accepted:
            payload = sent.error_result_xdr or sent.model_dump(by_alias=True)
            error = SubmissionError(
                f"Submission failed with status {sent.status}",
                payload=payload,
                tx_hash=result.tx_hash,
            )
            transition(WriteState.ONCHAIN_FAILED, error, payload=payload)
            raise error

        # CONFIRMING
        transition(WriteState.CONFIRMING)

        def count_attempt(attempt: int, status: TxStatus):
            result.attempts = attempt

        try:
            await self.poller.wait(sent.hash, token, on_attempt=count_attempt)
        except OnChainFailure as e:
            transition(WriteState.ONCHAIN_FAILED, e)
            raise
        except ConfirmationTimeout as e:
            transition(WriteState.TIMED_OUT, e)
            raise
        except WriteCancelled:
            logger.info(f"{method}: stopped waiting for {sent.hash}, transaction stays submitted")
            raise

        transition(WriteState.CONFIRMED)
        logger.info(f"{method}: confirmed {sent.hash} after {result.attempts} polls")
        return result
