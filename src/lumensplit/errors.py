"""Error taxonomy for the ledger client.

Read path: codec, simulation and JSON-RPC errors are absorbed by the
read executor and surface as ``None`` ("no data").

Write path: signer, submission, on-chain, timeout, busy and cancel errors
propagate to whoever started the write.
"""

from typing import Any, Optional


class LedgerClientError(Exception):
    """Base class for all client errors."""
    pass


class CodecError(LedgerClientError):
    """A native value could not be encoded into the wire format."""
    pass


class NetworkError(LedgerClientError):
    """Transport failure, unexpected HTTP status or unparseable body."""
    pass


class AccountNotFoundError(NetworkError):
    """The account-state endpoint does not know the account."""
    pass


class RpcError(LedgerClientError):
    """The JSON-RPC endpoint answered with an error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data


class SimulationError(LedgerClientError):
    """The remote simulation rejected the call."""
    pass


class SignerError(LedgerClientError):
    """Base class for signer failures."""
    pass


class SignerUnavailable(SignerError):
    """The signer backend is missing or access was never granted."""
    pass


class SignerRejected(SignerError):
    """The user or backend declined to sign, or returned garbage."""
    pass


class SubmissionError(LedgerClientError):
    """The submit endpoint rejected the envelope outright."""

    def __init__(self, message: str, payload: Any = None, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.payload = payload
        self.tx_hash = tx_hash


class OnChainFailure(LedgerClientError):
    """The transaction was included in a ledger but failed."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, payload: Any = None):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.payload = payload


class ConfirmationTimeout(LedgerClientError):
    """Polling gave up before a final status was seen.

    The outcome is unknown: the transaction may still be applied later.
    Not a subclass of OnChainFailure.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None, attempts: int = 0):
        super().__init__(message)
        self.tx_hash = tx_hash
        self.attempts = attempts


class WriteCancelled(LedgerClientError):
    """The session went away while a write was in progress.

    If ``tx_hash`` is set the transaction was already submitted and
    continues to exist on the ledger.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class SessionBusyError(LedgerClientError):
    """Another write is already in flight for this session."""
    pass


class NotConnectedError(LedgerClientError):
    """No account/signer is connected."""
    pass
