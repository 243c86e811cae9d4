"""Pytest configuration and fixtures."""

import os
from typing import Any, Optional

import pytest
from stellar_sdk import Keypair, StrKey, TransactionEnvelope, scval
from stellar_sdk import xdr as stellar_xdr

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["SIGNER_BACKEND"] = ""
os.environ["LOCAL_SECRET_KEY"] = ""

from lumensplit.client import LumenSplitClient
from lumensplit.config import Settings
from lumensplit.models import AccountState
from lumensplit.network.soroban import SendTransactionResult, SimulateTransactionResult
from lumensplit.signing.base import SignerBackend, SignerType, SigningRequest
from lumensplit.utils.locks import clear_account_locks

TEST_PASSPHRASE = "Test SDF Network ; September 2015"


# ======================
# Wire value helpers
# ======================

def sc_struct(**fields: stellar_xdr.SCVal) -> stellar_xdr.SCVal:
    """Build a contract struct (symbol-keyed map) the way the contract returns it."""
    entries = [
        stellar_xdr.SCMapEntry(key=scval.to_symbol(name), val=value)
        for name, value in sorted(fields.items())
    ]
    return stellar_xdr.SCVal(stellar_xdr.SCValType.SCV_MAP, map=stellar_xdr.SCMap(entries))


def sim_ok(value: stellar_xdr.SCVal) -> SimulateTransactionResult:
    return SimulateTransactionResult.model_validate(
        {"results": [{"xdr": value.to_xdr(), "auth": []}], "latestLedger": 1}
    )


def sim_error(message: str = "HostError: Error(Contract, #1)") -> SimulateTransactionResult:
    return SimulateTransactionResult.model_validate({"error": message, "latestLedger": 1})


def invoked_method(envelope: TransactionEnvelope) -> str:
    op = envelope.transaction.operations[0]
    symbol = op.host_function.invoke_contract.function_name.sc_symbol
    return symbol.decode() if isinstance(symbol, bytes) else symbol


def invoked_args(envelope: TransactionEnvelope) -> list:
    op = envelope.transaction.operations[0]
    return list(op.host_function.invoke_contract.args)


# ======================
# Fakes
# ======================

class FakeRpc:
    """In-memory stand-in for SorobanRpcClient."""

    def __init__(self):
        self.simulations: dict[str, Any] = {}
        self.simulate_calls: list[str] = []
        self.simulated_envelopes: list[TransactionEnvelope] = []
        self.prepare_calls = 0
        self.sent: list[str] = []
        self.send_result: Any = SendTransactionResult(status="PENDING", hash="H")
        self.statuses: list[Any] = []
        self.status_calls = 0

    async def simulate_transaction(self, envelope: TransactionEnvelope) -> SimulateTransactionResult:
        method = invoked_method(envelope)
        self.simulate_calls.append(method)
        self.simulated_envelopes.append(envelope)
        result = self.simulations.get(method, sim_error(f"unknown method {method}"))
        if isinstance(result, Exception):
            raise result
        return result

    async def prepare_transaction(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        self.prepare_calls += 1
        return envelope

    async def send_transaction(self, envelope_xdr: str) -> SendTransactionResult:
        self.sent.append(envelope_xdr)
        if isinstance(self.send_result, Exception):
            raise self.send_result
        return self.send_result

    async def get_transaction_status(self, tx_hash: str) -> str:
        self.status_calls += 1
        status = self.statuses.pop(0) if self.statuses else "PENDING"
        if isinstance(status, Exception):
            raise status
        return status


class FakeHorizon:
    def __init__(self, sequence: int = 100):
        self.sequence = sequence
        self.calls: list[str] = []

    async def load_account(self, account_id: str) -> AccountState:
        self.calls.append(account_id)
        return AccountState(account_id=account_id, sequence=self.sequence)


class FakeSigner(SignerBackend):
    """Signer that returns the envelope it is given, or raises ``error``."""

    def __init__(
        self,
        address: str,
        requires_prepared: bool = True,
        error: Optional[Exception] = None,
        response: Optional[str] = None,
    ):
        super().__init__(SignerType.LOCAL)
        self.requires_prepared = requires_prepared
        self._fake_address = address
        self.error = error
        self.response = response
        self.requests: list[SigningRequest] = []

    async def is_available(self) -> bool:
        return True

    async def connect(self) -> str:
        self._address = self._fake_address
        return self._address

    async def sign(self, request: SigningRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        return request.envelope_xdr


# ======================
# Fixtures
# ======================

@pytest.fixture(autouse=True)
def _clear_locks():
    """Clear account locks before each test."""
    clear_account_locks()
    yield
    clear_account_locks()


@pytest.fixture
def contract_id() -> str:
    return StrKey.encode_contract(bytes(range(32)))


@pytest.fixture
def settings(contract_id) -> Settings:
    return Settings(
        _env_file=None,
        contract_id=contract_id,
        network_passphrase=TEST_PASSPHRASE,
        confirm_poll_interval=0,
        confirm_max_attempts=100,
        signer_backend="",
        local_secret_key=None,
    )


@pytest.fixture
def me() -> str:
    return Keypair.random().public_key


@pytest.fixture
def accounts() -> list[str]:
    return [Keypair.random().public_key for _ in range(3)]


@pytest.fixture
def fake_rpc() -> FakeRpc:
    return FakeRpc()


@pytest.fixture
def fake_horizon() -> FakeHorizon:
    return FakeHorizon()


@pytest.fixture
def status_fallback():
    async def fallback(tx_hash: str) -> str:
        raise ConnectionError("fallback offline")
    return fallback


@pytest.fixture
def client(settings, fake_rpc, fake_horizon, status_fallback) -> LumenSplitClient:
    return LumenSplitClient(
        settings=settings,
        rpc=fake_rpc,
        horizon=fake_horizon,
        status_fallback=status_fallback,
    )
