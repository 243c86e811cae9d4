"""Tests for read-only contract queries."""

import pytest
from stellar_sdk import Keypair, scval

from lumensplit.builder import InvocationBuilder
from lumensplit.errors import NetworkError, RpcError
from lumensplit.network.soroban import SimulateTransactionResult
from lumensplit.queries import ReadQueryExecutor

from conftest import TEST_PASSPHRASE, invoked_method, sim_error, sim_ok


@pytest.fixture
def executor(fake_rpc, contract_id):
    builder = InvocationBuilder(contract_id=contract_id, network_passphrase=TEST_PASSPHRASE)
    return ReadQueryExecutor(fake_rpc, builder)


class TestReadQueries:
    """Tests for ReadQueryExecutor.query."""

    @pytest.mark.asyncio
    async def test_decoded_value_returned(self, executor, fake_rpc):
        """Test a successful simulation returns the decoded value."""
        fake_rpc.simulations["get_group_count"] = sim_ok(scval.to_uint32(4))

        assert await executor.query("get_group_count") == 4
        assert fake_rpc.simulate_calls == ["get_group_count"]

    @pytest.mark.asyncio
    async def test_false_is_not_no_data(self, executor, fake_rpc):
        """Test a decoded False stays False."""
        fake_rpc.simulations["is_registered"] = sim_ok(scval.to_bool(False))

        result = await executor.query("is_registered")

        assert result is False

    @pytest.mark.asyncio
    async def test_simulation_error_is_none(self, executor, fake_rpc):
        """Test result.error means no data."""
        fake_rpc.simulations["get_group_with_balances"] = sim_error("group not found")

        assert await executor.query("get_group_with_balances", [scval.to_uint32(99)]) is None

    @pytest.mark.asyncio
    async def test_rpc_error_is_none(self, executor, fake_rpc):
        """Test a JSON-RPC error object means no data."""
        fake_rpc.simulations["get_expenses"] = RpcError("invalid params", code=-32602)

        assert await executor.query("get_expenses") is None

    @pytest.mark.asyncio
    async def test_missing_results_is_none(self, executor, fake_rpc):
        """Test a simulation without results means no data."""
        fake_rpc.simulations["get_expenses"] = SimulateTransactionResult.model_validate(
            {"latestLedger": 5}
        )

        assert await executor.query("get_expenses") is None

    @pytest.mark.asyncio
    async def test_network_error_propagates(self, executor, fake_rpc):
        """Test transport failures are not turned into no data."""
        fake_rpc.simulations["get_expenses"] = NetworkError("connection reset")

        with pytest.raises(NetworkError):
            await executor.query("get_expenses")

    @pytest.mark.asyncio
    async def test_uses_given_source(self, executor, fake_rpc):
        """Test the connected account is used as source when present."""
        me = Keypair.random().public_key
        fake_rpc.simulations["get_group_count"] = sim_ok(scval.to_uint32(0))

        await executor.query("get_group_count", source=me)

        envelope = fake_rpc.simulated_envelopes[0]
        assert envelope.transaction.source.account_id == me
        assert envelope.signatures == []
        assert invoked_method(envelope) == "get_group_count"

    @pytest.mark.asyncio
    async def test_stub_source_without_session(self, fake_rpc, contract_id):
        """Test reads need no signer and fall back to the stub source."""
        stub = Keypair.random().public_key
        builder = InvocationBuilder(contract_id=contract_id, network_passphrase=TEST_PASSPHRASE)
        executor = ReadQueryExecutor(fake_rpc, builder, stub_source=stub)
        fake_rpc.simulations["get_group_count"] = sim_ok(scval.to_uint32(0))

        await executor.query("get_group_count")

        assert fake_rpc.simulated_envelopes[0].transaction.source.account_id == stub

    @pytest.mark.asyncio
    async def test_undecodable_retval_is_none(self, executor, fake_rpc):
        """Test a return value that is not valid wire data means no data."""
        fake_rpc.simulations["get_user_name"] = SimulateTransactionResult.model_validate(
            {"results": [{"xdr": "bm90LXhkcg==", "auth": []}], "latestLedger": 1}
        )

        assert await executor.query("get_user_name") is None
