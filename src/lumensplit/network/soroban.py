"""Soroban RPC client.

Plain JSON-RPC over httpx for simulate, send and status queries, plus the
SDK-backed status client used as the secondary confirmation path.
"""

import asyncio
import itertools
import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from stellar_sdk import TransactionEnvelope
from stellar_sdk import xdr as stellar_xdr
from stellar_sdk.operation import InvokeHostFunction

from lumensplit.errors import NetworkError, RpcError, SimulationError

logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class _RpcModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class SimulateHostFunctionResult(_RpcModel):
    xdr: Optional[str] = Field(None, description="Return value as base64 SCVal")
    auth: list[str] = Field(default_factory=list, description="Authorization entries")


class SimulateTransactionResult(_RpcModel):
    """``simulateTransaction`` result object."""

    error: Optional[str] = None
    results: Optional[list[SimulateHostFunctionResult]] = None
    transaction_data: Optional[str] = Field(None, alias="transactionData")
    min_resource_fee: Optional[int] = Field(None, alias="minResourceFee")
    latest_ledger: Optional[int] = Field(None, alias="latestLedger")

    @property
    def retval(self) -> Optional[str]:
        """Return value of the first host function, if the simulation produced one."""
        if not self.results:
            return None
        return self.results[0].xdr


class SendTransactionResult(_RpcModel):
    """``sendTransaction`` result object."""

    status: str
    hash: str = ""
    error_result_xdr: Optional[str] = Field(None, alias="errorResultXdr")
    diagnostic_events_xdr: Optional[list[str]] = Field(None, alias="diagnosticEventsXdr")
    latest_ledger: Optional[int] = Field(None, alias="latestLedger")

    @property
    def accepted(self) -> bool:
        return self.status.upper() in ("PENDING", "DUPLICATE")


class GetTransactionResult(_RpcModel):
    """``getTransaction`` result object."""

    status: str = "PENDING"
    ledger: Optional[int] = None
    result_xdr: Optional[str] = Field(None, alias="resultXdr")


class SorobanRpcClient:
    """JSON-RPC client for a Soroban RPC endpoint."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def request(self, method: str, params: Optional[dict] = None) -> Any:
        """Issue one JSON-RPC call and return its ``result`` member.

        Raises:
            NetworkError: transport failure, HTTP error status or non-JSON body
            RpcError: the endpoint answered with an error object
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(_request_ids),
            "method": method,
            "params": params or {},
        }
        try:
            async with self._client() as client:
                response = await client.post(self.rpc_url, json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise NetworkError(f"{method} returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise NetworkError(f"{method} returned unexpected payload: {data!r}")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    error.get("message", f"{method} failed"),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(str(error))

        if "result" not in data:
            raise NetworkError(f"{method} response has no result")
        return data["result"]

    def _parse(self, model: type[BaseModel], method: str, raw: Any):
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            raise NetworkError(f"Malformed {method} result: {e}") from e

    async def simulate_transaction(self, envelope: TransactionEnvelope) -> SimulateTransactionResult:
        raw = await self.request("simulateTransaction", {"transaction": envelope.to_xdr()})
        return self._parse(SimulateTransactionResult, "simulateTransaction", raw)

    async def prepare_transaction(self, envelope: TransactionEnvelope) -> TransactionEnvelope:
        """Simulate, then attach resource data, resource fee and auth entries.

        Raises:
            SimulationError: if the simulation reports an error or no result
        """
        sim = await self.simulate_transaction(envelope)
        if sim.error:
            raise SimulationError(f"Simulation failed: {sim.error}")
        if not sim.results or sim.transaction_data is None:
            raise SimulationError("Simulation returned no result")

        try:
            soroban_data = stellar_xdr.SorobanTransactionData.from_xdr(sim.transaction_data)
            auth = [
                stellar_xdr.SorobanAuthorizationEntry.from_xdr(entry)
                for entry in sim.results[0].auth
            ]
        except Exception as e:
            raise SimulationError(f"Simulation returned unreadable resource data: {e}") from e

        tx = envelope.transaction
        tx.soroban_data = soroban_data
        tx.fee += int(sim.min_resource_fee or 0)

        op = tx.operations[0]
        if isinstance(op, InvokeHostFunction) and not op.auth:
            op.auth = auth

        logger.debug(f"Prepared transaction, resource fee {sim.min_resource_fee}")
        return envelope

    async def send_transaction(self, envelope_xdr: str) -> SendTransactionResult:
        raw = await self.request("sendTransaction", {"transaction": envelope_xdr})
        return self._parse(SendTransactionResult, "sendTransaction", raw)

    async def get_transaction(self, tx_hash: str) -> GetTransactionResult:
        raw = await self.request("getTransaction", {"hash": tx_hash})
        return self._parse(GetTransactionResult, "getTransaction", raw)

    async def get_transaction_status(self, tx_hash: str) -> str:
        """Primary confirmation path: direct status query."""
        result = await self.get_transaction(tx_hash)
        return result.status


class SdkStatusClient:
    """Secondary confirmation path backed by stellar_sdk's SorobanServer.

    The SDK client is synchronous, so calls run in a worker thread.
    """

    def __init__(self, rpc_url: str):
        self.rpc_url = rpc_url
        self._server = None

    @property
    def server(self):
        """Lazy load SorobanServer instance."""
        if self._server is None:
            from stellar_sdk import SorobanServer
            self._server = SorobanServer(self.rpc_url)
        return self._server

    def close(self) -> None:
        """Close the SDK client if it was ever opened."""
        if self._server is not None:
            self._server.close()
            self._server = None

    async def get_transaction_status(self, tx_hash: str) -> str:
        response = await asyncio.to_thread(self.server.get_transaction, tx_hash)
        status = response.status
        return getattr(status, "value", status)
