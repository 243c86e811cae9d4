"""Read-only contract queries executed by simulation.

A read is a zero-effect simulated call. It needs no signer and no funded
account: the source is the connected account if there is one, otherwise a
configured stub or a throwaway keypair.

``query`` returns None for "no data" (remote error at any level), which is
different from a decoded ``False`` or ``0``.
"""

import logging
from typing import Any, Optional, Sequence

from stellar_sdk import Keypair
from stellar_sdk import xdr as stellar_xdr

from lumensplit.builder import InvocationBuilder
from lumensplit.codec import decode_result
from lumensplit.errors import RpcError
from lumensplit.network.soroban import SorobanRpcClient

logger = logging.getLogger(__name__)


class ReadQueryExecutor:
    """Runs contract reads against the simulation endpoint."""

    def __init__(
        self,
        rpc: SorobanRpcClient,
        builder: InvocationBuilder,
        stub_source: Optional[str] = None,
    ):
        self.rpc = rpc
        self.builder = builder
        self.stub_source = stub_source

    def _source(self, source: Optional[str]) -> str:
        if source:
            return source
        if self.stub_source:
            return self.stub_source
        return Keypair.random().public_key

    async def query(
        self,
        method: str,
        args: Sequence[stellar_xdr.SCVal] = (),
        source: Optional[str] = None,
    ) -> Optional[Any]:
        """Simulate ``method`` and return its decoded return value.

        Returns:
            Decoded value, or None if the simulation failed at any level or
            its return value could not be decoded.
            Transport failures (NetworkError) propagate so callers can retry.
        """
        envelope = self.builder.build(self._source(source), 0, method, args)

        try:
            sim = await self.rpc.simulate_transaction(envelope)
        except RpcError as e:
            logger.debug(f"Read {method} rejected by RPC: {e}")
            return None

        if sim.error:
            logger.debug(f"Read {method} simulation error: {sim.error}")
            return None
        if sim.retval is None:
            logger.debug(f"Read {method} returned no result")
            return None

        result = decode_result(sim.retval)
        if not result.decoded:
            logger.debug(f"Read {method} returned an undecodable value")
            return None
        return result.value
