"""Transaction builder for contract invocations.

Builds single-operation transactions calling one contract method. Used
unsigned for read simulations and as the starting point of every write.
NO signing or broadcasting happens here.
"""

import logging
from typing import Sequence

from stellar_sdk import Account, TransactionBuilder, TransactionEnvelope
from stellar_sdk import xdr as stellar_xdr

logger = logging.getLogger(__name__)


class InvocationBuilder:
    """Builds contract-call transactions for one contract on one network."""

    def __init__(
        self,
        contract_id: str,
        network_passphrase: str,
        base_fee: int = 100,
        timeout: int = 30,
    ):
        self.contract_id = contract_id
        self.network_passphrase = network_passphrase
        self.base_fee = base_fee
        self.timeout = timeout

    def build(
        self,
        source: str,
        sequence: int,
        method: str,
        args: Sequence[stellar_xdr.SCVal] = (),
    ) -> TransactionEnvelope:
        """Build an unsigned invocation of ``method``.

        Args:
            source: Source account address
            sequence: Current account sequence (the builder uses sequence + 1)
            method: Contract method name
            args: Encoded arguments, in order

        Returns:
            Unsigned TransactionEnvelope
        """
        return (
            TransactionBuilder(
                source_account=Account(source, sequence),
                network_passphrase=self.network_passphrase,
                base_fee=self.base_fee,
            )
            .append_invoke_contract_function_op(
                contract_id=self.contract_id,
                function_name=method,
                parameters=list(args),
            )
            .set_timeout(self.timeout)
            .build()
        )

    def from_xdr(self, envelope_xdr: str) -> TransactionEnvelope:
        """Reconstruct an envelope from its XDR on this builder's network."""
        envelope = TransactionBuilder.from_xdr(envelope_xdr, self.network_passphrase)
        if not isinstance(envelope, TransactionEnvelope):
            raise ValueError("Fee-bump envelopes are not supported")
        return envelope
