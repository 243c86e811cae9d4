"""Network clients for the Soroban RPC and Horizon endpoints."""

from lumensplit.network.horizon import HorizonClient
from lumensplit.network.soroban import (
    GetTransactionResult,
    SdkStatusClient,
    SendTransactionResult,
    SimulateTransactionResult,
    SorobanRpcClient,
)

__all__ = [
    "HorizonClient",
    "SorobanRpcClient",
    "SdkStatusClient",
    "SimulateTransactionResult",
    "SendTransactionResult",
    "GetTransactionResult",
]
