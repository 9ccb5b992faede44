from .routes import format_transaction, router
from .schemas import ErrorResponse, HealthResponse, RawTxRequest, RpcRequest, TxTypesResponse

__all__ = [
    "router",
    "format_transaction",
    "ErrorResponse",
    "HealthResponse",
    "RawTxRequest",
    "RpcRequest",
    "TxTypesResponse",
]
