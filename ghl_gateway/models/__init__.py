from .rpc import JSONRPC_VERSION, RequestId, RpcRequest, RpcResponse
from .session import AuthResult, Credentials, Session

__all__ = [
    "AuthResult",
    "Credentials",
    "JSONRPC_VERSION",
    "RequestId",
    "RpcRequest",
    "RpcResponse",
    "Session",
]
