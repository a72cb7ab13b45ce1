from typing import Any, Dict, Optional

from fastapi import status
from pydantic import BaseModel, Field


class ErrorObject(BaseModel):
    """
    JSON-RPC error member of a response envelope:
    {
        "code": -32001,
        "message": "Authentication required. ...",
        "data": {"requiresAuth": true}
    }
    """

    code: int = Field(..., description="JSON-RPC error code")
    message: str = Field(..., description="Human-readable error message")
    data: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured error details"
    )


class RpcError(Exception):
    """
    Base class for every failure that is reported back to the caller as an
    error envelope. `http_status` is used when the envelope is returned as a
    plain JSON body.
    """

    code: int = -32603
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_error(self) -> ErrorObject:
        return ErrorObject(code=self.code, message=self.message, data=self.data)


class ParseError(RpcError):
    code = -32700
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Parse error"


class InvalidRequest(RpcError):
    code = -32600
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid Request"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        data: Optional[Dict[str, Any]] = None,
        http_status: Optional[int] = None,
    ) -> None:
        super().__init__(message, data=data)
        if http_status is not None:
            self.http_status = http_status


class MethodNotFound(RpcError):
    code = -32601
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Method not found"


class InvalidParams(RpcError):
    code = -32602
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid params"


class InternalError(RpcError):
    code = -32603
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


class ToolExecutionError(RpcError):
    """The upstream call behind a tool failed after authentication succeeded."""

    code = -32000
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Tool execution failed"


class AuthenticationRequired(RpcError):
    code = -32001
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = (
        'Authentication required. Please use the "authenticate" tool first.'
    )

    def __init__(self, message: Optional[str] = None) -> None:
        # The flag lets automated callers react by calling `authenticate`.
        super().__init__(message, data={"requiresAuth": True})


class AuthenticationFailed(RpcError):
    code = -32002
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication failed"


class BadCredentials(RpcError):
    code = -32003
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Both api_key and account_id are required"


__all__ = [
    "AuthenticationFailed",
    "AuthenticationRequired",
    "BadCredentials",
    "ErrorObject",
    "InternalError",
    "InvalidParams",
    "InvalidRequest",
    "MethodNotFound",
    "ParseError",
    "RpcError",
    "ToolExecutionError",
]
