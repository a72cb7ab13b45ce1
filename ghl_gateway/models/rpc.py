from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr

from ghl_gateway.errors import ErrorObject, RpcError


JSONRPC_VERSION = "2.0"

RequestId = Union[str, int, float, None]


class RpcRequest(BaseModel):
    """
    A validated inbound request envelope.
    """

    jsonrpc: str = JSONRPC_VERSION
    method: str
    id: RequestId = None
    params: Dict[str, Any] = Field(default_factory=dict)


class RpcResponse(BaseModel):
    """
    Outbound envelope carrying exactly one of `result` or `error`.
    """

    jsonrpc: str = JSONRPC_VERSION
    id: RequestId = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[ErrorObject] = None

    # HTTP status used when the envelope is returned as a plain JSON body.
    _http_status: int = PrivateAttr(default=200)

    @classmethod
    def success(cls, request_id: RequestId, result: Dict[str, Any]) -> "RpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: RequestId, exc: RpcError) -> "RpcResponse":
        response = cls(id=request_id, error=exc.to_error())
        response._http_status = exc.http_status
        return response

    @property
    def http_status(self) -> int:
        return self._http_status

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result if self.result is not None else {}
        return payload


__all__ = ["JSONRPC_VERSION", "RequestId", "RpcRequest", "RpcResponse"]
