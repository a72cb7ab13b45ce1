"""
Protocol adapter: turns raw request bodies into dispatcher calls and every
outcome into exactly one JSON-RPC response envelope.

Nothing raised below this layer escapes it; unexpected exceptions become an
InternalError envelope.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from .dispatcher import Dispatcher
from .errors import InternalError, InvalidParams, InvalidRequest, ParseError, RpcError
from .logging_config import logger
from .models import JSONRPC_VERSION, RequestId, RpcRequest, RpcResponse

NOTIFICATION_PREFIX = "notifications/"


def _valid_id(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, (str, int, float))


def _readable_id(payload: Any) -> RequestId:
    if isinstance(payload, dict) and _valid_id(payload.get("id")):
        return payload.get("id")
    return None


def _is_notification(payload: dict) -> bool:
    method = payload.get("method")
    return (
        "id" not in payload
        and isinstance(method, str)
        and method.startswith(NOTIFICATION_PREFIX)
    )


class ProtocolAdapter:
    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    def parse(self, body: bytes) -> Any:
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ParseError(f"Parse error: {exc}") from exc
        except RecursionError as exc:
            # Nesting deeper than the decoder can follow.
            raise ParseError("Parse error: document nested too deeply") from exc

    def validate(self, payload: Any) -> RpcRequest:
        """
        Check the envelope shape and build the request model.
        """
        if not isinstance(payload, dict):
            raise InvalidRequest("Request must be a single JSON object")

        request_id = payload.get("id")
        if not _valid_id(request_id):
            raise InvalidRequest("Request id must be a string, number or null")

        if payload.get("jsonrpc") != JSONRPC_VERSION:
            raise InvalidRequest(f"jsonrpc must be '{JSONRPC_VERSION}'")

        method = payload.get("method")
        if not isinstance(method, str) or not method:
            raise InvalidRequest("Missing method")

        params = payload.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise InvalidParams("params must be an object")

        return RpcRequest(method=method, id=request_id, params=params)

    async def handle_raw(self, body: bytes, session_id: Optional[str]) -> Optional[RpcResponse]:
        try:
            payload = self.parse(body)
        except ParseError as exc:
            logger.info("Rejecting unparsable request body: %s", exc.message)
            return RpcResponse.failure(None, exc)
        return await self.handle_message(payload, session_id)

    async def handle_message(self, payload: Any, session_id: Optional[str]) -> Optional[RpcResponse]:
        """
        Process one decoded message. Returns None for notifications, which
        never get a response.
        """
        request_id = _readable_id(payload)
        try:
            request = self.validate(payload)
            if _is_notification(payload):
                logger.debug("Notification %s received", request.method)
                return None
            result = await self.dispatcher.dispatch(request.method, request.params, session_id)
            return RpcResponse.success(request_id, result)
        except RpcError as exc:
            if exc.code != InternalError.code:
                logger.info(
                    "RPC error %s (%s) for id=%r session=%s",
                    exc.code,
                    exc.message,
                    request_id,
                    session_id,
                )
            return RpcResponse.failure(request_id, exc)
        except Exception:
            logger.exception("Unhandled error while dispatching request id=%r", request_id)
            return RpcResponse.failure(request_id, InternalError())


__all__ = ["NOTIFICATION_PREFIX", "ProtocolAdapter"]
