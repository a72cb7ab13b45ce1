"""
RPC method dispatch: initialize, tools/list, tools/call and ping.

Results are plain dicts; every failure is raised as an RpcError subclass and
left to the protocol adapter to wrap into an envelope.
"""

from __future__ import annotations

import json
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import InvalidParams, MethodNotFound, RpcError, ToolExecutionError
from .logging_config import logger
from .session_manager import SessionManager
from .settings import Settings
from .tools import ToolContext, ToolRegistry


def wrap_tool_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    MCP tool results travel as a single pretty-printed JSON text block.
    """
    return {
        "content": [
            {
                "type": "text",
                "text": json.dumps(result, indent=2, ensure_ascii=False, default=str),
            }
        ]
    }


class Dispatcher:
    def __init__(
        self,
        registry: ToolRegistry,
        sessions: SessionManager,
        config: Settings,
    ) -> None:
        self.registry = registry
        self.sessions = sessions
        self.config = config
        self._methods: Dict[
            str, Callable[[Dict[str, Any], Optional[str]], Awaitable[Dict[str, Any]]]
        ] = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "ping": self._ping,
        }

    async def dispatch(
        self,
        method: str,
        params: Optional[Dict[str, Any]],
        session_id: Optional[str],
    ) -> Dict[str, Any]:
        handler = self._methods.get(method)
        if handler is None:
            raise MethodNotFound(f"Method '{method}' not found")
        return await handler(params or {}, session_id)

    async def _initialize(self, params: Dict[str, Any], session_id: Optional[str]) -> Dict[str, Any]:
        return {
            "protocolVersion": self.config.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {
                "name": self.config.server_name,
                "version": self.config.server_version,
            },
        }

    async def _tools_list(self, params: Dict[str, Any], session_id: Optional[str]) -> Dict[str, Any]:
        return {"tools": self.registry.describe_all()}

    async def _ping(self, params: Dict[str, Any], session_id: Optional[str]) -> Dict[str, Any]:
        return {}

    async def _tools_call(self, params: Dict[str, Any], session_id: Optional[str]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidParams("tools/call requires a tool 'name'")
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParams("tools/call 'arguments' must be an object")

        tool = self.registry.get(name)
        if tool is None:
            raise MethodNotFound(f"Tool '{name}' not found")

        ctx = ToolContext(session_id=session_id, sessions=self.sessions)
        if tool.requires_auth:
            ctx.credentials = await self.sessions.resolve(session_id)

        logger.info("tools/call %s (session=%s)", name, session_id)
        try:
            result = await tool.handler(ctx, arguments)
        except RpcError:
            raise
        except Exception as exc:
            logger.exception("Tool %s failed (session=%s)", name, session_id)
            raise ToolExecutionError(str(exc) or exc.__class__.__name__) from exc
        return wrap_tool_result(result)


__all__ = ["Dispatcher", "wrap_tool_result"]
