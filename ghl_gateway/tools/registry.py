"""
Static tool registry.

Descriptors keep metadata (name, description, input schema, auth flag)
separate from the executable handler; only the metadata is ever serialised.
The registry is built once and is read-only afterwards.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
)

from pydantic import BaseModel, ValidationError

from ghl_gateway.errors import ToolExecutionError
from ghl_gateway.models import Credentials

if TYPE_CHECKING:  # pragma: no cover
    from ghl_gateway.session_manager import SessionManager
    from ghl_gateway.upstream import GHLClient


@dataclass
class ToolContext:
    """
    Per-call context handed to a tool handler. `credentials` is only set for
    auth-required tools, after the session has been resolved.
    """

    session_id: Optional[str]
    sessions: "SessionManager"
    credentials: Optional[Credentials] = None

    def client(self) -> "GHLClient":
        if self.credentials is None:
            raise RuntimeError("tool context has no credentials")
        return self.sessions.client_for(self.credentials)


ToolHandler = Callable[[ToolContext, Dict[str, Any]], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: Mapping[str, Any]
    handler: ToolHandler
    requires_auth: bool = True

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": copy.deepcopy(dict(self.input_schema)),
        }


class ToolRegistry:
    def __init__(self, tools: Iterable[ToolDescriptor]) -> None:
        table: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in table:
                raise ValueError(f"Duplicate tool name: {tool.name!r}")
            table[tool.name] = tool
        self._tools: Mapping[str, ToolDescriptor] = MappingProxyType(table)

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def names(self) -> List[str]:
        return list(self._tools)

    def describe_all(self) -> List[Dict[str, Any]]:
        return [tool.describe() for tool in self._tools.values()]


ArgsT = TypeVar("ArgsT", bound=BaseModel)


def parse_arguments(tool_name: str, model: Type[ArgsT], arguments: Dict[str, Any]) -> ArgsT:
    """
    Validate raw tool arguments, reporting failures as a tool execution error.
    """
    try:
        return model.model_validate(arguments)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ToolExecutionError(f"Invalid arguments for {tool_name}: {problems}") from exc


__all__ = [
    "ToolContext",
    "ToolDescriptor",
    "ToolHandler",
    "ToolRegistry",
    "parse_arguments",
]
