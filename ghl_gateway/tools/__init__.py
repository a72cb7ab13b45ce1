from .auth_tools import AUTH_TOOLS
from .crm_tools import CRM_TOOLS
from .registry import ToolContext, ToolDescriptor, ToolHandler, ToolRegistry, parse_arguments


def build_default_registry() -> ToolRegistry:
    """
    The fixed tool catalog: `authenticate` first, then the CRM tools.
    """
    return ToolRegistry((*AUTH_TOOLS, *CRM_TOOLS))


__all__ = [
    "AUTH_TOOLS",
    "CRM_TOOLS",
    "ToolContext",
    "ToolDescriptor",
    "ToolHandler",
    "ToolRegistry",
    "build_default_registry",
    "parse_arguments",
]
