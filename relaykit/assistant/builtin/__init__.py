"""
Built-in tools shipped with the assistant core.
"""

from ..core.enums import ToolGroup
from ..registry.tool_registry import BuiltInToolRegistry
from .agent_tools import AGENT_TOOL_TABLE
from .catalog_tools import CATALOG_TOOL_TABLE


def register_default_tools(registry: BuiltInToolRegistry) -> BuiltInToolRegistry:
    """Register the catalog, scope and sub-agent tools."""
    for name, params_model, handler in CATALOG_TOOL_TABLE:
        registry.register_tool(name, params_model, handler, group=ToolGroup.GENERIC)
    for name, params_model, handler in AGENT_TOOL_TABLE:
        registry.register_tool(name, params_model, handler, group=ToolGroup.AGENTIC)
    return registry


__all__ = [
    "register_default_tools",
    "AGENT_TOOL_TABLE",
    "CATALOG_TOOL_TABLE",
]
