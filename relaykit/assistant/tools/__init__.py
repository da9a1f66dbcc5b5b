"""
Tools package for the assistant.

This package provides the external tool server multiplexer (MCP), the flat
tool name mapping, argument coercion, tool scope selection and the router
that executes model-issued function calls.
"""

from .external_tool_manager import ExternalToolManager
from .connection import ClientConnection, ExternalConnection
from .name_mapper import ToolNameMapper
from .router import BuiltInToolInvoker, ToolRouter
from .declarations import ToolDeclarationBuilder
from .scope import ToolScopeSelector

__all__ = [
    "ExternalToolManager",
    "ClientConnection",
    "ExternalConnection",
    "ToolNameMapper",
    "BuiltInToolInvoker",
    "ToolRouter",
    "ToolDeclarationBuilder",
    "ToolScopeSelector",
]
