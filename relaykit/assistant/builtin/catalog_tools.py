"""
Catalog and scope tools.

These tools let the model discover which built-in and external tools exist
and narrow the set it is shown on later requests.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..registry.tool_registry import ToolRuntime
from ..tools.scope import LIST_CATALOG_TOOL, SET_SCOPE_TOOL

logger = logging.getLogger(__name__)

LIST_SERVERS_TOOL = "McpListServersTool"
LIST_SERVER_TOOLS_TOOL = "McpListServerToolsTool"


class ListToolsCatalogParams(BaseModel):
    """Return a compact tools catalog: built-in tool names and MCP servers/tools."""

    include_external_details: bool = Field(
        default=True, description="If true, include the tools-by-server map for MCP"
    )


class ListServersParams(BaseModel):
    """List available MCP servers."""

    include_details: bool = Field(
        default=False, description="If true, include tool counts per server in the response"
    )


class ListServerToolsParams(BaseModel):
    """List tool names exposed by one MCP server."""

    server: str = Field(..., description="MCP server name", min_length=1)


class SetToolScopeParams(BaseModel):
    """Request tool scope for the current or future turns (sticky).

    Names use built-in tool names and MCP 'server.method'.
    """

    current_turn_builtins: Optional[List[str]] = Field(None, description="Built-in tool names to enable")
    current_turn_external: Optional[List[str]] = Field(
        None, description="MCP methods to enable, format: server.method"
    )
    external_servers: Optional[List[str]] = Field(
        None, description="Enable all methods of these MCP servers for the selected scope"
    )
    sticky: bool = Field(default=False, description="If true, the scope persists for subsequent turns")


def _server_names(runtime: ToolRuntime) -> List[str]:
    if runtime.external_tools is None:
        return []
    return runtime.external_tools.list_servers()


def _tool_names(runtime: ToolRuntime, server: str) -> List[str]:
    if runtime.external_tools is None:
        return []
    return sorted(tool.name for tool in runtime.external_tools.get_tools(server))


async def list_tools_catalog(params: ListToolsCatalogParams, runtime: ToolRuntime) -> Dict[str, Any]:
    servers = _server_names(runtime)
    tools_by_server: Dict[str, List[str]] = {}
    if params.include_external_details:
        tools_by_server = {server: _tool_names(runtime, server) for server in servers}
    return {
        "builtIns": runtime.registry.available_names(runtime.environment),
        "mcp": {
            "servers": servers,
            "toolsByServer": tools_by_server,
        },
    }


async def list_servers(params: ListServersParams, runtime: ToolRuntime) -> Dict[str, Any]:
    servers = _server_names(runtime)
    result: Dict[str, Any] = {"servers": servers}
    if params.include_details:
        result["details"] = {server: len(_tool_names(runtime, server)) for server in servers}
    return result


async def list_server_tools(params: ListServerToolsParams, runtime: ToolRuntime) -> Dict[str, Any]:
    if params.server not in _server_names(runtime):
        return {"status": "error", "message": f"MCP server '{params.server}' is not configured"}
    return {"server": params.server, "tools": _tool_names(runtime, params.server)}


async def set_tool_scope(params: SetToolScopeParams, runtime: ToolRuntime) -> Dict[str, Any]:
    if runtime.scope_selector is None:
        return {"status": "error", "message": "Tool scope selection is not available"}

    def resolver(server: str) -> List[str]:
        return [f"{server}.{name}" for name in _tool_names(runtime, server)]

    accepted = runtime.scope_selector.set_scope(
        builtins=params.current_turn_builtins,
        external_methods=params.current_turn_external,
        external_servers=params.external_servers,
        sticky=params.sticky,
        resolver=resolver,
    )
    return {"status": "ok", **accepted}


CATALOG_TOOL_TABLE = (
    (LIST_CATALOG_TOOL, ListToolsCatalogParams, list_tools_catalog),
    (LIST_SERVERS_TOOL, ListServersParams, list_servers),
    (LIST_SERVER_TOOLS_TOOL, ListServerToolsParams, list_server_tools),
    (SET_SCOPE_TOOL, SetToolScopeParams, set_tool_scope),
)
