"""
Sub-agent tools.

Available only when agentic mode is enabled. They let the primary session
create role-based agents, talk to them and remove them.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..core.exceptions import FeatureDisabledError
from ..core.models import AgentConfig
from ..registry.tool_registry import ToolRuntime

logger = logging.getLogger(__name__)

CREATE_AGENT_TOOL = "AgentCreateTool"
SEND_AGENT_MESSAGE_TOOL = "AgentSendMessageTool"
REMOVE_AGENT_TOOL = "AgentRemoveTool"


class AgentCreateParams(BaseModel):
    """Create a new role-based agent that can perform tasks and converse in natural language."""

    role: str = Field(default="agent", description="Agent role name, e.g. tester, reviewer, refactorer")
    model: Optional[str] = Field(None, description="Optional per-agent model id override")
    instructions: Optional[str] = Field(None, description="Additional role-specific instructions")
    include_external: bool = Field(default=True, description="Whether this agent can use MCP tools")
    allow_builtin_tools: bool = Field(default=True, description="Whether this agent can use built-in tools")
    allowed_external_servers: Optional[List[str]] = Field(
        None, description="Optional list of allowed MCP server names for guidance"
    )
    allowed_builtin_names: Optional[Set[str]] = Field(
        None, description="Explicit allow-list of built-in tool names. If set, the agent can only use these."
    )
    allowed_external_names: Optional[Set[str]] = Field(
        None, description="Explicit allow-list of MCP tools in 'server.tool' form. If set, the agent can only use these."
    )


class AgentSendMessageParams(BaseModel):
    """Send a natural-language message to a specific agent and get its reply."""

    agent_id: str = Field(..., description="Target agent id returned by AgentCreateTool")
    message: str = Field(..., description="Message to send to the agent")


class AgentRemoveParams(BaseModel):
    """Remove an agent created with AgentCreateTool."""

    agent_id: str = Field(..., description="Agent id to remove")


def _manager(runtime: ToolRuntime):
    if runtime.agent_manager is None:
        raise FeatureDisabledError("Agent manager is not available")
    return runtime.agent_manager


async def create_agent(params: AgentCreateParams, runtime: ToolRuntime) -> Dict[str, Any]:
    agent_id = _manager(runtime).create(AgentConfig(**params.model_dump()))
    return {"agent_id": agent_id, "role": params.role}


async def send_agent_message(params: AgentSendMessageParams, runtime: ToolRuntime) -> Dict[str, Any]:
    manager = _manager(runtime)
    if not manager.exists(params.agent_id):
        return {"status": "error", "message": f"unknown agent id: {params.agent_id}"}
    reply = await manager.send(params.agent_id, params.message)
    return {"status": "ok", "reply": reply}


async def remove_agent(params: AgentRemoveParams, runtime: ToolRuntime) -> Dict[str, Any]:
    if not _manager(runtime).remove(params.agent_id):
        return {"status": "error", "message": f"unknown agent id: {params.agent_id}"}
    return {"status": "ok", "removed": params.agent_id}


AGENT_TOOL_TABLE = (
    (CREATE_AGENT_TOOL, AgentCreateParams, create_agent),
    (SEND_AGENT_MESSAGE_TOOL, AgentSendMessageParams, send_agent_message),
    (REMOVE_AGENT_TOOL, AgentRemoveParams, remove_agent),
)
