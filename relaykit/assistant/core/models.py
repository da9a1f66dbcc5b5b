"""
Core data models for the assistant.

This module defines the data structures exchanged between the session
controller, the turn engine, the tool router and the external tool manager,
providing type safety and validation.
"""

import json
from pathlib import Path
from typing import Dict, Any, List, Optional, Set, Union, Literal
from datetime import datetime, timezone
from urllib.parse import urlparse
import uuid as uuid_lib

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic_core import to_jsonable_python

from .enums import TransportKind, MessageRole, ErrorCode


WEBSOCKET_PREFERENCES = {"websocket", "ws", "wss"}
HTTP_PREFERENCES = {"sse", "http", "https", "streamable-http", "streamable_http"}


class ExternalServerConfig(BaseModel):
    """Connection parameters for one external tool server.

    Immutable snapshot compared by value: a server whose config compares
    unequal after a reload is restarted.
    """

    model_config = ConfigDict(
        frozen=True,
        extra='ignore'
    )

    command: Optional[str] = Field(None, description="Executable for subprocess servers")
    args: List[str] = Field(default_factory=list, description="Command arguments")
    transport: Optional[str] = Field(None, description="Transport preference: stdio, websocket, sse, http")
    env: Optional[Dict[str, str]] = Field(None, description="Extra environment for subprocess servers")
    url: Optional[str] = Field(None, description="Endpoint for network servers")
    headers: Optional[Dict[str, str]] = Field(None, description="Extra request headers for network servers")

    @property
    def kind(self) -> TransportKind:
        """Transport variant selected by preference first, URL scheme otherwise."""
        if not self.url:
            return TransportKind.SUBPROCESS
        preference = (self.transport or "").strip().lower()
        if preference in WEBSOCKET_PREFERENCES:
            return TransportKind.WEBSOCKET
        if preference in HTTP_PREFERENCES:
            return TransportKind.HTTP_STREAM
        scheme = self.url_scheme()
        if scheme in ("ws", "wss"):
            return TransportKind.WEBSOCKET
        return TransportKind.HTTP_STREAM

    def url_scheme(self) -> Optional[str]:
        if not self.url:
            return None
        return (urlparse(self.url).scheme or "").lower() or None


class ExternalServersFile(BaseModel):
    """The `{"mcpServers": {...}}` configuration document."""

    model_config = ConfigDict(
        extra='ignore',
        populate_by_name=True
    )

    mcp_servers: Dict[str, ExternalServerConfig] = Field(
        default_factory=dict,
        alias="mcpServers",
        description="Configured servers keyed by unique name"
    )


class ConfigLoadResult(BaseModel):
    """Outcome of loading the external server configuration."""

    file: Optional[ExternalServersFile] = Field(None, description="Parsed configuration")
    parse_error: Optional[str] = Field(None, description="Parse failure message")
    warnings: List[str] = Field(default_factory=list, description="Per-entry validation warnings")

    def is_valid(self) -> bool:
        return self.parse_error is None


class ToolSchema(BaseModel):
    """Tool advertised by an external server."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra='forbid'
    )

    server: str = Field(..., description="Server that advertised this tool")
    name: str = Field(..., description="Tool name as declared by its server", min_length=1)
    description: str = Field(default="", description="Free-text description")
    properties: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Parameter name -> JSON schema fragment"
    )
    required: List[str] = Field(default_factory=list, description="Required parameter names")
    discovered_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Tool discovery time"
    )

    @classmethod
    def from_input_schema(
        cls,
        server: str,
        name: str,
        description: Optional[str],
        input_schema: Optional[Dict[str, Any]]
    ) -> "ToolSchema":
        schema = input_schema if isinstance(input_schema, dict) else {}
        properties = schema.get("properties") or {}
        required = schema.get("required") or []
        return cls(
            server=server,
            name=name,
            description=description or "",
            properties={
                str(key): dict(value) if isinstance(value, dict) else {}
                for key, value in properties.items()
            },
            required=[str(r) for r in required],
        )

    def property_types(self) -> Dict[str, Optional[str]]:
        """Declared JSON type per property (None when undeclared)."""
        types: Dict[str, Optional[str]] = {}
        for key, definition in self.properties.items():
            declared = definition.get("type")
            if isinstance(declared, list):
                declared = next((t for t in declared if t != "null"), None)
            types[key] = declared.lower() if isinstance(declared, str) else None
        return types

    @property
    def qualified_name(self) -> str:
        return f"{self.server}.{self.name}"


class ToolCall(BaseModel):
    """A function call issued by the completion backend."""

    model_config = ConfigDict(extra='forbid')

    type: Literal["function_call"] = "function_call"
    call_id: str = Field(..., description="Server-issued call identifier", min_length=1)
    name: str = Field(..., description="Built-in or mapped external tool name", min_length=1)
    arguments: str = Field(default="{}", description="Raw JSON argument payload")

    def parsed_arguments(self) -> Dict[str, Any]:
        """Argument map, or an empty map when the payload is not a JSON object."""
        try:
            parsed = json.loads(self.arguments or "{}")
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}


class ToolResult(BaseModel):
    """Outcome of one tool invocation; always JSON-serializable."""

    tool: str = Field(..., description="Originating tool name")
    success: bool = Field(..., description="Whether execution succeeded")
    payload: Any = Field(None, description="Success payload")
    code: Optional[ErrorCode] = Field(None, description="Error kind if failed")
    hint: Optional[str] = Field(None, description="Optional error hint")

    @classmethod
    def ok(cls, tool: str, payload: Any) -> "ToolResult":
        return cls(tool=tool, success=True, payload=to_jsonable_python(payload))

    @classmethod
    def error(cls, tool: str, code: ErrorCode, hint: Optional[str] = None) -> "ToolResult":
        return cls(tool=tool, success=False, code=code, hint=hint)

    def to_payload(self) -> Any:
        if self.success:
            return self.payload
        body: Dict[str, Any] = {"status": "error", "tool": self.tool, "code": str(self.code)}
        if self.hint is not None:
            body["hint"] = self.hint
        return body


class ExternalCallResult(BaseModel):
    """Result of invoking a method on an external tool server."""

    server: str = Field(..., description="Target server")
    method: str = Field(..., description="Target method")
    success: bool = Field(..., description="Whether the call succeeded")
    code: Optional[ErrorCode] = Field(None, description="Error kind if failed")
    text: str = Field(default="", description="Textual result or error description")
    duration_ms: Optional[int] = Field(None, description="Call duration", ge=0)

    def is_successful(self) -> bool:
        return self.success and self.code is None


# Conversation items

class MessageItem(BaseModel):
    """A user, system or assistant message in the conversation input."""

    type: Literal["message"] = "message"
    role: MessageRole = Field(..., description="Message role")
    text: str = Field(..., description="Message text")

    @classmethod
    def user(cls, text: str) -> "MessageItem":
        return cls(role=MessageRole.USER, text=text)

    @classmethod
    def system(cls, text: str) -> "MessageItem":
        return cls(role=MessageRole.SYSTEM, text=text)


class FunctionCallOutputItem(BaseModel):
    """The result of a function call, keyed by the original call id."""

    type: Literal["function_call_output"] = "function_call_output"
    call_id: str = Field(..., description="Originating call id", min_length=1)
    output: Any = Field(None, description="JSON-serializable payload")


InputItem = Union[MessageItem, FunctionCallOutputItem]


class ReasoningOutput(BaseModel):
    """Reasoning summary emitted by the backend."""

    type: Literal["reasoning"] = "reasoning"
    summary: List[str] = Field(default_factory=list, description="Summary fragments")


class MessageOutput(BaseModel):
    """Assistant message emitted by the backend."""

    type: Literal["message"] = "message"
    text: str = Field(default="", description="Message text")
    speech_text: Optional[str] = Field(None, description="Short text meant to be spoken")


OutputItem = Union[ReasoningOutput, MessageOutput, ToolCall]


class ConversationState(BaseModel):
    """Pending input items plus the backend's resume point."""

    items: List[InputItem] = Field(default_factory=list, description="Ordered turn items")
    continuation_token: Optional[str] = Field(None, description="Opaque resume token")


class ToolDeclaration(BaseModel):
    """Function declaration advertised to the completion backend."""

    name: str = Field(..., description="Protocol-safe function name")
    description: str = Field(default="", description="Tool description")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the arguments"
    )


class CompletionResponse(BaseModel):
    """What the completion backend returns for one request."""

    output_items: List[OutputItem] = Field(default_factory=list, description="Ordered output items")
    continuation_token: Optional[str] = Field(None, description="New resume token")


class ToolVisibility(BaseModel):
    """Which tools a turn may see.

    None allows every tool of that kind; an empty set allows none.
    """

    allowed_builtin_names: Optional[Set[str]] = Field(None, description="Allowed built-in names")
    allowed_external_names: Optional[Set[str]] = Field(None, description="Allowed 'server.method' names")
    include_external: bool = Field(default=True, description="Whether external tools are declared at all")

    @classmethod
    def allow_all(cls) -> "ToolVisibility":
        return cls()

    def allows_builtin(self, name: str) -> bool:
        return self.allowed_builtin_names is None or name in self.allowed_builtin_names

    def allows_external(self, server: str, method: str) -> bool:
        if not self.include_external:
            return False
        return self.allowed_external_names is None or f"{server}.{method}" in self.allowed_external_names


class TurnOutcome(BaseModel):
    """Result of driving one logical turn to completion."""

    text: str = Field(default="", description="Accumulated assistant text, trimmed")
    continuation_token: Optional[str] = Field(None, description="Final resume token")
    rounds: int = Field(default=0, description="Backend requests made", ge=0)
    tool_calls: int = Field(default=0, description="Function calls executed", ge=0)


# Agents

class AgentConfig(BaseModel):
    """Configuration for creating a sub-agent."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    role: str = Field(default="agent", description="Agent role label", min_length=1, max_length=100)
    model: Optional[str] = Field(None, description="Optional model override")
    instructions: Optional[str] = Field(None, description="Role-specific instructions")
    include_external: bool = Field(default=True, description="Whether external tools are visible")
    allow_builtin_tools: bool = Field(default=True, description="Whether built-in tools are visible")
    allowed_external_servers: Optional[List[str]] = Field(None, description="Server names, guidance only")
    allowed_builtin_names: Optional[Set[str]] = Field(None, description="Explicit built-in allow-list")
    allowed_external_names: Optional[Set[str]] = Field(None, description="Explicit 'server.method' allow-list")

    def visibility(self) -> ToolVisibility:
        builtins: Optional[Set[str]] = self.allowed_builtin_names
        if not self.allow_builtin_tools:
            builtins = set()
        return ToolVisibility(
            allowed_builtin_names=set(builtins) if builtins is not None else None,
            allowed_external_names=(
                set(self.allowed_external_names) if self.allowed_external_names is not None else None
            ),
            include_external=self.include_external,
        )


class AgentSession(BaseModel):
    """A named sub-agent and its private continuation token."""

    model_config = ConfigDict(validate_assignment=True)

    agent_id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        description="Unique agent identifier"
    )
    config: AgentConfig = Field(..., description="Agent configuration")
    continuation_token: Optional[str] = Field(None, description="Private resume token")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp"
    )

    @property
    def label(self) -> str:
        return f"AI({self.config.role})"


class AgentSnapshot(BaseModel):
    """Roster entry."""

    agent_id: str
    role: str
    instructions: Optional[str] = None
    model: Optional[str] = None


class AgentTaskResult(BaseModel):
    """Outcome of one unit of work sent to an agent."""

    request_id: str = Field(..., description="Request identifier")
    agent_id: str = Field(..., description="Target agent")
    ok: bool = Field(..., description="Whether the agent replied")
    text: Optional[str] = Field(None, description="Reply text")
    error: Optional[str] = Field(None, description="Error message if failed")


class PersistedAgent(BaseModel):
    """Agent state stored across restarts."""

    agent_id: str
    role: str
    model: Optional[str] = None
    instructions: Optional[str] = None
    continuation_token: Optional[str] = None


class EditorContext(BaseModel):
    """Current editor state supplied by the host for context injection."""

    file_path: str = Field(..., description="Project-relative path of the open file")
    version: Optional[str] = Field(None, description="File version stamp")
    caret_line: Optional[int] = Field(None, ge=0)
    caret_column: Optional[int] = Field(None, ge=0)
    selected_text: Optional[str] = None
    selection_start_line: Optional[int] = None
    selection_start_column: Optional[int] = None
    selection_end_line: Optional[int] = None
    selection_end_column: Optional[int] = None

    def has_selection(self) -> bool:
        return None not in (
            self.selected_text,
            self.selection_start_line,
            self.selection_start_column,
            self.selection_end_line,
            self.selection_end_column,
        )


class AssistantSettings(BaseModel):
    """Settings for the assistant core."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    agentic_enabled: bool = Field(default=True, description="Allow sub-agents")
    terminal_tool_enabled: bool = Field(default=False, description="Expose terminal tools")
    chat_model: str = Field(default="gpt-5-mini", description="Model for the primary session", min_length=1)
    max_output_tokens: Optional[int] = Field(None, description="Output token cap per request", ge=1)
    reasoning_effort: Optional[str] = Field("low", description="Reasoning effort hint")
    base_instructions: str = Field(
        default="You are a coding assistant embedded in the user's IDE. Use the available tools to act on the project.",
        description="Global instructions"
    )
    extra_instructions: Optional[str] = Field(None, description="User custom instructions")

    external_call_timeout_seconds: float = Field(default=120.0, description="External call bound", gt=0)
    connect_timeout_seconds: float = Field(default=30.0, description="Connection setup bound", gt=0)
    request_timeout_seconds: float = Field(default=300.0, description="Network read bound", gt=0)
    max_background_workers: int = Field(default=4, description="Concurrent connect/discovery jobs", ge=1)

    default_allow_all_tools: bool = Field(default=True, description="Tool policy when no scope is selected")
    speech_enabled: bool = Field(default=False, description="Speak primary-session replies")
    config_relative_path: str = Field(
        default=".relaykit/mcp-servers.json",
        description="External server config, relative to the project root"
    )

    @field_validator("reasoning_effort")
    @classmethod
    def _validate_effort(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in ("minimal", "low", "medium", "high"):
            raise ValueError(f"Unsupported reasoning effort: {value}")
        return value

    def merged_instructions(self) -> str:
        extra = (self.extra_instructions or "").strip()
        if extra:
            return self.base_instructions + "\n\n# User Custom Instructions\n" + extra
        return self.base_instructions

    @classmethod
    def load(cls, path: Union[str, Path]) -> "AssistantSettings":
        """Load settings from a JSON file."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
