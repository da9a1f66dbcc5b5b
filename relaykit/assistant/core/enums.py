"""
Enumerations for the assistant core.

This module defines the enums used throughout the assistant, providing
type safety and clear definitions for transports, turn items and error kinds.
"""

from enum import Enum


class TransportKind(str, Enum):
    """External tool server transport enumeration.

    - SUBPROCESS: Child process speaking over its standard streams
    - WEBSOCKET: WebSocket endpoint (ws:// or wss://)
    - HTTP_STREAM: Streamable HTTP endpoint (http:// or https://)
    """
    SUBPROCESS = "subprocess"
    WEBSOCKET = "websocket"
    HTTP_STREAM = "http_stream"

    def __str__(self) -> str:
        return self.value


class MessageRole(str, Enum):
    """Role of a conversation message."""
    USER = "user"
    SYSTEM = "system"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class TurnState(str, Enum):
    """Conversation turn state enumeration.

    Defines the states a logical turn sequence moves through:
    - AWAITING_RESPONSE: Request submitted to the completion backend
    - PROCESSING_OUTPUT: Interpreting response output items
    - EXECUTING_TOOLS: Running queued function calls
    - DONE: No more function calls, text returned
    """
    AWAITING_RESPONSE = "awaiting_response"
    PROCESSING_OUTPUT = "processing_output"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


class ErrorCode(str, Enum):
    """Error kinds carried by structured tool and connection results."""
    CONFIG_INVALID = "config_invalid"
    TRANSPORT_UNAVAILABLE = "transport_unavailable"
    DISCOVERY_FAILED = "discovery_failed"
    MISSING_REQUIRED_PARAMETER = "missing_required_parameter"
    TOOL_EXECUTION_FAILED = "tool_execution_failed"
    UNHANDLED_EXCEPTION = "unhandled_exception"
    TIMEOUT = "timeout"
    FEATURE_DISABLED = "feature_disabled"
    UNKNOWN_TARGET = "unknown_target"

    def __str__(self) -> str:
        return self.value


class ToolGroup(str, Enum):
    """Built-in tool group enumeration.

    Groups gate a built-in tool on the detected environment:
    - GENERIC: Always available
    - GRADLE / GO / PYTHON / NODE: Only when that project type is detected
    - AGENTIC: Only when agentic mode is enabled
    - TERMINAL: Only when the terminal tool is enabled
    """
    GENERIC = "generic"
    GRADLE = "gradle"
    GO = "go"
    PYTHON = "python"
    NODE = "node"
    AGENTIC = "agentic"
    TERMINAL = "terminal"

    def __str__(self) -> str:
        return self.value


class AgentEvent(str, Enum):
    """Roster and task lifecycle notifications emitted by the agent manager."""
    AGENTS_CHANGED = "agents"
    AGENT_REMOVED = "agent_removed"
    AGENT_STOPPED = "agent_stopped"
    AGENTS_STOPPED = "agents_stopped"
    AGENTS_RESET = "agents_reset"
    TASK_STARTED = "agent_task_started"
    TASK_FINISHED = "agent_task_finished"

    def __str__(self) -> str:
        return self.value


class SessionEvent(str, Enum):
    """Notifications emitted by the primary session controller."""
    SESSION_CHANGED = "session"
    IN_PROGRESS_CHANGED = "inProgress"

    def __str__(self) -> str:
        return self.value
