"""
Tool-calling assistant package.

This package provides a conversation orchestrator that drives a remote
language model through multi-round tool use, together with a multiplexer for
external MCP tool servers and role-based sub-agents.
"""

# Core components
from .coordinator.session_controller import PrimarySessionController
from .coordinator.agent_manager import AgentManager
from .coordinator.turn_engine import ConversationTurnEngine, TurnRequest
from .tools.external_tool_manager import ExternalToolManager
from .tools.router import ToolRouter
from .registry.tool_registry import BuiltInToolRegistry, ToolRuntime
from .registry.environment import ProjectEnvironment
from .builtin import register_default_tools
from .utils.assistant_factory import Assistant, create_assistant

# Backends and persistence
from .adapters.openai_responses_adapter import OpenAIResponsesBackend
from .memory.persistence import InMemoryPersistenceStore, JsonFilePersistenceStore

# Core models and enums
from .core.models import (
    AssistantSettings, AgentConfig, ExternalServerConfig, ExternalServersFile,
    ToolSchema, ToolCall, ToolDeclaration, ToolVisibility, ExternalCallResult,
    MessageItem, FunctionCallOutputItem, ReasoningOutput, MessageOutput,
    ConversationState, CompletionResponse, TurnOutcome, EditorContext
)

from .core.enums import (
    TransportKind, MessageRole, TurnState, ErrorCode, ToolGroup,
    AgentEvent, SessionEvent
)

from .core.interfaces import (
    CompletionBackend, DisplaySink, LoggingDisplaySink, SpeechSink,
    ConfigurationSource, PersistenceStore, ContextProvider
)

# Exceptions
from .core.exceptions import (
    RelayError, TransportUnavailableError, DiscoveryFailedError,
    ToolExecutionError, UnknownTargetError, FeatureDisabledError, BackendError
)

__version__ = "1.0.0"

__all__ = [
    # Core components
    "PrimarySessionController",
    "AgentManager",
    "ConversationTurnEngine",
    "TurnRequest",
    "ExternalToolManager",
    "ToolRouter",
    "BuiltInToolRegistry",
    "ToolRuntime",
    "ProjectEnvironment",
    "register_default_tools",
    "Assistant",
    "create_assistant",

    # Backends and persistence
    "OpenAIResponsesBackend",
    "InMemoryPersistenceStore",
    "JsonFilePersistenceStore",

    # Core models
    "AssistantSettings",
    "AgentConfig",
    "ExternalServerConfig",
    "ExternalServersFile",
    "ToolSchema",
    "ToolCall",
    "ToolDeclaration",
    "ToolVisibility",
    "ExternalCallResult",
    "MessageItem",
    "FunctionCallOutputItem",
    "ReasoningOutput",
    "MessageOutput",
    "ConversationState",
    "CompletionResponse",
    "TurnOutcome",
    "EditorContext",

    # Enums
    "TransportKind",
    "MessageRole",
    "TurnState",
    "ErrorCode",
    "ToolGroup",
    "AgentEvent",
    "SessionEvent",

    # Interfaces
    "CompletionBackend",
    "DisplaySink",
    "LoggingDisplaySink",
    "SpeechSink",
    "ConfigurationSource",
    "PersistenceStore",
    "ContextProvider",

    # Exceptions
    "RelayError",
    "TransportUnavailableError",
    "DiscoveryFailedError",
    "ToolExecutionError",
    "UnknownTargetError",
    "FeatureDisabledError",
    "BackendError",
]
