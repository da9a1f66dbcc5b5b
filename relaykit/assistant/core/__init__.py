"""
Core abstractions for the assistant.

This module provides the interfaces, data models, enums and exceptions the
rest of the assistant is built on.
"""

from .interfaces import (
    CompletionBackend,
    BuiltInToolBackend,
    DisplaySink,
    LoggingDisplaySink,
    SpeechSink,
    ConfigurationSource,
    PersistenceStore,
    ContextProvider,
)

from .models import (
    # External servers
    ExternalServerConfig,
    ExternalServersFile,
    ConfigLoadResult,
    ToolSchema,
    ExternalCallResult,

    # Tool calls
    ToolCall,
    ToolResult,
    ToolDeclaration,
    ToolVisibility,

    # Conversation items
    MessageItem,
    FunctionCallOutputItem,
    InputItem,
    ReasoningOutput,
    MessageOutput,
    OutputItem,
    ConversationState,
    CompletionResponse,
    TurnOutcome,

    # Agents
    AgentConfig,
    AgentSession,
    AgentSnapshot,
    AgentTaskResult,
    PersistedAgent,

    # Host state and settings
    EditorContext,
    AssistantSettings,
)

from .enums import (
    TransportKind,
    MessageRole,
    TurnState,
    ErrorCode,
    ToolGroup,
    AgentEvent,
    SessionEvent,
)

from .exceptions import (
    RelayError,
    TransportError,
    TransportUnavailableError,
    DiscoveryFailedError,
    ToolError,
    ToolExecutionError,
    UnknownTargetError,
    FeatureDisabledError,
    BackendError,
)

__all__ = [
    # Interfaces
    "CompletionBackend",
    "BuiltInToolBackend",
    "DisplaySink",
    "LoggingDisplaySink",
    "SpeechSink",
    "ConfigurationSource",
    "PersistenceStore",
    "ContextProvider",

    # Models
    "ExternalServerConfig",
    "ExternalServersFile",
    "ConfigLoadResult",
    "ToolSchema",
    "ExternalCallResult",
    "ToolCall",
    "ToolResult",
    "ToolDeclaration",
    "ToolVisibility",
    "MessageItem",
    "FunctionCallOutputItem",
    "InputItem",
    "ReasoningOutput",
    "MessageOutput",
    "OutputItem",
    "ConversationState",
    "CompletionResponse",
    "TurnOutcome",
    "AgentConfig",
    "AgentSession",
    "AgentSnapshot",
    "AgentTaskResult",
    "PersistedAgent",
    "EditorContext",
    "AssistantSettings",

    # Enums
    "TransportKind",
    "MessageRole",
    "TurnState",
    "ErrorCode",
    "ToolGroup",
    "AgentEvent",
    "SessionEvent",

    # Exceptions
    "RelayError",
    "TransportError",
    "TransportUnavailableError",
    "DiscoveryFailedError",
    "ToolError",
    "ToolExecutionError",
    "UnknownTargetError",
    "FeatureDisabledError",
    "BackendError",
]
