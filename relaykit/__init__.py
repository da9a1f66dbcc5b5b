"""
Relaykit

A tool-calling conversation orchestrator for IDE assistants, with an MCP
tool server multiplexer and role-based sub-agents.

Example usage:
    from relaykit.assistant import create_assistant, OpenAIResponsesBackend

    assistant = create_assistant(OpenAIResponsesBackend(), project_root=".")
    await assistant.start()

    task = assistant.session.send_message("Deploy the staging service")
    await task
"""

__version__ = "1.0.0"
__author__ = "Relaykit Team"

# Re-export main components for convenience
from .assistant import (
    # Core components
    PrimarySessionController,
    AgentManager,
    ExternalToolManager,
    BuiltInToolRegistry,
    create_assistant,

    # Backends and persistence
    OpenAIResponsesBackend,
    InMemoryPersistenceStore,
    JsonFilePersistenceStore,

    # Core models
    AssistantSettings,
    AgentConfig,
    ExternalServerConfig,
)

__all__ = [
    "PrimarySessionController",
    "AgentManager",
    "ExternalToolManager",
    "BuiltInToolRegistry",
    "create_assistant",
    "OpenAIResponsesBackend",
    "InMemoryPersistenceStore",
    "JsonFilePersistenceStore",
    "AssistantSettings",
    "AgentConfig",
    "ExternalServerConfig",
]
