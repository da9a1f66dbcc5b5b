"""
Core interfaces for the assistant.

This module defines the collaborator contracts the assistant core depends on.
Hosts supply implementations for the completion backend, display, speech,
configuration, persistence and editor context; the core ships simple defaults
where one makes sense.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from .models import (
    CompletionResponse, ConfigLoadResult, EditorContext, InputItem,
    PersistedAgent, ToolDeclaration
)

logger = logging.getLogger(__name__)


class CompletionBackend(ABC):
    """Abstract remote language-model completion backend.

    One call submits the pending input items of a turn and returns the
    ordered output items together with a new continuation token.
    """

    @abstractmethod
    async def complete(
        self,
        instructions: str,
        input_items: Sequence[InputItem],
        continuation_token: Optional[str],
        model: str,
        tool_declarations: Sequence[ToolDeclaration]
    ) -> CompletionResponse:
        """Submit one request to the backend.

        Args:
            instructions: System instructions for this request
            input_items: Pending input items, in order
            continuation_token: Resume point, or None for a fresh conversation
            model: Model identifier
            tool_declarations: Tools the backend may call

        Returns:
            Output items and the new continuation token
        """
        pass


class BuiltInToolBackend(ABC):
    """Abstract source of built-in tools."""

    @abstractmethod
    def list_available(self, env: Any) -> List[ToolDeclaration]:
        """List the built-in tool declarations available in an environment."""
        pass

    @abstractmethod
    async def invoke(self, name: str, raw_args_json: str, runtime: Any) -> Any:
        """Invoke a built-in tool.

        Raises on internal failure; the tool router converts the exception
        into a structured error payload.
        """
        pass

    @abstractmethod
    def has_tool(self, name: str) -> bool:
        """Check whether a built-in tool with this name is registered."""
        pass


class DisplaySink(ABC):
    """Fire-and-forget display collaborator."""

    @abstractmethod
    def post(self, label: str, text: str) -> None:
        """Show a labelled message. Must never raise."""
        pass


class LoggingDisplaySink(DisplaySink):
    """Display sink that writes every message to the log."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    def post(self, label: str, text: str) -> None:
        self._log.info(f"[{label}] {text}")


class SpeechSink(ABC):
    """Best-effort speech collaborator used by the primary session."""

    @abstractmethod
    async def speak(self, text: str) -> None:
        """Speak the text. Failures are ignored by the caller."""
        pass


class ConfigurationSource(ABC):
    """Supplies the current external server configuration on demand."""

    @abstractmethod
    def load(self) -> ConfigLoadResult:
        """Load the configuration.

        Malformed configuration is reported through the result, never raised.
        """
        pass


class PersistenceStore(ABC):
    """Stores conversation resume points across restarts."""

    @abstractmethod
    def load_primary_token(self) -> Optional[str]:
        """Load the primary session's continuation token."""
        pass

    @abstractmethod
    def store_primary_token(self, token: Optional[str]) -> None:
        """Store (or clear, when None) the primary session's token."""
        pass

    @abstractmethod
    def load_agents(self) -> List[PersistedAgent]:
        """Load persisted sub-agents."""
        pass

    @abstractmethod
    def store_agents(self, agents: List[PersistedAgent]) -> None:
        """Replace the persisted sub-agent list."""
        pass


class ContextProvider(ABC):
    """Supplies the current editor state for context injection."""

    @abstractmethod
    def current_context(self) -> Optional[EditorContext]:
        """Return the focused file and caret/selection, or None."""
        pass
