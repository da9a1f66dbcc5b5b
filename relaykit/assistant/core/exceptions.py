"""
Exception classes for the assistant core.

This module defines the hierarchy of exceptions used by the assistant.
Tool execution and transport failures are normally converted into structured
results before they reach a caller; these exceptions are raised internally
and at the few public seams that are allowed to fail (agent creation,
backend calls).
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone

from .enums import ErrorCode


class RelayError(Exception):
    """Base exception for all assistant errors.

    This is the root exception class that all other exceptions inherit from.
    It provides common functionality for error tracking and debugging.
    """

    default_code: Optional[ErrorCode] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if error_code is None and self.default_code is not None:
            error_code = self.default_code.value
        self.error_code = error_code
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat()
        }


# Transport-related exceptions
class TransportError(RelayError):
    """Base exception for external tool server transport errors."""

    def __init__(
        self,
        message: str,
        server_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.server_name = server_name


class TransportUnavailableError(TransportError):
    """Raised when a connection cannot be spawned or established."""
    default_code = ErrorCode.TRANSPORT_UNAVAILABLE


class DiscoveryFailedError(TransportError):
    """Raised when a server's tool list cannot be fetched."""
    default_code = ErrorCode.DISCOVERY_FAILED


# Tool-related exceptions
class ToolError(RelayError):
    """Base exception for tool errors."""

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, context)
        self.tool_name = tool_name


class ToolExecutionError(ToolError):
    """Raised when a built-in or external tool fails."""
    default_code = ErrorCode.TOOL_EXECUTION_FAILED


class UnknownTargetError(RelayError):
    """Raised when a tool name or agent id does not resolve."""
    default_code = ErrorCode.UNKNOWN_TARGET


class FeatureDisabledError(RelayError):
    """Raised when agentic mode is switched off."""
    default_code = ErrorCode.FEATURE_DISABLED


class BackendError(RelayError):
    """Raised when the completion backend returns an unusable response."""
    pass
