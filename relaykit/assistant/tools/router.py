"""
Tool routing.

The router is the single entry point for executing one function call issued
by the model. It decides whether the call targets an external tool (through
the name mapper or a literal ``server.method`` name) or a built-in tool, runs
it, and turns the outcome into a JSON-serializable payload. Nothing raised by
a tool escapes the router; only cancellation propagates.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ValidationError
from pydantic_core import to_jsonable_python

from ..core.enums import ErrorCode
from ..core.exceptions import UnknownTargetError
from ..core.interfaces import BuiltInToolBackend, DisplaySink, LoggingDisplaySink
from ..core.models import ToolCall, ToolResult
from ..registry.tool_registry import ToolRuntime
from .external_tool_manager import ExternalToolManager
from .name_mapper import ToolNameMapper, resolve_dotted

logger = logging.getLogger(__name__)


def normalize_result(result: Any) -> Any:
    """Make a built-in tool result JSON-serializable."""
    if isinstance(result, str):
        return {"text": result}
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    return to_jsonable_python(result, fallback=str)


class BuiltInToolInvoker:
    """Runs built-in tools and normalizes their results."""

    def __init__(self, backend: BuiltInToolBackend):
        self._backend = backend

    def has_tool(self, name: str) -> bool:
        return self._backend.has_tool(name)

    async def invoke(self, name: str, raw_args_json: str, runtime: ToolRuntime) -> Any:
        result = await self._backend.invoke(name, raw_args_json, runtime)
        return normalize_result(result)


class ToolRouter:
    """Routes function calls to external or built-in tools."""

    def __init__(
        self,
        invoker: BuiltInToolInvoker,
        mapper: ToolNameMapper,
        external_tools: Optional[ExternalToolManager] = None,
        display: Optional[DisplaySink] = None
    ):
        self._invoker = invoker
        self._mapper = mapper
        self._external_tools = external_tools
        self._display = display or LoggingDisplaySink()

    def resolve_external(self, name: str) -> Optional[Tuple[str, str]]:
        """Resolve a call name to (server, method), or None for built-ins."""
        pair = self._mapper.resolve(name)
        if pair is not None:
            return pair
        if "." in name and not self._invoker.has_tool(name):
            return resolve_dotted(name)
        return None

    async def route(self, call: ToolCall, runtime: ToolRuntime) -> Any:
        """
        Execute one function call.

        Args:
            call: The call as issued by the model
            runtime: Services for built-in handlers

        Returns:
            JSON-serializable payload, success or structured error
        """
        name = call.name
        try:
            pair = self.resolve_external(name)
            if pair is not None:
                return await self._route_external(name, pair, call.parsed_arguments())
            return await self._invoker.invoke(name, call.arguments, runtime)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return self._unhandled(name, e)

    async def _route_external(
        self,
        name: str,
        pair: Tuple[str, str],
        arguments: Dict[str, Any]
    ) -> Dict[str, Any]:
        server, method = pair
        if self._external_tools is None:
            raise UnknownTargetError(f"No external tool manager for {server}.{method}")

        logger.debug(f"Routing {name} to external tool {server}.{method}")
        result = await self._external_tools.invoke(server, method, arguments)
        if result.success:
            return {"output": result.text}
        return {
            "status": "error",
            "tool": name,
            "code": str(result.code or ErrorCode.TOOL_EXECUTION_FAILED),
            "output": result.text,
        }

    def _unhandled(self, name: str, error: Exception) -> Any:
        hint: Optional[str] = None
        if isinstance(error, UnknownTargetError):
            hint = f"Unknown tool: {name}"
        elif isinstance(error, ValidationError):
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in error.errors()
            )
            hint = f"Invalid arguments: {problems}"

        logger.error(f"Tool {name} failed: {type(error).__name__}: {error}")
        try:
            self._display.post(f"Tool {name}", f"Failed: {type(error).__name__}: {error}")
        except Exception as e:
            logger.debug(f"Display post failed: {e}")

        return ToolResult.error(name, ErrorCode.UNHANDLED_EXCEPTION, hint=hint).to_payload()
