"""
Built-in tool registry.

This module provides the explicit table of built-in tools: each entry maps a
stable name to a pydantic parameter model (how arguments are deserialized)
and an async handler (how the tool is invoked). The registry filters entries
by the detected project environment and caches the result per environment
signature.
"""

import inspect
import json
import logging
from typing import (
    TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, Union
)

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import ToolGroup
from ..core.exceptions import UnknownTargetError
from ..core.interfaces import BuiltInToolBackend, DisplaySink, LoggingDisplaySink
from ..core.models import ToolDeclaration, ToolVisibility
from .environment import ProjectEnvironment

if TYPE_CHECKING:
    from ..coordinator.agent_manager import AgentManager
    from ..tools.external_tool_manager import ExternalToolManager
    from ..tools.scope import ToolScopeSelector

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any, "ToolRuntime"], Union[Awaitable[Any], Any]]


class ToolRuntime:
    """Services handed to built-in tool handlers.

    Hosts attach their own services (file system, editor, test runners) through
    ``extras``.
    """

    def __init__(
        self,
        registry: "BuiltInToolRegistry",
        environment: ProjectEnvironment,
        external_tools: Optional["ExternalToolManager"] = None,
        agent_manager: Optional["AgentManager"] = None,
        scope_selector: Optional["ToolScopeSelector"] = None,
        display: Optional[DisplaySink] = None,
        extras: Optional[Dict[str, Any]] = None
    ):
        self.registry = registry
        self.environment = environment
        self.external_tools = external_tools
        self.agent_manager = agent_manager
        self.scope_selector = scope_selector
        self.display = display or LoggingDisplaySink()
        self.extras = dict(extras or {})

    def without_scope(self) -> "ToolRuntime":
        """Copy of this runtime whose tools cannot change the tool scope."""
        return ToolRuntime(
            registry=self.registry,
            environment=self.environment,
            external_tools=self.external_tools,
            agent_manager=self.agent_manager,
            display=self.display,
            extras=self.extras,
        )


class BuiltInToolEntry(BaseModel):
    """One row of the built-in tool table."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(..., description="Stable tool name", min_length=1)
    description: str = Field(default="", description="Description advertised to the model")
    params_model: Type[BaseModel] = Field(..., description="Argument model")
    handler: Callable[..., Any] = Field(..., description="Handler receiving (params, runtime)")
    group: ToolGroup = Field(default=ToolGroup.GENERIC, description="Availability group")
    enabled_when: Optional[Callable[[ProjectEnvironment], bool]] = Field(
        None, description="Extra availability predicate"
    )

    def parameters_schema(self) -> Dict[str, Any]:
        schema = self.params_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        return schema

    def declaration(self) -> ToolDeclaration:
        return ToolDeclaration(
            name=self.name,
            description=self.description or (self.params_model.__doc__ or "").strip(),
            parameters=self.parameters_schema(),
        )


def group_enabled(group: ToolGroup, env: ProjectEnvironment) -> bool:
    if group == ToolGroup.GENERIC:
        return True
    if group == ToolGroup.AGENTIC:
        return env.agentic_enabled
    if group == ToolGroup.TERMINAL:
        return env.terminal_enabled
    if env.root is None:
        # Unknown project: keep every project-type tool
        return True
    return {
        ToolGroup.GRADLE: env.gradle,
        ToolGroup.GO: env.go,
        ToolGroup.PYTHON: env.python,
        ToolGroup.NODE: env.node,
    }.get(group, False)


class BuiltInToolRegistry(BuiltInToolBackend):
    """Registry for built-in tools.

    This class provides:
    - Registration and unregistration of tool entries
    - Environment-aware tool lists, cached by environment signature
    - Declarations with JSON schemas derived from the parameter models
    - Invocation by name with validated arguments
    """

    def __init__(self):
        self._entries: Dict[str, BuiltInToolEntry] = {}
        self._cache: Optional[Tuple[str, List[BuiltInToolEntry]]] = None

    def register(self, entry: BuiltInToolEntry) -> None:
        """Register a tool entry, replacing any entry with the same name."""
        if entry.name in self._entries:
            logger.warning(f"Overriding existing built-in tool: {entry.name}")
        self._entries[entry.name] = entry
        self._cache = None
        logger.debug(f"Registered built-in tool: {entry.name} ({entry.group})")

    def register_tool(
        self,
        name: str,
        params_model: Type[BaseModel],
        handler: ToolHandler,
        description: str = "",
        group: ToolGroup = ToolGroup.GENERIC,
        enabled_when: Optional[Callable[[ProjectEnvironment], bool]] = None
    ) -> BuiltInToolEntry:
        entry = BuiltInToolEntry(
            name=name,
            description=description,
            params_model=params_model,
            handler=handler,
            group=group,
            enabled_when=enabled_when,
        )
        self.register(entry)
        return entry

    def unregister(self, name: str) -> bool:
        if self._entries.pop(name, None) is None:
            return False
        self._cache = None
        logger.debug(f"Unregistered built-in tool: {name}")
        return True

    def get(self, name: str) -> Optional[BuiltInToolEntry]:
        return self._entries.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._entries

    def names(self) -> List[str]:
        return sorted(self._entries)

    def tools_for(self, env: ProjectEnvironment) -> List[BuiltInToolEntry]:
        """Get the entries available in an environment."""
        signature = env.signature()
        cached = self._cache
        if cached is not None and cached[0] == signature:
            return list(cached[1])

        tools = []
        for entry in self._entries.values():
            if not group_enabled(entry.group, env):
                continue
            if entry.enabled_when is not None and not entry.enabled_when(env):
                continue
            tools.append(entry)

        self._cache = (signature, tools)
        logger.debug(f"Built-in tool list computed for {signature}: {len(tools)} tools")
        return list(tools)

    def available_names(self, env: ProjectEnvironment) -> List[str]:
        return sorted(entry.name for entry in self.tools_for(env))

    def declarations(
        self,
        env: ProjectEnvironment,
        visibility: Optional[ToolVisibility] = None
    ) -> List[ToolDeclaration]:
        """Get declarations of available tools, filtered by visibility."""
        return [
            entry.declaration()
            for entry in self.tools_for(env)
            if visibility is None or visibility.allows_builtin(entry.name)
        ]

    def list_available(self, env: ProjectEnvironment) -> List[ToolDeclaration]:
        return self.declarations(env)

    async def invoke(self, name: str, raw_args_json: str, runtime: ToolRuntime) -> Any:
        """
        Invoke a built-in tool.

        Args:
            name: Tool name
            raw_args_json: Raw JSON arguments; anything but a JSON object counts as {}
            runtime: Services for the handler

        Returns:
            Whatever the handler returns

        Raises:
            UnknownTargetError: If no tool has this name
            pydantic.ValidationError: If arguments do not fit the parameter model
        """
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownTargetError(f"Unknown built-in tool: {name}", context={"tool": name})

        try:
            args = json.loads(raw_args_json or "{}")
        except (TypeError, ValueError):
            logger.warning(f"Unparseable arguments for {name}, using {{}}")
            args = {}
        if not isinstance(args, dict):
            args = {}

        params = entry.params_model.model_validate(args)
        result = entry.handler(params, runtime)
        if inspect.isawaitable(result):
            result = await result
        return result
