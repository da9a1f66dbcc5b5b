"""
Tool declarations advertised to the completion backend.

Built-in declarations come from the registry; external tools are renamed
through the name mapper and described with their server and original name so
the model can still refer to them as ``server.method``.
"""

import logging
from typing import Any, Dict, List, Mapping, Sequence

from ..core.models import ToolDeclaration, ToolSchema, ToolVisibility
from ..registry.environment import ProjectEnvironment
from ..registry.tool_registry import BuiltInToolRegistry
from .name_mapper import ToolNameMapper

logger = logging.getLogger(__name__)


def external_parameters(tool: ToolSchema) -> Dict[str, Any]:
    """JSON schema object for an external tool's arguments."""
    schema: Dict[str, Any] = {
        "type": "object",
        "properties": {key: dict(value) for key, value in tool.properties.items()},
    }
    if tool.required:
        schema["required"] = list(tool.required)
    return schema


def external_description(tool: ToolSchema) -> str:
    prefix = f"[MCP {tool.server}.{tool.name}]"
    return f"{prefix} {tool.description}".strip()


class ToolDeclarationBuilder:
    """Builds the declaration set for one backend request."""

    def __init__(self, registry: BuiltInToolRegistry, mapper: ToolNameMapper):
        self._registry = registry
        self._mapper = mapper

    def build(
        self,
        env: ProjectEnvironment,
        visibility: ToolVisibility,
        tools_by_server: Mapping[str, Sequence[ToolSchema]]
    ) -> List[ToolDeclaration]:
        """
        Build declarations for built-in and external tools.

        The name map is rebuilt from every cached external tool, including the
        ones hidden by ``visibility``, so flat names stay stable across turns.

        Args:
            env: Environment for built-in tool availability
            visibility: Which tools this request may see
            tools_by_server: Cached external tools per server

        Returns:
            Declarations, built-ins first
        """
        declarations = self._registry.declarations(env, visibility)

        self._mapper.rebuild({
            server: [tool.name for tool in tools]
            for server, tools in tools_by_server.items()
        })

        if not visibility.include_external:
            return declarations

        external_count = 0
        for server in sorted(tools_by_server):
            for tool in tools_by_server[server]:
                if not visibility.allows_external(server, tool.name):
                    continue
                name = self._mapper.name_for(server, tool.name)
                if name is None:
                    continue
                declarations.append(ToolDeclaration(
                    name=name,
                    description=external_description(tool),
                    parameters=external_parameters(tool),
                ))
                external_count += 1

        logger.debug(f"Declared {len(declarations)} tools ({external_count} external)")
        return declarations
