"""
Tool scope selection for the primary session.

The model can narrow the tools it sees with a sticky scope (kept until
cleared) or a per-turn scope (used by the next turn only). Both are merged
into a ``ToolVisibility`` right before each backend request.
"""

import logging
from typing import Callable, Collection, Dict, Iterable, List, Optional, Set, Tuple

from ..core.models import ToolVisibility

logger = logging.getLogger(__name__)

LIST_CATALOG_TOOL = "ListToolsCatalogTool"
SET_SCOPE_TOOL = "SetToolScopeTool"
CATALOG_TOOLS = frozenset({LIST_CATALOG_TOOL, SET_SCOPE_TOOL})

ServerResolver = Callable[[str], Collection[str]]


class ToolScopeSelector:
    """Sticky and per-turn sets of allowed tool names."""

    def __init__(self, default_allow_all: bool = True):
        self.default_allow_all = default_allow_all
        self._sticky_builtins: Set[str] = set()
        self._sticky_external: Set[str] = set()
        self._current_builtins: Set[str] = set()
        self._current_external: Set[str] = set()

    def set_scope(
        self,
        builtins: Optional[Iterable[str]] = None,
        external_methods: Optional[Iterable[str]] = None,
        external_servers: Optional[Iterable[str]] = None,
        sticky: bool = False,
        resolver: Optional[ServerResolver] = None
    ) -> Dict[str, object]:
        """
        Request a tool scope.

        Args:
            builtins: Built-in tool names
            external_methods: External tools as ``server.method``; other forms are dropped
            external_servers: Servers whose every method is enabled
            sticky: Add to the persistent scope instead of replacing the per-turn scope
            resolver: Maps a server name to its ``server.method`` names

        Returns:
            The accepted names and whether the sticky scope was changed
        """
        accepted_builtins = {name.strip() for name in builtins or [] if name and name.strip()}
        accepted_external = {
            name.strip() for name in external_methods or [] if name and "." in name.strip()
        }
        for server in external_servers or []:
            server = server.strip()
            if server and resolver is not None:
                accepted_external.update(resolver(server))

        if sticky:
            self._sticky_builtins.update(accepted_builtins)
            self._sticky_external.update(accepted_external)
        else:
            self._current_builtins = accepted_builtins
            self._current_external = accepted_external

        logger.debug(
            f"Tool scope set (sticky={sticky}): builtins={sorted(accepted_builtins)} "
            f"external={sorted(accepted_external)}"
        )
        return {
            "acceptedBuiltIns": sorted(accepted_builtins),
            "acceptedMcp": sorted(accepted_external),
            "stickyApplied": sticky,
        }

    def consume_current(self) -> Tuple[Set[str], Set[str]]:
        """Return and clear the per-turn scope."""
        builtins, external = self._current_builtins, self._current_external
        self._current_builtins = set()
        self._current_external = set()
        return builtins, external

    def get_sticky(self) -> Tuple[Set[str], Set[str]]:
        return set(self._sticky_builtins), set(self._sticky_external)

    def clear_sticky(self) -> None:
        self._sticky_builtins.clear()
        self._sticky_external.clear()

    def merged_visibility(self) -> ToolVisibility:
        """Visibility for the next primary-session request.

        Consumes the per-turn scope. With nothing selected the default policy
        applies: everything, or only the catalog tools.
        """
        current_builtins, current_external = self.consume_current()
        builtins = self._sticky_builtins | current_builtins
        external = self._sticky_external | current_external

        if not builtins and not external:
            if self.default_allow_all:
                return ToolVisibility.allow_all()
            return ToolVisibility(
                allowed_builtin_names=set(CATALOG_TOOLS),
                allowed_external_names=set(),
                include_external=False,
            )

        return ToolVisibility(
            allowed_builtin_names=builtins | CATALOG_TOOLS,
            allowed_external_names=external,
            include_external=bool(external),
        )

    def describe(self) -> Dict[str, List[str]]:
        return {
            "stickyBuiltIns": sorted(self._sticky_builtins),
            "stickyMcp": sorted(self._sticky_external),
            "currentBuiltIns": sorted(self._current_builtins),
            "currentMcp": sorted(self._current_external),
        }
