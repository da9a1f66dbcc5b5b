"""
Project environment detection.

The environment decides which built-in tool groups are available: project
type groups follow marker files under the project root, the agentic and
terminal groups follow settings.
"""

import logging
from collections import deque
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

from ..core.models import AssistantSettings

logger = logging.getLogger(__name__)

GO_SCAN_MAX_DIRS = 5000
GO_SCAN_IGNORED_DIRS = {".git", ".idea", "build", "out", "node_modules"}


def detect_gradle(root: Path) -> bool:
    return any(
        (root / marker).exists()
        for marker in ("gradlew", "gradlew.bat", "build.gradle", "build.gradle.kts")
    )


def detect_go(root: Path, max_dirs: int = GO_SCAN_MAX_DIRS) -> bool:
    """Look for go.mod breadth-first, then for .go files in the usual places."""
    if (root / "go.mod").exists():
        return True

    queue = deque([root])
    visited = 0
    while queue and visited < max_dirs:
        directory = queue.popleft()
        visited += 1
        if not directory.is_dir():
            continue
        if (directory / "go.mod").exists():
            return True
        try:
            children = list(directory.iterdir())
        except OSError:
            continue
        for child in children:
            if child.is_dir() and child.name.lower() not in GO_SCAN_IGNORED_DIRS:
                queue.append(child)

    for directory in (root, root / "cmd", root / "pkg", root / "internal"):
        if not directory.is_dir():
            continue
        try:
            if any(f.is_file() and f.suffix.lower() == ".go" for f in directory.iterdir()):
                return True
        except OSError:
            continue
    return False


def detect_python(root: Path) -> bool:
    return any(
        (root / marker).exists()
        for marker in ("pyproject.toml", "setup.py", "requirements.txt")
    )


def detect_node(root: Path) -> bool:
    return (root / "package.json").exists()


class ProjectEnvironment(BaseModel):
    """Detected project types and feature flags."""

    root: Optional[Path] = Field(None, description="Project root, None when unknown")
    agentic_enabled: bool = Field(default=True, description="Agent tools available")
    terminal_enabled: bool = Field(default=False, description="Terminal tools available")
    gradle: bool = Field(default=False)
    go: bool = Field(default=False)
    python: bool = Field(default=False)
    node: bool = Field(default=False)

    @classmethod
    def detect(
        cls,
        root: Optional[Union[str, Path]],
        settings: Optional[AssistantSettings] = None
    ) -> "ProjectEnvironment":
        settings = settings or AssistantSettings()
        if root is None:
            return cls(
                agentic_enabled=settings.agentic_enabled,
                terminal_enabled=settings.terminal_tool_enabled,
            )

        path = Path(root)
        env = cls(
            root=path,
            agentic_enabled=settings.agentic_enabled,
            terminal_enabled=settings.terminal_tool_enabled,
            gradle=detect_gradle(path),
            go=detect_go(path),
            python=detect_python(path),
            node=detect_node(path),
        )
        logger.debug(f"Detected project environment: {env.signature()}")
        return env

    def signature(self) -> str:
        """Cache key for the built-in tool list of this environment."""
        return (
            f"agentic={str(self.agentic_enabled).lower()};"
            f"terminal={str(self.terminal_enabled).lower()};"
            f"gradle={str(self.gradle).lower()};"
            f"go={str(self.go).lower()};"
            f"python={str(self.python).lower()};"
            f"node={str(self.node).lower()};"
            f"base={self.root if self.root is not None else '<none>'}"
        )
