"""
Built-in tool registry and project environment detection.
"""

from .environment import ProjectEnvironment
from .tool_registry import BuiltInToolEntry, BuiltInToolRegistry, ToolRuntime

__all__ = [
    "ProjectEnvironment",
    "BuiltInToolEntry",
    "BuiltInToolRegistry",
    "ToolRuntime",
]
