"""
Flat function names for external tools.

Completion backends restrict function names to a small character set and a
maximum length. This module maps every (server, method) pair to such a name
and back again.
"""

import hashlib
import logging
import re
from typing import Dict, Iterable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

NAME_PREFIX = "mcp_"
MAX_NAME_LENGTH = 64
HASH_LENGTH = 8
UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def sanitize(value: str) -> str:
    return UNSAFE_CHARS.sub("_", value)


def build_name(server: str, method: str) -> str:
    """Build the flat name for a server method.

    The result matches ``[A-Za-z0-9_-]{1,64}``. Names that would be longer
    are truncated and suffixed with a short hash of the full pair, so the
    result is stable across runs.
    """
    name = f"{NAME_PREFIX}{sanitize(server)}_{sanitize(method)}"
    if len(name) <= MAX_NAME_LENGTH:
        return name
    digest = hashlib.sha1(f"{server}\x00{method}".encode("utf-8")).hexdigest()[:HASH_LENGTH]
    return f"{name[:MAX_NAME_LENGTH - HASH_LENGTH - 1]}_{digest}"


def resolve_dotted(name: str) -> Optional[Tuple[str, str]]:
    """Interpret a literal ``server.method`` name.

    The split happens at the first dot; both parts must be non-empty.
    """
    if "." not in name:
        return None
    server, method = name.split(".", 1)
    server, method = server.strip(), method.strip()
    if not server or not method:
        return None
    return server, method


class ToolNameMapper:
    """Bidirectional map between flat names and (server, method) pairs.

    The map is rebuilt wholesale from the current tool lists; readers always
    see either the previous or the new complete map.
    """

    def __init__(self):
        self._by_name: Dict[str, Tuple[str, str]] = {}
        self._by_pair: Dict[Tuple[str, str], str] = {}

    def rebuild(self, tools_by_server: Mapping[str, Iterable[str]]) -> Dict[str, Tuple[str, str]]:
        """Replace the whole map from ``{server: [method, ...]}``.

        Pairs that sanitize to an already taken name receive a numeric
        suffix (``_2``, ``_3``, ...). Servers and methods are processed in
        sorted order so the assignment is deterministic.
        """
        by_name: Dict[str, Tuple[str, str]] = {}
        by_pair: Dict[Tuple[str, str], str] = {}

        for server in sorted(tools_by_server):
            for method in sorted(set(tools_by_server[server])):
                base = build_name(server, method)
                name = base
                suffix = 2
                while name in by_name:
                    tail = f"_{suffix}"
                    name = base[:MAX_NAME_LENGTH - len(tail)] + tail
                    suffix += 1
                if name != base:
                    logger.debug(f"Name collision for {server}.{method}, using {name}")
                by_name[name] = (server, method)
                by_pair[(server, method)] = name

        self._by_name = by_name
        self._by_pair = by_pair
        return dict(by_name)

    def resolve(self, name: str) -> Optional[Tuple[str, str]]:
        """Return the (server, method) pair for a flat name, or None."""
        return self._by_name.get(name)

    def name_for(self, server: str, method: str) -> Optional[str]:
        return self._by_pair.get((server, method))

    def names(self) -> Dict[str, Tuple[str, str]]:
        return dict(self._by_name)

    def __len__(self) -> int:
        return len(self._by_name)
