"""
Persistence store implementations.

This module provides in-memory and JSON-file implementations of the
PersistenceStore interface. They keep the primary session's continuation
token and the sub-agent roster so conversations can resume after a restart.
"""

import logging
from pathlib import Path
from threading import Lock
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..core.interfaces import PersistenceStore
from ..core.models import PersistedAgent

logger = logging.getLogger(__name__)


class PersistedState(BaseModel):
    """Everything a persistence store keeps."""

    primary_token: Optional[str] = Field(None, description="Primary session continuation token")
    agents: List[PersistedAgent] = Field(default_factory=list, description="Sub-agent roster")


class InMemoryPersistenceStore(PersistenceStore):
    """In-memory implementation of PersistenceStore.

    Suitable for development and testing; nothing survives the process.
    """

    def __init__(self, state: Optional[PersistedState] = None):
        self._state = state or PersistedState()
        self._lock = Lock()

    def load_primary_token(self) -> Optional[str]:
        with self._lock:
            return self._state.primary_token

    def store_primary_token(self, token: Optional[str]) -> None:
        with self._lock:
            self._state.primary_token = token

    def load_agents(self) -> List[PersistedAgent]:
        with self._lock:
            return [agent.model_copy() for agent in self._state.agents]

    def store_agents(self, agents: List[PersistedAgent]) -> None:
        with self._lock:
            self._state.agents = [agent.model_copy() for agent in agents]


class JsonFilePersistenceStore(PersistenceStore):
    """PersistenceStore backed by a single JSON file.

    The whole state is rewritten on every store through a temporary file that
    replaces the original, so a crash never leaves a half-written file.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)
        self._lock = Lock()
        self._state = self._read()
        logger.info(f"JsonFilePersistenceStore initialized at {self._path}")

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> PersistedState:
        if not self._path.exists():
            return PersistedState()
        try:
            return PersistedState.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable persisted state in {self._path}: {e}")
            return PersistedState()

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(self._state.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._path)

    def load_primary_token(self) -> Optional[str]:
        with self._lock:
            return self._state.primary_token

    def store_primary_token(self, token: Optional[str]) -> None:
        with self._lock:
            self._state.primary_token = token
            self._write()

    def load_agents(self) -> List[PersistedAgent]:
        with self._lock:
            return [agent.model_copy() for agent in self._state.agents]

    def store_agents(self, agents: List[PersistedAgent]) -> None:
        with self._lock:
            self._state.agents = [agent.model_copy() for agent in agents]
            self._write()
