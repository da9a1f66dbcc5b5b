"""
Persistence of continuation tokens and the sub-agent roster.
"""

from .persistence import InMemoryPersistenceStore, JsonFilePersistenceStore, PersistedState

__all__ = [
    "InMemoryPersistenceStore",
    "JsonFilePersistenceStore",
    "PersistedState",
]
