"""
TagTune - Entity stores

``create_store()`` picks the backend from configuration; everything else
in the application talks to the ``EntityStore`` interface only.
"""

from pathlib import Path
from typing import Optional

from tagtune.store.base import EntityStore
from tagtune.store.memory_store import MemoryStore
from tagtune.store.sqlite_store import SQLiteStore

__all__ = ["EntityStore", "MemoryStore", "SQLiteStore", "create_store"]


def create_store(use_mock_data: bool, db_path: Optional[Path]) -> EntityStore:
    """Return the memory store when mock data is requested or no DB is configured."""
    if use_mock_data or db_path is None:
        return MemoryStore()
    return SQLiteStore(db_path)
