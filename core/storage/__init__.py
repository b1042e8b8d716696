"""
Version store adapters for vfs-sync.

Provides the store contract used by the importer and its Qdrant and in-memory
implementations.
"""

from ..models.config import SyncConfig
from .base import VersionStore
from .memory import MemoryVersionStore
from .qdrant_store import QdrantVersionStore
from .walker import FileSystemWalker, normalize_relative_path


def create_store(config: SyncConfig) -> VersionStore:
    """Build the version store selected by a sync configuration"""
    if config.store.backend == "memory":
        return MemoryVersionStore(config.root, import_config=config.importer)
    return QdrantVersionStore.from_config(config.root, config.store, import_config=config.importer)


__all__ = [
    "VersionStore",
    "MemoryVersionStore",
    "QdrantVersionStore",
    "FileSystemWalker",
    "normalize_relative_path",
    "create_store"
]
