"""
vfs-sync - Synchronize directory trees into a versioned record store.

Discovers files, detects what changed or disappeared since the last recorded
versions, and commits the changes in memory-bounded batches.
"""

__version__ = "1.0.0"

# Package imports for convenient access
from core.models.files import FileDescriptor, FileStat, VersionRecord
from core.models.config import SyncConfig, ImportConfig, StoreConfig
from core.importer import (
    FileImportPipeline, ImportSummary, Notification, NotificationKind, run_file_import
)
from core.storage import VersionStore, MemoryVersionStore, QdrantVersionStore, create_store

__all__ = [
    "FileDescriptor",
    "FileStat",
    "VersionRecord",
    "SyncConfig",
    "ImportConfig",
    "StoreConfig",
    "FileImportPipeline",
    "ImportSummary",
    "Notification",
    "NotificationKind",
    "run_file_import",
    "VersionStore",
    "MemoryVersionStore",
    "QdrantVersionStore",
    "create_store",
    "__version__",
]
