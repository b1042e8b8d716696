"""
Core data models for vfs-sync

Pydantic models for files, version records, storage results and configuration.
"""

from .files import (
    FileStat, FileDescriptor, StoredRecordSummary, VersionRecord,
    RecordQuery, WalkResult, DELETION_CHANGE
)
from .storage import StorageResult
from .config import ImportConfig, StoreConfig, SyncConfig, GlobalSettings

__all__ = [
    # Files and versions
    "FileStat",
    "FileDescriptor",
    "StoredRecordSummary",
    "VersionRecord",
    "RecordQuery",
    "WalkResult",
    "DELETION_CHANGE",

    # Storage
    "StorageResult",

    # Configuration
    "ImportConfig",
    "StoreConfig",
    "SyncConfig",
    "GlobalSettings"
]
