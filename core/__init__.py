"""
vfs-sync core package

Change detection, batching and versioned commits of directory trees.
"""

__version__ = "1.0.0"

from .models import FileDescriptor, FileStat, VersionRecord, StoredRecordSummary, SyncConfig

__all__ = [
    "FileDescriptor",
    "FileStat",
    "VersionRecord",
    "StoredRecordSummary",
    "SyncConfig"
]
