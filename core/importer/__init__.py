"""
Import pipeline for vfs-sync.

Synchronizes a directory tree into a versioned record store:

Key Components:
- ChangeDetector: Finds new, modified and deleted files against stored versions
- Batcher: Splits the change set into memory-bounded batches
- BatchCommitter: Reads files and commits each batch as new versions
- FileImportPipeline: Runs the stages in order and emits notifications
"""

from .errors import (
    FileImportError, EnumerationError, RecordLookupError, FileReadError, CommitError
)
from .notifications import Notification, NotificationKind, NotificationChannel, ProgressInfo
from .change_detector import ChangeDetector, ChangeSet
from .batcher import Batcher, create_batches, sum_file_size
from .committer import BatchCommitter, BatchCommitResult
from .pipeline import (
    FileImportPipeline, ImportSummary, PipelineState, run_file_import
)

__all__ = [
    "FileImportError",
    "EnumerationError",
    "RecordLookupError",
    "FileReadError",
    "CommitError",
    "Notification",
    "NotificationKind",
    "NotificationChannel",
    "ProgressInfo",
    "ChangeDetector",
    "ChangeSet",
    "Batcher",
    "create_batches",
    "sum_file_size",
    "BatchCommitter",
    "BatchCommitResult",
    "FileImportPipeline",
    "ImportSummary",
    "PipelineState",
    "run_file_import"
]
