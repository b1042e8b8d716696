"""
Batch commit of file versions.

Reads the files of one batch sequentially, builds a version record per entry
and submits the batch to the store in a single idempotent bulk import.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import aiofiles

from ..models.files import FileDescriptor, VersionRecord
from ..models.storage import StorageResult
from ..storage.base import VersionStore
from .errors import CommitError, FileReadError

logger = logging.getLogger(__name__)


@dataclass
class BatchCommitResult:
    """Outcome of committing one batch"""
    records: int = 0
    deletions: int = 0
    skipped_empty: int = 0
    imported: int = 0
    already_present: int = 0
    storage_result: Optional[StorageResult] = None


class BatchCommitter:
    """
    Commits one batch of change entries as new versions.

    Files are read one at a time. A file deleted between enumeration and read is
    recorded as a deletion; any other read error aborts the whole batch before
    anything is submitted.
    """

    def __init__(self, store: VersionStore):
        self.store = store

    async def commit(self, batch: List[FileDescriptor]) -> BatchCommitResult:
        """
        Build and submit version records for every entry of the batch.

        Raises:
            FileReadError: if a file cannot be read
            CommitError: if a record is rejected or the bulk import fails
        """
        result = BatchCommitResult()
        records: List[VersionRecord] = []

        for descriptor in batch:
            record = await self._process_file(descriptor)
            if record is None:
                result.skipped_empty += 1
                continue
            if record.is_deletion:
                result.deletions += 1
            records.append(record)

        result.records = len(records)
        if not records:
            logger.debug(f"Nothing to import for batch of {len(batch)} entries")
            return result

        try:
            storage_result = await self.store.add_versions(records, only_import_new=True)
        except Exception as e:
            logger.error(f"Failed to import batch of {len(records)} versions: {e}")
            raise CommitError(f"Store failed to import versions: {e}", cause=e) from e

        if not storage_result.success:
            raise CommitError(storage_result.error or "Store rejected the batch")

        result.storage_result = storage_result
        result.imported = storage_result.affected_count
        result.already_present = storage_result.skipped_count
        logger.info(
            f"Committed batch: {result.imported} imported, {result.already_present} already present, "
            f"{result.deletions} deletions, {result.skipped_empty} skipped "
            f"in {storage_result.processing_time_ms:.1f}ms"
        )
        return result

    async def _process_file(self, descriptor: FileDescriptor) -> Optional[VersionRecord]:
        if descriptor.is_deletion:
            return await self._create_record(
                VersionRecord.deletion(descriptor.path, after=descriptor.supersedes)
            )

        full_path = Path(self.store.get_root_directory()) / descriptor.path
        try:
            async with aiofiles.open(full_path, 'rb') as f:
                content = await f.read()
        except FileNotFoundError:
            logger.warning(f"File {descriptor.path} disappeared before reading, recording deletion")
            known = [d for d in (descriptor.supersedes, descriptor.mtime) if d is not None]
            after = max(known) if known else None
            return await self._create_record(VersionRecord.deletion(descriptor.path, after=after))
        except OSError as e:
            logger.error(f"Error reading file {descriptor.path}: {e}")
            raise FileReadError(f"Cannot read file: {e}", path=descriptor.path, cause=e) from e

        if descriptor.is_empty_untyped:
            logger.warning(f"File {descriptor.path} has no content, skipping versioning it")
            return None

        return await self._create_record(VersionRecord.from_file(descriptor, content))

    async def _create_record(self, record: VersionRecord) -> VersionRecord:
        try:
            return await self.store.create_version_record(record)
        except Exception as e:
            logger.error(f"Store rejected version record for {record.path}: {e}")
            raise CommitError(f"Invalid version record: {e}", path=record.path, cause=e) from e
