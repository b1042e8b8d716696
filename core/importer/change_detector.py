"""
Change detection between enumerated files and stored versions.

Looks up the latest stored version of every enumerated path in bounded-concurrency
chunks, keeps files that are new or strictly newer than their stored version,
and synthesizes deletions for stored paths that no longer exist on disk.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.config import ImportConfig
from ..models.files import FileDescriptor, RecordQuery, StoredRecordSummary
from ..storage.base import VersionStore
from ..storage.utils import chunked
from .errors import RecordLookupError

logger = logging.getLogger(__name__)


@dataclass
class ChangeSet:
    """
    Result of change detection.

    ``entries`` holds new and modified files in input order followed by
    synthesized deletions.
    """
    new_files: List[FileDescriptor] = field(default_factory=list)
    modified_files: List[FileDescriptor] = field(default_factory=list)
    deleted_files: List[FileDescriptor] = field(default_factory=list)
    entries: List[FileDescriptor] = field(default_factory=list)
    unchanged_count: int = 0
    skipped_empty: int = 0
    total_files: int = 0
    scan_time: float = 0.0

    @property
    def total_changes(self) -> int:
        return len(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class _ChunkResult:
    changed: List[FileDescriptor] = field(default_factory=list)
    new_paths: List[str] = field(default_factory=list)
    unchanged: int = 0
    skipped_empty: int = 0


class ChangeDetector:
    """
    Determines which enumerated files need a new version.

    Lookups are issued in chunks of ``lookup_chunk_size`` paths with at most
    ``lookup_concurrency`` queries in flight. Any failed lookup aborts detection.
    """

    def __init__(self, store: VersionStore, config: Optional[ImportConfig] = None):
        self.store = store
        self.config = config or ImportConfig()

    async def detect(self, files: List[FileDescriptor]) -> ChangeSet:
        """
        Compute the change set for the currently enumerated files.

        Raises:
            RecordLookupError: if any store query fails
        """
        start_time = time.perf_counter()

        normalized = [self._normalized(f) for f in files]
        chunks = list(chunked(normalized, self.config.lookup_chunk_size))
        semaphore = asyncio.Semaphore(self.config.lookup_concurrency)

        logger.info(
            f"Checking {len(normalized)} files against stored versions "
            f"({len(chunks)} lookups, concurrency {self.config.lookup_concurrency})"
        )

        async def check_chunk(chunk: List[FileDescriptor]) -> _ChunkResult:
            async with semaphore:
                records = await self.store.get_records(RecordQuery(
                    paths=[f.path for f in chunk],
                    newest=True,
                    attributes=['path', 'date']
                ))
            return self._classify(chunk, records)

        tasks = [asyncio.create_task(check_chunk(chunk)) for chunk in chunks]
        try:
            chunk_results = await asyncio.gather(*tasks)
        except Exception as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.error(f"Change detection failed: {e}")
            raise RecordLookupError(f"Failed to look up stored versions: {e}", cause=e) from e

        result = ChangeSet(total_files=len(normalized))
        for chunk_result in chunk_results:
            new_paths = set(chunk_result.new_paths)
            for descriptor in chunk_result.changed:
                if descriptor.path in new_paths:
                    result.new_files.append(descriptor)
                else:
                    result.modified_files.append(descriptor)
                result.entries.append(descriptor)
            result.unchanged_count += chunk_result.unchanged
            result.skipped_empty += chunk_result.skipped_empty

        result.deleted_files = await self._find_deletions({f.path for f in normalized})
        result.entries.extend(result.deleted_files)
        result.scan_time = time.perf_counter() - start_time

        logger.info(
            f"Change detection completed in {result.scan_time:.3f}s: "
            f"{len(result.new_files)} new, {len(result.modified_files)} modified, "
            f"{len(result.deleted_files)} deleted, {result.unchanged_count} unchanged, "
            f"{result.skipped_empty} empty skipped"
        )
        return result

    def _normalized(self, descriptor: FileDescriptor) -> FileDescriptor:
        path = self.store.normalize_path(descriptor.path)
        if path == descriptor.path:
            return descriptor
        return descriptor.model_copy(update={'path': path})

    def _classify(
        self,
        chunk: List[FileDescriptor],
        records: List[StoredRecordSummary]
    ) -> _ChunkResult:
        stored: Dict[str, StoredRecordSummary] = {
            self.store.normalize_path(record.path): record for record in records
        }
        result = _ChunkResult()

        for descriptor in chunk:
            if descriptor.is_empty_untyped:
                logger.warning(f"File {descriptor.path} has no content, skipping versioning it")
                result.skipped_empty += 1
                continue

            record = stored.get(descriptor.path)
            if record is None:
                logger.debug(f"Importing {descriptor.path} (not in store)")
                result.changed.append(descriptor)
                result.new_paths.append(descriptor.path)
            elif record.is_deletion:
                logger.debug(f"Importing restored file {descriptor.path}")
                result.changed.append(descriptor.model_copy(update={'supersedes': record.date}))
                result.new_paths.append(descriptor.path)
            elif self._is_newer(descriptor, record):
                logger.debug(f"Importing newer file {descriptor.path}")
                result.changed.append(descriptor)
            else:
                result.unchanged += 1

        return result

    @staticmethod
    def _is_newer(descriptor: FileDescriptor, record: StoredRecordSummary) -> bool:
        """A file is newer only if its mtime is strictly later than the stored date"""
        if record.date is None or descriptor.mtime is None:
            logger.warning(f"Missing timestamp for {descriptor.path}, treating as modified")
            return True
        return record.date < descriptor.mtime

    async def _find_deletions(self, enumerated_paths: set) -> List[FileDescriptor]:
        try:
            existing = await self.store.get_records(RecordQuery(
                newest=True,
                exists=True,
                attributes=['path', 'date']
            ))
        except Exception as e:
            logger.error(f"Failed to list existing records: {e}")
            raise RecordLookupError(f"Failed to list existing records: {e}", cause=e) from e

        deletions = []
        for record in existing:
            path = self.store.normalize_path(record.path)
            if path not in enumerated_paths:
                logger.info(f"Deleting non-existing file {path}")
                deletions.append(FileDescriptor.deletion(path, supersedes=record.date))
        return deletions
