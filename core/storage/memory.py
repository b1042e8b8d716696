"""
In-process version store.

Keeps the full version history in memory. Used for dry runs, tests and as the
reference behaviour for persistent adapters.
"""

import asyncio
import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Union

from ..models.config import ImportConfig
from ..models.files import RecordQuery, StoredRecordSummary, VersionRecord
from ..models.storage import StorageResult
from .base import VersionStore
from .utils import select_newest

logger = logging.getLogger(__name__)

# Called with the operation name before each record operation; raising aborts it
FailureHook = Callable[[str], None]


class MemoryVersionStore(VersionStore):
    """Version store holding every version of every path in a dict"""

    collection_name = "memory"

    def __init__(
        self,
        root: Union[str, Path],
        import_config: Optional[ImportConfig] = None,
        fail_on: Optional[FailureHook] = None
    ):
        super().__init__(root, import_config)
        self._history: Dict[str, List[VersionRecord]] = defaultdict(list)
        self._version_ids: Set[str] = set()
        self._lock = asyncio.Lock()
        self.fail_on = fail_on

        # Call tracking
        self.query_count = 0
        self.commit_count = 0

    def _check_failure(self, operation: str) -> None:
        if self.fail_on is not None:
            self.fail_on(operation)

    async def get_records(self, query: RecordQuery) -> List[StoredRecordSummary]:
        self._check_failure('get_records')
        self.query_count += 1

        wanted = None
        if query.paths is not None:
            wanted = {self.normalize_path(p) for p in query.paths}

        async with self._lock:
            selected = (
                record.summary()
                for path, versions in self._history.items()
                if wanted is None or path in wanted
                for record in versions
            )
            if query.newest:
                return select_newest(selected, exists=query.exists)
            summaries = list(selected)

        if query.exists:
            live = {s.path for s in select_newest(summaries, exists=True)}
            summaries = [s for s in summaries if s.path in live]
        return summaries

    async def add_versions(
        self,
        records: List[VersionRecord],
        only_import_new: bool = True
    ) -> StorageResult:
        start_time = time.time()
        self._check_failure('add_versions')

        prepared = []
        for record in records:
            if record.version_id is None:
                record = await self.create_version_record(record)
            prepared.append(record)

        imported = 0
        skipped = 0
        async with self._lock:
            for record in prepared:
                if only_import_new and record.version_id in self._version_ids:
                    skipped += 1
                    continue
                self._history[record.path].append(record)
                self._version_ids.add(record.version_id)
                imported += 1

        self.commit_count += 1
        processing_time = (time.time() - start_time) * 1000
        logger.debug(f"Imported {imported} versions ({skipped} already present)")
        return StorageResult.successful_import(
            self.collection_name, imported, skipped, processing_time
        )

    def versions(self, path: str) -> List[VersionRecord]:
        """All stored versions of a path, oldest first"""
        return list(self._history.get(self.normalize_path(path), []))

    def latest(self, path: str) -> Optional[VersionRecord]:
        versions = self.versions(path)
        if not versions:
            return None
        return max(reversed(versions), key=lambda r: r.date)

    @property
    def version_count(self) -> int:
        return len(self._version_ids)
