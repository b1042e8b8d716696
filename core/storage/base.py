"""
Version store adapter contract.

The importer only talks to storage through this interface: root lookup, file
enumeration, record queries, single record creation and bulk version commits.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

from ..models.config import ImportConfig
from ..models.files import RecordQuery, StoredRecordSummary, VersionRecord, WalkResult
from ..models.storage import StorageResult
from .walker import FileSystemWalker, normalize_relative_path

logger = logging.getLogger(__name__)


class VersionStore(ABC):
    """
    Base class for versioned record stores backed by a directory tree.

    Subclasses provide record persistence and querying; enumeration and path
    normalization are shared.
    """

    def __init__(self, root: Union[str, Path], import_config: Optional[ImportConfig] = None):
        self._root = Path(root).resolve()
        self._walker = FileSystemWalker(self._root, import_config)

    def get_root_directory(self) -> Path:
        return self._root

    async def walk_files(self) -> WalkResult:
        """Recursively enumerate files below the root directory"""
        return await self._walker.walk()

    def normalize_path(self, path: str) -> str:
        return normalize_relative_path(path)

    async def create_version_record(self, record: VersionRecord) -> VersionRecord:
        """
        Validate and normalize one version record and assign its version id.

        Raises:
            ValueError: if the record is inconsistent
        """
        path = self.normalize_path(record.path)
        if not path:
            raise ValueError(f"Invalid record path: {record.path!r}")

        if record.is_deletion:
            if record.content is not None or record.stat is not None:
                raise ValueError(f"Deletion record for {path} must not carry content or stat")
        elif record.content is None:
            raise ValueError(f"Version record for {path} has no content")

        prepared = record.model_copy(update={'path': path})
        prepared.version_id = prepared.compute_version_id()
        return prepared

    @abstractmethod
    async def get_records(self, query: RecordQuery) -> List[StoredRecordSummary]:
        """Query stored records; ``newest`` restricts to the latest version per path"""

    @abstractmethod
    async def add_versions(
        self,
        records: List[VersionRecord],
        only_import_new: bool = True
    ) -> StorageResult:
        """Persist a batch of version records; nothing is committed on failure"""

    async def close(self) -> None:
        """Release backend resources"""
        return None

    async def __aenter__(self) -> 'VersionStore':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
