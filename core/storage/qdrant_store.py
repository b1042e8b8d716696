"""
Qdrant-backed version store for vfs-sync.

Stores one point per file version in a payload collection. Point ids are derived
from version ids so re-importing an identical version is a no-op.
"""

import asyncio
import base64
import logging
import time
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from qdrant_client import QdrantClient
from qdrant_client.models import (
    Distance, FieldCondition, Filter, MatchAny, MatchValue,
    PayloadSchemaType, PointStruct, VectorParams
)

from ..models.config import ImportConfig, StoreConfig
from ..models.files import FileStat, RecordQuery, StoredRecordSummary, VersionRecord
from ..models.storage import StorageResult
from .base import VersionStore
from .utils import chunked, merge_newest, newest_list, select_newest, version_id_to_point_id

logger = logging.getLogger(__name__)

# Qdrant requires a vector per point; versions are only ever filtered by payload
PLACEHOLDER_VECTOR = [1.0]

SUMMARY_FIELDS = ['path', 'date', 'change']


class QdrantVersionStore(VersionStore):
    """
    Version store persisting records as Qdrant points.

    Supports a remote server (``url``), embedded on-disk mode (``path``) and
    embedded in-memory mode (``location=":memory:"``). Blocking client calls run
    in worker threads; embedded mode calls are serialized.
    """

    def __init__(
        self,
        root: Union[str, Path],
        collection_name: str = "vfs-versions",
        url: Optional[str] = None,
        path: Optional[Union[str, Path]] = None,
        location: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        import_config: Optional[ImportConfig] = None,
        scroll_page_size: int = 256,
        retrieve_batch_size: int = 512
    ):
        super().__init__(root, import_config)
        self.collection_name = collection_name
        self.url = url
        self.path = Path(path) if path is not None else None
        self.location = location
        self.api_key = api_key
        self.timeout = timeout
        self.scroll_page_size = scroll_page_size
        self.retrieve_batch_size = retrieve_batch_size

        self._client: Optional[QdrantClient] = None
        self._connection_lock = asyncio.Lock()
        self._local_lock = asyncio.Lock()
        self._collection_ready = False

        logger.info(f"Initialized QdrantVersionStore: {self.target} ({collection_name})")

    @classmethod
    def from_config(
        cls,
        root: Union[str, Path],
        config: StoreConfig,
        import_config: Optional[ImportConfig] = None
    ) -> 'QdrantVersionStore':
        return cls(
            root,
            collection_name=config.collection_name,
            url=None if config.path else config.url,
            path=config.path,
            api_key=config.api_key,
            timeout=config.timeout,
            import_config=import_config
        )

    @property
    def target(self) -> str:
        if self.location:
            return self.location
        if self.path:
            return str(self.path)
        return self.url or "http://localhost:6333"

    @property
    def is_embedded(self) -> bool:
        return self.location is not None or self.path is not None

    @property
    def client(self) -> QdrantClient:
        """Get Qdrant client instance"""
        if self._client is None:
            if self.location:
                self._client = QdrantClient(location=self.location)
            elif self.path:
                self.path.mkdir(parents=True, exist_ok=True)
                self._client = QdrantClient(path=str(self.path))
            else:
                self._client = QdrantClient(
                    url=self.url,
                    api_key=self.api_key,
                    timeout=int(self.timeout)
                )
        return self._client

    async def _call(self, func, *args, **kwargs) -> Any:
        """Run a blocking client call off the event loop"""
        if self.is_embedded:
            async with self._local_lock:
                return await asyncio.to_thread(func, *args, **kwargs)
        return await asyncio.to_thread(func, *args, **kwargs)

    async def ensure_collection(self) -> None:
        """Create the versions collection and its payload indexes if missing"""
        async with self._connection_lock:
            if self._collection_ready:
                return

            exists = await self._call(self.client.collection_exists, self.collection_name)
            if not exists:
                await self._call(
                    self.client.create_collection,
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(size=len(PLACEHOLDER_VECTOR), distance=Distance.DOT)
                )
                for field_name in ('path', 'change', 'version_id'):
                    await self._call(
                        self.client.create_payload_index,
                        collection_name=self.collection_name,
                        field_name=field_name,
                        field_schema=PayloadSchemaType.KEYWORD
                    )
                logger.info(f"Created version collection {self.collection_name}")

            self._collection_ready = True

    async def get_records(self, query: RecordQuery) -> List[StoredRecordSummary]:
        """
        Query version summaries.

        Raises:
            Exception: any client error, so lookups can fail loudly
        """
        await self.ensure_collection()

        paths = None
        if query.paths is not None:
            paths = sorted({self.normalize_path(p) for p in query.paths})
            if not paths:
                return []

        try:
            if query.newest:
                newest: Dict[str, StoredRecordSummary] = {}
                async for page in self._scroll_pages(self._paths_filter(paths), SUMMARY_FIELDS):
                    merge_newest(newest, (StoredRecordSummary(**self._summary_fields(p)) for p in page))
                return newest_list(newest, exists=query.exists)

            payloads = await self._scroll_payloads(self._paths_filter(paths), SUMMARY_FIELDS)
        except Exception as e:
            logger.error(f"Failed to query records in {self.collection_name}: {e}")
            raise

        summaries = [StoredRecordSummary(**self._summary_fields(p)) for p in payloads]
        if query.exists:
            live = {s.path for s in select_newest(summaries, exists=True)}
            summaries = [s for s in summaries if s.path in live]
        return summaries

    @staticmethod
    def _paths_filter(paths: Optional[List[str]]) -> Optional[Filter]:
        if paths is None:
            return None
        return Filter(must=[FieldCondition(key='path', match=MatchAny(any=paths))])

    async def _scroll_pages(
        self,
        scroll_filter: Optional[Filter],
        fields: Union[List[str], bool]
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        offset = None
        while True:
            points, offset = await self._call(
                self.client.scroll,
                collection_name=self.collection_name,
                scroll_filter=scroll_filter,
                limit=self.scroll_page_size,
                offset=offset,
                with_payload=fields,
                with_vectors=False
            )
            yield [point.payload or {} for point in points]
            if offset is None:
                break

    async def _scroll_payloads(
        self,
        scroll_filter: Optional[Filter],
        fields: Union[List[str], bool]
    ) -> List[Dict[str, Any]]:
        payloads: List[Dict[str, Any]] = []
        async for page in self._scroll_pages(scroll_filter, fields):
            payloads.extend(page)
        return payloads

    @staticmethod
    def _summary_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
        return {key: payload.get(key) for key in SUMMARY_FIELDS}

    async def add_versions(
        self,
        records: List[VersionRecord],
        only_import_new: bool = True
    ) -> StorageResult:
        """Upsert a batch of versions in one request"""
        start_time = time.time()

        try:
            await self.ensure_collection()

            prepared = []
            for record in records:
                if record.version_id is None:
                    record = await self.create_version_record(record)
                prepared.append(record)

            point_ids = [version_id_to_point_id(r.version_id) for r in prepared]

            existing = set()
            if only_import_new and point_ids:
                existing = await self._existing_point_ids(point_ids)

            points = [
                PointStruct(id=point_id, vector=PLACEHOLDER_VECTOR, payload=self._to_payload(record))
                for point_id, record in zip(point_ids, prepared)
                if point_id not in existing
            ]

            if points:
                await self._call(
                    self.client.upsert,
                    collection_name=self.collection_name,
                    points=points,
                    wait=True
                )

            processing_time = (time.time() - start_time) * 1000
            skipped = len(prepared) - len(points)
            logger.info(
                f"Imported {len(points)} versions into {self.collection_name} "
                f"({skipped} already present) in {processing_time:.2f}ms"
            )
            return StorageResult.successful_import(
                self.collection_name, len(points), skipped, processing_time
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            error_msg = f"Failed to import versions into {self.collection_name}: {e}"
            logger.error(error_msg)
            return StorageResult.failed_operation(
                'add_versions', self.collection_name, error_msg, processing_time,
                error_details={'total_records': len(records)}
            )

    async def _existing_point_ids(self, point_ids: List[int]) -> set:
        existing = set()
        for chunk in chunked(point_ids, self.retrieve_batch_size):
            found = await self._call(
                self.client.retrieve,
                collection_name=self.collection_name,
                ids=chunk,
                with_payload=False,
                with_vectors=False
            )
            existing.update(point.id for point in found)
        return existing

    @staticmethod
    def _to_payload(record: VersionRecord) -> Dict[str, Any]:
        return {
            'path': record.path,
            'change': record.change,
            'date': record.date.isoformat(),
            'timestamp': record.date.timestamp(),
            'stat': record.stat.to_payload() if record.stat else None,
            'content': base64.b64encode(record.content).decode('ascii') if record.content is not None else None,
            'content_hash': record.content_hash,
            'version_id': record.version_id
        }

    @staticmethod
    def _from_payload(payload: Dict[str, Any]) -> VersionRecord:
        content = payload.get('content')
        stat = payload.get('stat')
        return VersionRecord(
            path=payload['path'],
            change=payload.get('change'),
            date=payload['date'],
            stat=FileStat(**stat) if stat else None,
            content=base64.b64decode(content) if content is not None else None,
            version_id=payload.get('version_id')
        )

    async def get_versions(self, path: str) -> List[VersionRecord]:
        """Full version history of one path, oldest first"""
        await self.ensure_collection()
        normalized = self.normalize_path(path)

        scroll_filter = Filter(must=[FieldCondition(key='path', match=MatchValue(value=normalized))])
        payloads = await self._scroll_payloads(scroll_filter, True)
        return sorted((self._from_payload(p) for p in payloads), key=lambda r: r.date)

    async def count_versions(self) -> int:
        await self.ensure_collection()
        result = await self._call(self.client.count, collection_name=self.collection_name, exact=True)
        return result.count if result else 0

    async def close(self) -> None:
        if self._client is not None:
            await asyncio.to_thread(self._client.close)
            self._client = None
            self._collection_ready = False
            logger.info(f"Closed QdrantVersionStore: {self.target}")

