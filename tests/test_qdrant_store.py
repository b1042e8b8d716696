"""
Tests for the Qdrant version store against an in-process Qdrant instance.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import patch

import pytest_asyncio

from core.models.config import StoreConfig
from core.models.files import FileStat, RecordQuery, VersionRecord
from core.storage.qdrant_store import QdrantVersionStore


def make_record(path: str, day: int, content: bytes = b"data") -> VersionRecord:
    date = datetime(2024, 1, day, tzinfo=timezone.utc)
    return VersionRecord(
        path=path,
        date=date,
        stat=FileStat(size=len(content), mtime=date, mime="application/octet-stream"),
        content=content
    )


class TestQdrantVersionStore:
    """Test QdrantVersionStore with location=':memory:'"""

    @pytest_asyncio.fixture
    async def store(self, source_root):
        store = QdrantVersionStore(source_root, collection_name="test-versions", location=":memory:")
        yield store
        await store.close()

    @pytest.mark.asyncio
    async def test_collection_created_lazily(self, store):
        assert store.is_embedded
        assert store.target == ":memory:"

        await store.ensure_collection()

        assert store.client.collection_exists("test-versions")

    @pytest.mark.asyncio
    async def test_add_and_query_newest(self, store):
        result = await store.add_versions([
            make_record("a.txt", 1, b"old"),
            make_record("a.txt", 2, b"new"),
            make_record("b.txt", 1)
        ])

        assert result.success
        assert result.affected_count == 3

        records = await store.get_records(RecordQuery(paths=["a.txt", "b.txt"], newest=True))
        assert [(r.path, r.date.day) for r in records] == [("a.txt", 2), ("b.txt", 1)]

    @pytest.mark.asyncio
    async def test_duplicate_versions_skipped(self, store):
        records = [make_record("a.txt", 1), make_record("b.txt", 1)]

        await store.add_versions(records)
        result = await store.add_versions(records)

        assert result.success
        assert result.affected_count == 0
        assert result.skipped_count == 2
        assert await store.count_versions() == 2

    @pytest.mark.asyncio
    async def test_exists_excludes_deleted(self, store):
        await store.add_versions([
            make_record("a.txt", 1),
            make_record("b.txt", 1),
            VersionRecord.deletion("b.txt", now=datetime(2024, 1, 2, tzinfo=timezone.utc))
        ])

        live = await store.get_records(RecordQuery(newest=True, exists=True))

        assert [r.path for r in live] == ["a.txt"]

    @pytest.mark.asyncio
    async def test_version_history_round_trip(self, store):
        payload = bytes(range(256))
        await store.add_versions([make_record("bin/blob", 2, payload), make_record("bin/blob", 1, b"v1")])

        versions = await store.get_versions("./bin/blob")

        assert [v.content for v in versions] == [b"v1", payload]
        assert versions[1].stat.size == 256
        assert versions[1].version_id == versions[1].compute_version_id()

    @pytest.mark.asyncio
    async def test_scroll_pagination(self, source_root):
        store = QdrantVersionStore(
            source_root, collection_name="paged", location=":memory:", scroll_page_size=2
        )
        try:
            await store.add_versions([make_record(f"f{i}.txt", 1) for i in range(5)])

            records = await store.get_records(RecordQuery(newest=True))

            assert [r.path for r in records] == [f"f{i}.txt" for i in range(5)]
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_newest_reduced_across_pages(self, source_root):
        store = QdrantVersionStore(
            source_root, collection_name="history", location=":memory:", scroll_page_size=2
        )
        try:
            await store.add_versions([make_record("a.txt", day, f"v{day}".encode()) for day in range(1, 6)])
            await store.add_versions([
                make_record("b.txt", 1),
                VersionRecord.deletion("b.txt", now=datetime(2024, 1, 9, tzinfo=timezone.utc))
            ])

            newest = await store.get_records(RecordQuery(newest=True))
            live = await store.get_records(RecordQuery(newest=True, exists=True))
            everything = await store.get_records(RecordQuery())

            assert [(r.path, r.date.day, r.change) for r in newest] == [
                ("a.txt", 5, None), ("b.txt", 9, "deletion")
            ]
            assert [r.path for r in live] == ["a.txt"]
            assert len(everything) == 7
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_empty_path_query(self, store):
        assert await store.get_records(RecordQuery(paths=[], newest=True)) == []

    @pytest.mark.asyncio
    async def test_upsert_failure_reported(self, store):
        await store.ensure_collection()

        with patch.object(store.client, 'upsert', side_effect=RuntimeError("disk full")):
            result = await store.add_versions([make_record("a.txt", 1)])

        assert not result.success
        assert "disk full" in result.error
        assert await store.count_versions() == 0

    @pytest.mark.asyncio
    async def test_scroll_failure_raises(self, store):
        await store.ensure_collection()

        with patch.object(store.client, 'scroll', side_effect=ConnectionError("gone")):
            with pytest.raises(ConnectionError):
                await store.get_records(RecordQuery(newest=True))

    def test_from_config_embedded_path(self, source_root, tmp_path):
        config = StoreConfig(path=tmp_path / "qdrant", collection_name="Docs")

        store = QdrantVersionStore.from_config(source_root, config)

        assert store.url is None
        assert store.is_embedded
        assert store.collection_name == "docs"

    def test_from_config_server(self, source_root):
        config = StoreConfig(url="http://qdrant:6333/", api_key="secret")

        store = QdrantVersionStore.from_config(source_root, config)

        assert store.target == "http://qdrant:6333"
        assert not store.is_embedded
        assert store.api_key == "secret"
