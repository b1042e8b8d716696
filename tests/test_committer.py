"""
Unit tests for batch commits.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from core.importer.committer import BatchCommitter
from core.importer.errors import CommitError, FileReadError
from core.models.files import FileDescriptor, FileStat
from core.models.storage import StorageResult
from core.storage.memory import MemoryVersionStore
from core.storage.walker import FileSystemWalker


async def enumerate_files(root):
    result = await FileSystemWalker(root).walk()
    return {f.path: f for f in result.files}


class TestBatchCommitter:
    """Test BatchCommitter"""

    @pytest.mark.asyncio
    async def test_commit_reads_and_stores_content(self, memory_store, source_root, make_file):
        make_file("a.txt", "alpha")
        make_file("dir/b.bin", b"\x00\x01\x02")
        files = await enumerate_files(source_root)

        result = await BatchCommitter(memory_store).commit(list(files.values()))

        assert result.records == 2
        assert result.imported == 2
        assert memory_store.latest("a.txt").content == b"alpha"
        assert memory_store.latest("dir/b.bin").content == b"\x00\x01\x02"
        assert memory_store.latest("a.txt").date == files["a.txt"].mtime
        assert memory_store.commit_count == 1

    @pytest.mark.asyncio
    async def test_deletion_entry(self, memory_store):
        result = await BatchCommitter(memory_store).commit([FileDescriptor.deletion("old.txt")])

        record = memory_store.latest("old.txt")
        assert result.deletions == 1
        assert record.is_deletion
        assert record.content is None
        assert record.date.microsecond == 0

    @pytest.mark.asyncio
    async def test_deletion_dated_after_superseded_version(self, memory_store):
        future = datetime(2099, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)

        await BatchCommitter(memory_store).commit([FileDescriptor.deletion("old.txt", supersedes=future)])

        assert memory_store.latest("old.txt").date == datetime(2099, 1, 1, 12, 0, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_vanished_future_file_deletion_is_newest(self, memory_store, source_root):
        future = datetime(2099, 1, 1, tzinfo=timezone.utc)
        descriptor = FileDescriptor(path="ghost.txt", stat=FileStat(size=3, mtime=future, mime="text/plain"))

        await BatchCommitter(memory_store).commit([descriptor])

        assert memory_store.latest("ghost.txt").date > future

    @pytest.mark.asyncio
    async def test_file_removed_before_read_becomes_deletion(self, memory_store, source_root, make_file):
        path = make_file("flaky.txt", "soon gone")
        files = await enumerate_files(source_root)
        path.unlink()

        result = await BatchCommitter(memory_store).commit([files["flaky.txt"]])

        assert result.deletions == 1
        assert memory_store.latest("flaky.txt").is_deletion

    @pytest.mark.asyncio
    async def test_read_error_aborts_batch(self, memory_store, source_root, make_file):
        make_file("a.txt")
        make_file("b.txt")
        files = await enumerate_files(source_root)

        with patch('core.importer.committer.aiofiles.open', side_effect=PermissionError("denied")):
            with pytest.raises(FileReadError) as exc_info:
                await BatchCommitter(memory_store).commit(list(files.values()))

        assert exc_info.value.path == "a.txt"
        assert isinstance(exc_info.value.cause, PermissionError)
        assert memory_store.version_count == 0
        assert memory_store.commit_count == 0

    @pytest.mark.asyncio
    async def test_empty_untyped_file_skipped(self, memory_store, source_root, make_file):
        make_file("blob", b"")
        make_file("empty.txt", b"")
        files = await enumerate_files(source_root)

        result = await BatchCommitter(memory_store).commit([files["blob"], files["empty.txt"]])

        assert result.skipped_empty == 1
        assert result.imported == 1
        assert memory_store.latest("blob") is None
        assert memory_store.latest("empty.txt").content == b""

    @pytest.mark.asyncio
    async def test_batch_with_only_skipped_entries_does_not_call_store(self, memory_store, source_root, make_file):
        make_file("blob", b"")
        files = await enumerate_files(source_root)

        result = await BatchCommitter(memory_store).commit([files["blob"]])

        assert result.records == 0
        assert memory_store.commit_count == 0

    @pytest.mark.asyncio
    async def test_second_commit_skips_existing_versions(self, memory_store, source_root, make_file):
        make_file("a.txt")
        files = await enumerate_files(source_root)
        committer = BatchCommitter(memory_store)

        await committer.commit([files["a.txt"]])
        result = await committer.commit([files["a.txt"]])

        assert result.imported == 0
        assert result.already_present == 1
        assert len(memory_store.versions("a.txt")) == 1

    @pytest.mark.asyncio
    async def test_store_exception_becomes_commit_error(self, source_root, make_file):
        def fail_on(operation):
            if operation == 'add_versions':
                raise TimeoutError("store timed out")

        make_file("a.txt")
        store = MemoryVersionStore(source_root, fail_on=fail_on)
        files = await enumerate_files(source_root)

        with pytest.raises(CommitError) as exc_info:
            await BatchCommitter(store).commit([files["a.txt"]])

        assert isinstance(exc_info.value.cause, TimeoutError)
        assert store.version_count == 0

    @pytest.mark.asyncio
    async def test_failed_storage_result_becomes_commit_error(self, memory_store, source_root, make_file):
        make_file("a.txt")
        files = await enumerate_files(source_root)
        memory_store.add_versions = AsyncMock(return_value=StorageResult.failed_operation(
            'add_versions', 'memory', 'collection is read-only', 1.0
        ))

        with pytest.raises(CommitError, match="read-only"):
            await BatchCommitter(memory_store).commit([files["a.txt"]])

    @pytest.mark.asyncio
    async def test_rejected_record_becomes_commit_error(self, memory_store):
        memory_store.create_version_record = AsyncMock(side_effect=ValueError("bad record"))

        with pytest.raises(CommitError) as exc_info:
            await BatchCommitter(memory_store).commit([FileDescriptor.deletion("x.txt")])

        assert exc_info.value.path == "x.txt"

    @pytest.mark.asyncio
    async def test_declared_size_not_required_to_match(self, memory_store, make_file):
        make_file("grown.txt", "longer than declared")
        descriptor = FileDescriptor(path="grown.txt", stat=FileStat(size=1, mime="text/plain"))

        await BatchCommitter(memory_store).commit([descriptor])

        assert memory_store.latest("grown.txt").content == b"longer than declared"
