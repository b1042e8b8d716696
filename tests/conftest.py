"""
Shared fixtures for vfs-sync tests.
"""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from core.models.config import ImportConfig
from core.storage.memory import MemoryVersionStore


@pytest.fixture
def make_file(tmp_path) -> Callable[..., Path]:
    """Write a file below tmp_path/root, optionally pinning its mtime"""
    root = tmp_path / "root"
    root.mkdir(exist_ok=True)

    def _make_file(
        relative_path: str,
        content: Union[str, bytes] = "content",
        mtime: Optional[datetime] = None
    ) -> Path:
        file_path = root / relative_path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode('utf-8')
        file_path.write_bytes(content)
        if mtime is not None:
            timestamp = mtime.timestamp()
            os.utime(file_path, (timestamp, timestamp))
        return file_path

    return _make_file


@pytest.fixture
def source_root(tmp_path) -> Path:
    root = tmp_path / "root"
    root.mkdir(exist_ok=True)
    return root


@pytest.fixture
def memory_store(source_root) -> MemoryVersionStore:
    return MemoryVersionStore(source_root, import_config=ImportConfig())


def utc(year: int, month: int = 1, day: int = 1, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def at() -> Callable[..., datetime]:
    """Build UTC datetimes"""
    return utc
