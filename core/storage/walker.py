"""
Filesystem enumeration for version stores.

Recursive directory traversal with os.scandir, collecting root-relative paths
and stat metadata for change detection.
"""

import asyncio
import logging
import mimetypes
import os
import time
from pathlib import Path
from typing import List, Optional

from ..models.config import ImportConfig
from ..models.files import FileDescriptor, FileStat, WalkResult

logger = logging.getLogger(__name__)


def normalize_relative_path(path: str) -> str:
    """
    Canonicalize a root-relative path for comparison.

    Uses forward slashes, drops leading slashes and ``./`` prefixes and
    collapses empty and ``.`` segments.
    """
    parts = [part for part in str(path).replace('\\', '/').split('/') if part not in ('', '.')]
    return '/'.join(parts)


def guess_mime_type(path: str) -> Optional[str]:
    mime, _ = mimetypes.guess_type(path)
    return mime


class FileSystemWalker:
    """
    Filesystem scanner producing FileDescriptors relative to a root directory.

    Unreadable directories raise OSError; entries that vanish or cannot be
    stat'ed mid-scan are skipped.
    """

    def __init__(self, root: Path, config: Optional[ImportConfig] = None):
        self.root = Path(root)
        self.config = config or ImportConfig()

    async def walk(self) -> WalkResult:
        """Enumerate all files below the root without blocking the event loop"""
        return await asyncio.to_thread(self.walk_sync)

    def walk_sync(self) -> WalkResult:
        start_time = time.perf_counter()
        files: List[FileDescriptor] = []

        if not self.root.is_dir():
            raise NotADirectoryError(f"Root is not a directory: {self.root}")

        self._scan_directory(self.root, "", files)

        scan_time = time.perf_counter() - start_time
        logger.info(
            f"Scanned {self.root}: {len(files)} files found in {scan_time:.3f}s"
        )
        return WalkResult(files=files, scan_time=scan_time)

    def _scan_directory(self, dir_path: Path, prefix: str, files: List[FileDescriptor]) -> None:
        follow = self.config.follow_symlinks

        with os.scandir(str(dir_path)) as entries:
            for entry in sorted(entries, key=lambda e: e.name):
                relative_path = f"{prefix}{entry.name}"

                if self.config.is_excluded(entry.name, relative_path):
                    continue

                try:
                    is_dir = entry.is_dir(follow_symlinks=follow)
                    is_file = not is_dir and entry.is_file(follow_symlinks=follow)
                except OSError as e:
                    logger.debug(f"Skipping entry {relative_path}: {e}")
                    continue

                if is_dir:
                    self._scan_directory(Path(entry.path), f"{relative_path}/", files)
                elif is_file:
                    try:
                        stat_result = entry.stat(follow_symlinks=follow)
                    except FileNotFoundError:
                        logger.debug(f"File disappeared during scan: {relative_path}")
                        continue

                    files.append(FileDescriptor(
                        path=relative_path,
                        stat=FileStat.from_os_stat(stat_result, guess_mime_type(entry.name))
                    ))
