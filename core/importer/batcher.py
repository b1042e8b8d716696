"""
Size-bounded batching of change sets.

Greedy, order-preserving partition so that committing one batch never holds
more than roughly ``batch_max_bytes`` of file content in memory.
"""

import logging
from typing import List, Optional

from ..models.config import BATCH_MAX_BYTES
from ..models.files import FileDescriptor

logger = logging.getLogger(__name__)


def sum_file_size(files: List[FileDescriptor]) -> int:
    """Cumulative declared size of a list of descriptors"""
    return sum(f.size for f in files)


class Batcher:
    """
    Partitions a change set into batches below a cumulative size ceiling.

    A batch is closed as soon as adding the next file would reach the ceiling.
    A single file at or above the ceiling is emitted as a batch of its own.
    """

    def __init__(self, max_bytes: int = BATCH_MAX_BYTES):
        if max_bytes <= 0:
            raise ValueError("Batch size ceiling must be positive")
        self.max_bytes = max_bytes

    def create_batches(self, files: List[FileDescriptor]) -> List[List[FileDescriptor]]:
        batches: List[List[FileDescriptor]] = []
        current: List[FileDescriptor] = []
        current_size = 0

        for descriptor in files:
            size = descriptor.size
            if current and current_size + size >= self.max_bytes:
                batches.append(current)
                current = []
                current_size = 0

            current.append(descriptor)
            current_size += size

            if len(current) == 1 and size >= self.max_bytes:
                logger.debug(f"Oversized file {descriptor.path} ({size} bytes) gets its own batch")
                batches.append(current)
                current = []
                current_size = 0

        if current:
            batches.append(current)

        logger.info(
            f"Created {len(batches)} batches from {len(files)} changes "
            f"(ceiling {self.max_bytes} bytes)"
        )
        return batches


def create_batches(files: List[FileDescriptor], max_bytes: Optional[int] = None) -> List[List[FileDescriptor]]:
    return Batcher(max_bytes or BATCH_MAX_BYTES).create_batches(files)
