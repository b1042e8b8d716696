"""
Storage utilities shared by version store adapters.

Provides version id to Qdrant point id conversion and latest-version selection.
"""

import hashlib
from typing import Dict, Iterable, List

from ..models.files import StoredRecordSummary


def version_id_to_point_id(version_id: str) -> int:
    """
    Convert a version id to a Qdrant point id using SHA256 hashing.

    Args:
        version_id: Version identifier (see VersionRecord.compute_version_id)

    Returns:
        Unsigned 63-bit integer point id
    """
    hash_digest = hashlib.sha256(version_id.encode('utf-8')).digest()
    return int.from_bytes(hash_digest[:8], byteorder='big') & 0x7FFFFFFFFFFFFFFF


def merge_newest(
    newest: Dict[str, StoredRecordSummary],
    summaries: Iterable[StoredRecordSummary]
) -> Dict[str, StoredRecordSummary]:
    """
    Fold summaries into a per-path map of the latest summary seen so far.

    Later entries win ties so insertion order breaks equal dates. Stores call
    this once per page so only one summary per path is held at a time.
    """
    for summary in summaries:
        current = newest.get(summary.path)
        if current is None or _date_key(summary) >= _date_key(current):
            newest[summary.path] = summary
    return newest


def newest_list(
    newest: Dict[str, StoredRecordSummary],
    exists: bool = False
) -> List[StoredRecordSummary]:
    """Sorted latest summaries; with ``exists`` paths whose latest version is a deletion are dropped"""
    result = list(newest.values())
    if exists:
        result = [summary for summary in result if not summary.is_deletion]
    return sorted(result, key=lambda s: s.path)


def select_newest(
    summaries: Iterable[StoredRecordSummary],
    exists: bool = False
) -> List[StoredRecordSummary]:
    """Reduce version summaries to the latest one per path"""
    return newest_list(merge_newest({}, summaries), exists=exists)


def _date_key(summary: StoredRecordSummary) -> float:
    return summary.date.timestamp() if summary.date else float('-inf')


def chunked(items: List, size: int) -> Iterable[List]:
    for i in range(0, len(items), size):
        yield items[i:i + size]

