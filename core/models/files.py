"""
File and version record models for vfs-sync.

Describes files discovered on disk, the store's view of their latest versions,
and the version records handed to the store for persistence.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


DELETION_CHANGE = "deletion"


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FileStat(BaseModel):
    """Stat metadata captured for a file when it was enumerated"""
    model_config = ConfigDict(frozen=True)

    size: int = Field(default=0, ge=0)
    mtime: Optional[datetime] = None
    mime: Optional[str] = None

    @field_validator('mtime')
    @classmethod
    def validate_mtime(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @property
    def has_content_type(self) -> bool:
        return bool(self.mime)

    @classmethod
    def from_os_stat(cls, stat_result, mime: Optional[str] = None) -> 'FileStat':
        """Create from an os.stat_result"""
        return cls(
            size=stat_result.st_size,
            mtime=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
            mime=mime
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            'size': self.size,
            'mtime': self.mtime.isoformat() if self.mtime else None,
            'mime': self.mime
        }


class FileDescriptor(BaseModel):
    """
    A root-relative file path plus its stat metadata.

    ``stat`` is None only for deletions synthesized during change detection.
    """
    model_config = ConfigDict(frozen=True)

    path: str
    stat: Optional[FileStat] = None

    # Date of the stored record this change must be dated after
    supersedes: Optional[datetime] = None

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('File path cannot be empty')
        return v

    @field_validator('supersedes')
    @classmethod
    def validate_supersedes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @classmethod
    def deletion(cls, path: str, supersedes: Optional[datetime] = None) -> 'FileDescriptor':
        """Create a stand-in descriptor for a path that no longer exists"""
        return cls(path=path, stat=None, supersedes=supersedes)

    @property
    def is_deletion(self) -> bool:
        return self.stat is None

    @property
    def size(self) -> int:
        """Declared size in bytes, 0 for deletions"""
        return self.stat.size if self.stat else 0

    @property
    def mtime(self) -> Optional[datetime]:
        return self.stat.mtime if self.stat else None

    @property
    def is_empty_untyped(self) -> bool:
        """Zero-size file without a recognizable content type"""
        return self.stat is not None and self.stat.size == 0 and not self.stat.mime

    def __str__(self) -> str:
        if self.is_deletion:
            return f"{self.path} (deleted)"
        return f"{self.path} ({self.size} bytes)"


class StoredRecordSummary(BaseModel):
    """Latest known version metadata for a path, without content"""
    model_config = ConfigDict(frozen=True)

    path: str
    date: Optional[datetime] = None
    change: Optional[str] = None

    @field_validator('date', mode='before')
    @classmethod
    def validate_date(cls, v: Any) -> Optional[datetime]:
        if v is None:
            return None
        if isinstance(v, str):
            if v.endswith('Z'):
                v = v[:-1] + '+00:00'
            v = datetime.fromisoformat(v)
        elif isinstance(v, (int, float)):
            v = datetime.fromtimestamp(v, tz=timezone.utc)
        return ensure_utc(v)

    @property
    def is_deletion(self) -> bool:
        return self.change == DELETION_CHANGE


class VersionRecord(BaseModel):
    """
    One version of one file, or the record of its deletion.

    Creation and modification are implied by the presence of content; deletions
    carry ``change="deletion"`` and no stat or content.
    """
    model_config = ConfigDict(validate_assignment=True)

    path: str
    change: Optional[str] = None
    date: datetime = Field(default_factory=utc_now)
    stat: Optional[FileStat] = None
    content: Optional[bytes] = None
    version_id: Optional[str] = None

    @field_validator('date')
    @classmethod
    def validate_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator('change')
    @classmethod
    def validate_change(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v != DELETION_CHANGE:
            raise ValueError(f'Unsupported change kind: {v}')
        return v

    @classmethod
    def deletion(
        cls,
        path: str,
        now: Optional[datetime] = None,
        after: Optional[datetime] = None
    ) -> 'VersionRecord':
        """
        Create a deletion record.

        The timestamp is truncated to whole seconds so deletion dates compare
        equal across systems with different clock resolution. With ``after``
        (the date of the version being deleted) the deletion is dated at least
        one whole second later, so it always becomes the path's newest record
        even when the file's mtime lies in the future.
        """
        date = (ensure_utc(now) if now is not None else utc_now()).replace(microsecond=0)
        if after is not None:
            date = max(date, ensure_utc(after).replace(microsecond=0) + timedelta(seconds=1))
        return cls(
            path=path,
            change=DELETION_CHANGE,
            date=date,
            stat=None,
            content=None
        )

    @classmethod
    def from_file(cls, descriptor: FileDescriptor, content: bytes) -> 'VersionRecord':
        """
        Create a creation/modification record dated by the file's mtime.

        A file that reappears after its deletion record, with an mtime not
        after that deletion, is dated one second after it so it becomes the
        path's newest version.
        """
        if descriptor.stat is None:
            raise ValueError(f'Cannot version {descriptor.path} without stat metadata')
        date = descriptor.stat.mtime or utc_now()
        if descriptor.supersedes is not None and date <= descriptor.supersedes:
            date = descriptor.supersedes + timedelta(seconds=1)
        return cls(
            path=descriptor.path,
            date=date,
            stat=descriptor.stat,
            content=content
        )

    @property
    def is_deletion(self) -> bool:
        return self.change == DELETION_CHANGE

    @property
    def content_hash(self) -> Optional[str]:
        if self.content is None:
            return None
        return hashlib.sha256(self.content).hexdigest()

    def compute_version_id(self) -> str:
        """Deterministic identity of this version used for duplicate detection"""
        parts = [
            self.path,
            self.change or "",
            self.date.isoformat(),
            self.content_hash or ""
        ]
        return hashlib.sha256("\0".join(parts).encode('utf-8')).hexdigest()

    def summary(self) -> StoredRecordSummary:
        return StoredRecordSummary(path=self.path, date=self.date, change=self.change)


class RecordQuery(BaseModel):
    """Query against stored version records"""

    paths: Optional[List[str]] = None
    newest: bool = False
    exists: bool = False
    attributes: Optional[List[str]] = None


class WalkResult(BaseModel):
    """Result of a recursive file enumeration"""

    files: List[FileDescriptor] = Field(default_factory=list)
    scan_time: float = 0.0

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files)
