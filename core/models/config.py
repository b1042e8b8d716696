"""
Configuration models for vfs-sync.

Handles importer limits, version store connection settings, and global settings.
"""

from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BATCH_MAX_BYTES = 2 ** 26  # 64 MiB

DEFAULT_EXCLUDE_PATTERNS = [
    ".git", ".svn", ".hg", ".vfs-sync",
    "__pycache__", "node_modules", ".DS_Store"
]


class ImportConfig(BaseModel):
    """Change detection, batching and enumeration settings"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    # Batching
    batch_max_bytes: int = Field(default=BATCH_MAX_BYTES, ge=1)

    # Store lookups during change detection
    lookup_chunk_size: int = Field(default=100, ge=1, le=10000)
    lookup_concurrency: int = Field(default=3, ge=1, le=16)

    # Enumeration
    exclude_patterns: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS)
    )
    follow_symlinks: bool = False

    @field_validator('exclude_patterns')
    @classmethod
    def validate_patterns(cls, v: List[str]) -> List[str]:
        """Strip blanks from glob patterns"""
        return [pattern.strip() for pattern in v if pattern.strip()]

    def is_excluded(self, name: str, relative_path: str) -> bool:
        """Check an entry name or its root-relative path against exclude patterns"""
        for pattern in self.exclude_patterns:
            if fnmatch(name, pattern) or fnmatch(relative_path, pattern):
                return True
        return False


class StoreConfig(BaseModel):
    """Version store connection settings"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    backend: str = "qdrant"

    # Qdrant connection; ``path`` selects embedded local mode
    url: Optional[str] = "http://localhost:6333"
    path: Optional[Path] = None
    api_key: Optional[str] = None
    timeout: float = Field(default=60.0, gt=0)

    collection_name: str = "vfs-versions"

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid_backends = {'qdrant', 'memory'}
        if v.lower() not in valid_backends:
            raise ValueError(f'Store backend must be one of: {valid_backends}')
        return v.lower()

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Qdrant URL format"""
        if v is None:
            return v
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Qdrant URL must start with http:// or https://')
        return v.rstrip('/')

    @field_validator('collection_name')
    @classmethod
    def validate_collection_name(cls, v: str) -> str:
        """Validate collection name format"""
        if not v or not v.replace('-', '').replace('_', '').isalnum():
            raise ValueError('Collection name must be alphanumeric with dashes/underscores')
        return v.lower()


class SyncConfig(BaseModel):
    """Configuration for synchronizing one directory tree"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True
    )

    name: str
    root: Path

    store: StoreConfig = Field(default_factory=StoreConfig)
    importer: ImportConfig = Field(default_factory=ImportConfig)

    @field_validator('root')
    @classmethod
    def validate_root(cls, v: Path) -> Path:
        """Validate root directory exists"""
        if not v.exists():
            raise ValueError(f'Root directory does not exist: {v}')
        if not v.is_dir():
            raise ValueError(f'Root path is not a directory: {v}')
        return v.resolve()

    @model_validator(mode='after')
    def default_local_store_path(self) -> 'SyncConfig':
        if self.store.path is not None and not self.store.path.is_absolute():
            self.store.path = self.root / self.store.path
        return self

    def get_config_dir(self) -> Path:
        return self.root / ".vfs-sync"

    def get_config_file(self) -> Path:
        return self.get_config_dir() / "config.json"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        return self.model_dump(mode='json')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SyncConfig':
        return cls(**data)


class GlobalSettings(BaseSettings):
    """Global application settings with environment variable support"""
    model_config = SettingsConfigDict(
        env_prefix="VFS_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    default_qdrant_url: str = "http://localhost:6333"
    default_collection_name: str = "vfs-versions"
    default_timeout: float = Field(default=60.0, ge=1.0, le=300.0)

    # Logging
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
