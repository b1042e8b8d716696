"""
Storage models for version store operations.

Tracks the outcome of bulk version commits.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, field_validator


class StorageResult(BaseModel):
    """Result of a bulk version commit"""

    # Operation details
    operation: str
    collection_name: str
    success: bool

    # Performance metrics
    processing_time_ms: float = 0.0
    affected_count: int = 0
    skipped_count: int = 0
    total_count: int = 0

    # Error handling
    error: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None

    @field_validator('operation')
    @classmethod
    def validate_operation(cls, v: str) -> str:
        """Validate operation type"""
        if v.lower() != 'add_versions':
            raise ValueError(f'Invalid operation: {v}')
        return v.lower()

    @classmethod
    def successful_import(
        cls,
        collection_name: str,
        imported: int,
        skipped: int,
        processing_time_ms: float
    ) -> 'StorageResult':
        """Create successful version import result"""
        return cls(
            operation='add_versions',
            collection_name=collection_name,
            success=True,
            processing_time_ms=processing_time_ms,
            affected_count=imported,
            skipped_count=skipped,
            total_count=imported + skipped
        )

    @classmethod
    def failed_operation(
        cls,
        operation: str,
        collection_name: str,
        error: str,
        processing_time_ms: float,
        error_details: Optional[Dict[str, Any]] = None
    ) -> 'StorageResult':
        """Create failed operation result"""
        return cls(
            operation=operation,
            collection_name=collection_name,
            success=False,
            processing_time_ms=processing_time_ms,
            error=error,
            error_details=error_details
        )
