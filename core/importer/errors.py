"""
Error taxonomy for file imports.

Every error is fatal to the run it occurs in; none are retried internally.
"""

from typing import Optional


class FileImportError(Exception):
    """Base class for import pipeline failures"""

    stage = "import"

    def __init__(self, message: str, path: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.path = path
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.path:
            return f"{message} [{self.path}]"
        return message


class EnumerationError(FileImportError):
    """Walking the root directory failed"""
    stage = "enumerate"


class RecordLookupError(FileImportError):
    """A store query failed during change detection"""
    stage = "detect"


class FileReadError(FileImportError):
    """A file could not be read for a reason other than concurrent deletion"""
    stage = "commit"


class CommitError(FileImportError):
    """The store rejected a batch of versions"""
    stage = "commit"
