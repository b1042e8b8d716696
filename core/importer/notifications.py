"""
Import Notification Models.

Defines the notification kinds emitted by the import pipeline and the channel
callers subscribe to for lifecycle and progress updates.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from ..models.files import FileDescriptor

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    """Kinds of notifications, in the order a run emits them"""
    FILES_FOUND = "filesFound"       # Change set determined
    PROCESS_BATCH = "processBatch"   # A batch is about to be committed
    PROGRESS = "progress"            # A batch commit attempt finished
    END = "end"                      # Run finished, exactly once


class ProgressInfo(BaseModel):
    """Running count of processed change entries"""
    model_config = ConfigDict(frozen=True)

    loaded: int = Field(ge=0)
    total: int = Field(ge=0)

    @property
    def fraction(self) -> float:
        if self.total == 0:
            return 1.0
        return self.loaded / self.total


class Notification(BaseModel):
    """A single notification with its kind-specific payload"""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: NotificationKind
    files: Optional[List[FileDescriptor]] = None
    batch_index: Optional[int] = None
    progress: Optional[ProgressInfo] = None
    error: Optional[BaseException] = None
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def files_found(cls, change_set: List[FileDescriptor]) -> 'Notification':
        return cls(kind=NotificationKind.FILES_FOUND, files=list(change_set))

    @classmethod
    def process_batch(cls, batch: List[FileDescriptor], batch_index: int) -> 'Notification':
        return cls(kind=NotificationKind.PROCESS_BATCH, files=list(batch), batch_index=batch_index)

    @classmethod
    def progress_update(cls, loaded: int, total: int) -> 'Notification':
        return cls(kind=NotificationKind.PROGRESS, progress=ProgressInfo(loaded=loaded, total=total))

    @classmethod
    def end(cls, error: Optional[BaseException] = None) -> 'Notification':
        return cls(kind=NotificationKind.END, error=error)

    @property
    def payload(self) -> Any:
        """The kind-specific payload: file list, progress info or terminal error"""
        if self.kind in (NotificationKind.FILES_FOUND, NotificationKind.PROCESS_BATCH):
            return self.files
        if self.kind == NotificationKind.PROGRESS:
            return self.progress
        return self.error

    def __str__(self) -> str:
        if self.kind == NotificationKind.PROGRESS and self.progress:
            return f"{self.kind.value}: {self.progress.loaded}/{self.progress.total}"
        if self.kind == NotificationKind.END:
            return f"{self.kind.value}: {self.error!r}" if self.error else f"{self.kind.value}: ok"
        return f"{self.kind.value}: {len(self.files or [])} files"


Subscriber = Callable[[Notification], Union[None, Awaitable[None]]]


class NotificationChannel:
    """
    Typed notification channel for one pipeline.

    Subscribers may be plain or async callables. ``stream()`` yields
    notifications as an async iterator that finishes after ``END``.
    """

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._queues: List[asyncio.Queue] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it"""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def stream(self) -> AsyncIterator[Notification]:
        """Start buffering notifications now and iterate them until END"""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.append(queue)
        return self._drain(queue)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[Notification]:
        try:
            while True:
                notification = await queue.get()
                yield notification
                if notification.kind == NotificationKind.END:
                    break
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    async def emit(self, notification: Notification) -> None:
        logger.debug(f"Notification {notification}")

        for queue in list(self._queues):
            queue.put_nowait(notification)

        for callback in list(self._subscribers):
            try:
                result = callback(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Notification subscriber failed on {notification.kind.value}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
