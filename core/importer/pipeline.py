"""
File import pipeline.

Drives one synchronization run through a linear state machine:
enumerate, detect changes, batch, then commit batches strictly one after another,
emitting notifications along the way.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Union

from ..models.config import ImportConfig
from ..models.files import FileDescriptor
from ..storage.base import VersionStore
from .batcher import Batcher, sum_file_size
from .change_detector import ChangeDetector, ChangeSet
from .committer import BatchCommitter
from .errors import EnumerationError
from .notifications import Notification, NotificationChannel, Subscriber

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Optional[BaseException]], Union[None, Awaitable[None]]]


class PipelineState(Enum):
    """States of an import run; transitions only move forward"""
    IDLE = "idle"
    ENUMERATE = "enumerate"
    DETECT = "detect"
    BATCH = "batch"
    COMMIT_BATCH = "commit_batch"
    DONE = "done"


@dataclass
class ImportContext:
    """Mutable execution state of a single run"""
    files_found: int = 0
    total_files: int = 0
    files_processed: int = 0
    batches: List[List[FileDescriptor]] = field(default_factory=list)
    batches_committed: int = 0
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.perf_counter)


@dataclass
class ImportSummary:
    """What a finished run did, and the error that ended it if any"""
    state: PipelineState
    files_found: int
    total_files: int
    files_processed: int
    batches_total: int
    batches_committed: int
    error: Optional[BaseException]
    elapsed_seconds: float

    @property
    def success(self) -> bool:
        return self.error is None


class FileImportPipeline:
    """
    Synchronizes a directory tree into a version store.

    Only one batch is ever in flight. Any error ends the run: it is reported via
    the END notification, the completion callback and ``ImportSummary.error``.
    Re-running after a failure is safe because batches are imported with
    ``only_import_new``.
    """

    def __init__(
        self,
        store: VersionStore,
        config: Optional[ImportConfig] = None,
        notifications: Optional[NotificationChannel] = None
    ):
        self.store = store
        self.config = config or ImportConfig()
        self.notifications = notifications or NotificationChannel()

        self.detector = ChangeDetector(store, self.config)
        self.batcher = Batcher(self.config.batch_max_bytes)
        self.committer = BatchCommitter(store)

        self.state = PipelineState.IDLE
        self._running = False

    def _transition(self, state: PipelineState) -> None:
        logger.debug(f"Import state {self.state.value} -> {state.value}")
        self.state = state

    async def _enumerate(self) -> List[FileDescriptor]:
        try:
            walk_result = await self.store.walk_files()
        except Exception as e:
            logger.error(f"Failed to enumerate {self.store.get_root_directory()}: {e}")
            raise EnumerationError(f"Failed to enumerate files: {e}", cause=e) from e
        return walk_result.files

    async def detect_changes(self) -> ChangeSet:
        """Enumerate and detect changes without committing anything"""
        files = await self._enumerate()
        return await self.detector.detect(files)

    async def run(self, on_complete: Optional[CompletionCallback] = None) -> ImportSummary:
        """
        Execute one full import run.

        Args:
            on_complete: Called with the terminal error (or None) after END

        Returns:
            Summary of the run; never raises for pipeline failures
        """
        if self._running:
            raise RuntimeError("Import pipeline is already running")

        self._running = True
        context = ImportContext()
        try:
            try:
                await self._execute(context)
            except Exception as e:
                context.error = e

            self._transition(PipelineState.DONE)
            summary = self._summarize(context)
            if context.error is None:
                logger.info(
                    f"Import finished: {context.files_processed} changes in "
                    f"{context.batches_committed} batches ({summary.elapsed_seconds:.2f}s)"
                )
            else:
                logger.error(
                    f"Import failed after {context.files_processed}/{context.total_files} changes: "
                    f"{context.error}"
                )

            await self.notifications.emit(Notification.end(context.error))
            if on_complete is not None:
                result = on_complete(context.error)
                if inspect.isawaitable(result):
                    await result
            return summary
        finally:
            self._running = False

    async def run_or_raise(self) -> ImportSummary:
        """Like run(), but re-raise the terminal error"""
        summary = await self.run()
        if summary.error is not None:
            raise summary.error
        return summary

    async def _execute(self, context: ImportContext) -> None:
        self._transition(PipelineState.ENUMERATE)
        files = await self._enumerate()
        context.files_found = len(files)

        self._transition(PipelineState.DETECT)
        change_set = await self.detector.detect(files)
        context.total_files = len(change_set.entries)
        await self.notifications.emit(Notification.files_found(change_set.entries))

        self._transition(PipelineState.BATCH)
        context.batches = self.batcher.create_batches(change_set.entries)

        self._transition(PipelineState.COMMIT_BATCH)
        for index, batch in enumerate(context.batches):
            await self.notifications.emit(Notification.process_batch(batch, index))
            logger.debug(
                f"Committing batch {index + 1}/{len(context.batches)}: "
                f"{len(batch)} entries, {sum_file_size(batch)} bytes"
            )
            try:
                await self.committer.commit(batch)
            except Exception:
                await self._report_progress(context, batch)
                raise
            await self._report_progress(context, batch)
            context.batches_committed += 1

    async def _report_progress(self, context: ImportContext, batch: List[FileDescriptor]) -> None:
        context.files_processed += len(batch)
        await self.notifications.emit(
            Notification.progress_update(context.files_processed, context.total_files)
        )

    def _summarize(self, context: ImportContext) -> ImportSummary:
        return ImportSummary(
            state=self.state,
            files_found=context.files_found,
            total_files=context.total_files,
            files_processed=context.files_processed,
            batches_total=len(context.batches),
            batches_committed=context.batches_committed,
            error=context.error,
            elapsed_seconds=time.perf_counter() - context.started_at
        )


async def run_file_import(
    store: VersionStore,
    on_complete: Optional[CompletionCallback] = None,
    config: Optional[ImportConfig] = None,
    subscriber: Optional[Subscriber] = None
) -> ImportSummary:
    """Run one import against ``store``, optionally subscribing to notifications"""
    pipeline = FileImportPipeline(store, config)
    if subscriber is not None:
        pipeline.notifications.subscribe(subscriber)
    return await pipeline.run(on_complete)
