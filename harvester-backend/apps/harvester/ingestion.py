"""
Ingestion Scheduler - Cursor-Driven Batch Harvesting

Owns the harvest cursor over the identifier list and runs bounded batches:

- At most one batch at a time; a call made while a batch runs is skipped, not queued
- Complete records (both payloads present) are skipped without a fetch or a pause
- Both lookups of an item run concurrently; items run one after another with a
  pacing pause between fetch attempts
- A failing item is logged and passed over; it comes back after the cursor wraps
- The cursor wraps to 0 at the end of the list and is checkpointed after each batch

Usage:
    scheduler = IngestionScheduler(IdSource(), PlaylinerClient(), RecordStore())
    scheduler.load_ids()
    scheduler.restore_checkpoint()
    summary = await scheduler.run_batch()
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Protocol

from apps.harvester.id_source import IdSource
from utils.config import settings
from utils.db import RecordStore
from utils.schemas import NewsRecord, SchedulerStatus

logger = logging.getLogger(__name__)


class FetchClient(Protocol):
    async def fetch_version(self, news_id: int) -> Optional[Any]: ...

    async def fetch_full(self, news_id: int) -> Optional[Any]: ...


class SchedulerState(str, Enum):
    """Lifecycle of the scheduler's single batch slot."""

    IDLE = "idle"
    RUNNING = "running"


class BatchStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    EMPTY = "empty"


class SchedulerBusyError(RuntimeError):
    """Raised when an operation needs the scheduler idle but a batch is running."""


@dataclass
class BatchSummary:
    """Outcome of one run_batch invocation."""

    status: BatchStatus
    start_index: int
    end_index: int
    total_ids: int
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    wrapped: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "start_index": self.start_index,
            "end_index": self.end_index,
            "total_ids": self.total_ids,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "wrapped": self.wrapped,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


class IngestionScheduler:
    """
    Batch scheduler over a fixed, ordered identifier list.

    Cursor state (current index, identifier list, state token) is only ever
    changed by run_batch, reset_processing and restore_checkpoint.
    """

    def __init__(
        self,
        id_source: IdSource,
        client: FetchClient,
        store: RecordStore,
        batch_size: Optional[int] = None,
        delay_ms: Optional[int] = None,
        max_item_attempts: Optional[int] = None,
        checkpoint_enabled: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            id_source: Provider of the identifier list
            client: Remote lookups (fetch_version / fetch_full)
            store: Record persistence
            batch_size: Fetch attempts per batch, defaults to settings.BATCH_SIZE
            delay_ms: Pause between fetch attempts, defaults to settings.API_DELAY_MS
            max_item_attempts: Failed attempts after which an incomplete record is
                no longer fetched, 0 disables; defaults to settings.MAX_ITEM_ATTEMPTS
            checkpoint_enabled: Persist the cursor, defaults to settings.CHECKPOINT_ENABLED
            sleep: Coroutine used for the pacing pause
        """
        self.id_source = id_source
        self.client = client
        self.store = store
        self.batch_size = batch_size if batch_size is not None else settings.BATCH_SIZE
        self.delay_ms = delay_ms if delay_ms is not None else settings.API_DELAY_MS
        self.max_item_attempts = (
            max_item_attempts if max_item_attempts is not None else settings.MAX_ITEM_ATTEMPTS
        )
        self.checkpoint_enabled = (
            checkpoint_enabled if checkpoint_enabled is not None else settings.CHECKPOINT_ENABLED
        )
        self._sleep = sleep

        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

        self._state = SchedulerState.IDLE
        self._current_index = 0
        self._all_ids: list[int] = []

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def total_ids(self) -> int:
        return len(self._all_ids)

    def load_ids(self) -> int:
        """Replace the identifier list with a fresh load. Returns its length."""
        self._all_ids = self.id_source.load()
        if self._current_index > len(self._all_ids):
            self._current_index = 0
        return len(self._all_ids)

    def restore_checkpoint(self) -> bool:
        """
        Resume the cursor from the persisted checkpoint.

        The checkpoint is only trusted when it was written against a list of the
        same length; otherwise the cursor starts over at 0.

        Returns:
            True if the cursor was restored
        """
        if not self.checkpoint_enabled:
            return False
        if self.is_processing:
            raise SchedulerBusyError("Cannot restore checkpoint while a batch is running")

        try:
            checkpoint = self.store.load_checkpoint()
        except Exception as e:
            logger.warning("Failed to load checkpoint, starting at 0: %s", str(e))
            return False

        if checkpoint is None:
            logger.info("No checkpoint found, starting at 0")
            return False

        total = len(self._all_ids)
        if checkpoint.total_ids != total or (total > 0 and checkpoint.current_index >= total):
            logger.warning(
                "Checkpoint does not match id list, starting at 0",
                extra={
                    "checkpoint_index": checkpoint.current_index,
                    "checkpoint_total": checkpoint.total_ids,
                    "total_ids": total,
                },
            )
            self._current_index = 0
            return False

        self._current_index = checkpoint.current_index
        logger.info("Restored cursor from checkpoint: index=%d/%d", self._current_index, total)
        return True

    def _save_checkpoint(self) -> None:
        if not self.checkpoint_enabled:
            return
        try:
            self.store.save_checkpoint(self._current_index, len(self._all_ids))
        except Exception as e:
            logger.error("Failed to save checkpoint: %s", str(e), exc_info=True)

    def _should_skip(self, record: Optional[NewsRecord]) -> bool:
        if record is None:
            return False
        if record.is_complete:
            return True
        return self.max_item_attempts > 0 and record.fail_count >= self.max_item_attempts

    async def _fetch_and_store(self, news_id: int) -> NewsRecord:
        # Both lookups are awaited before either result is used
        results = await asyncio.gather(
            self.client.fetch_version(news_id),
            self.client.fetch_full(news_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        version_data, full_data = results
        return self.store.upsert(news_id, version_data, full_data)

    async def run_batch(self) -> BatchSummary:
        """
        Run one batch from the current cursor position.

        Returns:
            Summary of the batch; status is `skipped` if another batch was
            running and `empty` if there is nothing to harvest
        """
        if self._state is SchedulerState.RUNNING:
            logger.info("Previous batch still processing, skipping")
            return BatchSummary(
                status=BatchStatus.SKIPPED,
                start_index=self._current_index,
                end_index=self._current_index,
                total_ids=len(self._all_ids),
            )

        if not self._all_ids:
            self.load_ids()
            if not self._all_ids:
                logger.warning("No ids to process")
                return BatchSummary(status=BatchStatus.EMPTY, start_index=0, end_index=0, total_ids=0)

        # No await between the check above and this assignment
        self._state = SchedulerState.RUNNING
        start = time.monotonic()
        summary = BatchSummary(
            status=BatchStatus.COMPLETED,
            start_index=self._current_index,
            end_index=self._current_index,
            total_ids=len(self._all_ids),
        )
        delay_seconds = self.delay_ms / 1000

        logger.info(
            "Starting batch",
            extra={
                "start_index": self._current_index,
                "total_ids": len(self._all_ids),
                "batch_size": self.batch_size,
            },
        )

        try:
            while summary.processed < self.batch_size and self._current_index < len(self._all_ids):
                news_id = self._all_ids[self._current_index]

                try:
                    existing = self.store.find_by_id(news_id)
                    if self._should_skip(existing):
                        logger.debug("Id %s already harvested, skipping", news_id)
                        summary.skipped += 1
                        self._current_index += 1
                        continue

                    logger.info(
                        "Fetching id %s (%d/%d)",
                        news_id, self._current_index + 1, len(self._all_ids),
                    )
                    record = await self._fetch_and_store(news_id)
                    if record.is_complete:
                        logger.info("Saved id %s", news_id)
                    else:
                        logger.warning(
                            "Saved incomplete id %s",
                            news_id,
                            extra={
                                "has_version": record.version_data is not None,
                                "has_full": record.full_data is not None,
                                "fail_count": record.fail_count,
                            },
                        )
                except Exception as e:
                    logger.error("Error processing id %s: %s", news_id, str(e), exc_info=True)
                    summary.failed += 1

                summary.processed += 1
                self._current_index += 1

                if summary.processed < self.batch_size and self._current_index < len(self._all_ids):
                    await self._sleep(delay_seconds)

            if self._current_index >= len(self._all_ids):
                logger.info("Completed processing all ids, resetting to start")
                self._current_index = 0
                summary.wrapped = True

        finally:
            self._state = SchedulerState.IDLE
            summary.end_index = self._current_index
            summary.completed_at = datetime.now(timezone.utc)
            summary.duration_seconds = round(time.monotonic() - start, 3)
            self._save_checkpoint()

        logger.info(
            "Batch completed. Processed %d items.",
            summary.processed,
            extra={"skipped": summary.skipped, "failed": summary.failed, "end_index": summary.end_index},
        )
        return summary

    def reset_processing(self) -> SchedulerStatus:
        """
        Move the cursor back to 0 and reload the identifier list.

        Raises:
            SchedulerBusyError: If a batch is running
        """
        if self._state is SchedulerState.RUNNING:
            raise SchedulerBusyError("Cannot reset while a batch is running")

        self._current_index = 0
        self._all_ids = []
        self.load_ids()
        self._save_checkpoint()

        logger.info("Scheduler reset", extra={"total_ids": len(self._all_ids)})
        return self.get_status()

    def get_status(self) -> SchedulerStatus:
        total = len(self._all_ids)
        progress = f"{self._current_index / total * 100:.2f}%" if total else "0%"
        return SchedulerStatus(
            total_ids=total,
            current_index=self._current_index,
            is_processing=self.is_processing,
            progress=progress,
        )
