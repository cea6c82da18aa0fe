"""
Harvest Scheduler - Cron and On-Demand Execution

Drives the ingestion scheduler from a cron schedule and from manual requests,
both through the same batch worker.

Features:
- Cron-based scheduling (configurable via SCRAPE_SCHEDULE_CRON)
- Manual triggers queued on the batch worker (fire-and-forget for callers)
- RUN_ONCE mode for a single batch
- Redis event publishing after each batch (PUBLISH_BATCH_EVENTS)
- Graceful shutdown handling

Usage:
    # Scheduled mode (default)
    python -m apps.harvester

    # Run one batch and exit
    RUN_ONCE=true python -m apps.harvester
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from apps.harvester.client import PlaylinerClient
from apps.harvester.id_source import IdSource
from apps.harvester.ingestion import BatchSummary, IngestionScheduler
from apps.harvester.publisher import publish_batch_event
from apps.harvester.worker import BatchWorker
from utils.config import Settings, settings
from utils.db import RecordStore
from utils.logging import setup_logging

logger = logging.getLogger(__name__)

JOB_ID = "harvest_job"


def build_harvester(config: Optional[Settings] = None) -> "HarvestScheduler":
    """
    Wire store, id source, API client and scheduler from settings.

    The schema is created before anything else; a database that cannot be
    opened is not recoverable and the error propagates.

    Raises:
        sqlite3.Error: If the record store cannot be initialized
    """
    config = config or settings

    store = RecordStore(config.SQLITE_PATH)
    store.init_schema()

    ingestion = IngestionScheduler(
        id_source=IdSource(config.IDS_FILE, dedupe=config.DEDUPE_IDS),
        client=PlaylinerClient(
            base_url=config.PLAYLINER_API_BASE,
            token=config.BEARER_TOKEN,
            lang=config.API_LANG,
            timeout=config.API_TIMEOUT,
        ),
        store=store,
        batch_size=config.BATCH_SIZE,
        delay_ms=config.API_DELAY_MS,
        max_item_attempts=config.MAX_ITEM_ATTEMPTS,
        checkpoint_enabled=config.CHECKPOINT_ENABLED,
    )
    ingestion.load_ids()
    ingestion.restore_checkpoint()

    return HarvestScheduler(
        ingestion,
        cron=config.SCRAPE_SCHEDULE_CRON,
        publish_events=config.PUBLISH_BATCH_EVENTS,
    )


class HarvestScheduler:
    """
    Scheduler for periodic or on-demand harvest batches.

    Handles:
    - APScheduler setup and management
    - Batch worker lifecycle
    - RUN_ONCE immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        ingestion: IngestionScheduler,
        cron: Optional[str] = None,
        run_once: bool = False,
        publish_events: Optional[bool] = None,
    ) -> None:
        """
        Args:
            ingestion: The cursor-owning batch scheduler
            cron: Crontab expression, defaults to settings.SCRAPE_SCHEDULE_CRON
            run_once: If True, run one batch and exit
            publish_events: Publish batch events, defaults to settings.PUBLISH_BATCH_EVENTS
        """
        self.ingestion = ingestion
        self.cron = cron or settings.SCRAPE_SCHEDULE_CRON
        self.run_once = run_once
        self.publish_events = settings.PUBLISH_BATCH_EVENTS if publish_events is None else publish_events
        self.worker = BatchWorker(self.execute_batch)
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()

        logger.info(
            "HarvestScheduler initialized",
            extra={"run_once": run_once, "cron_schedule": self.cron},
        )

    @property
    def store(self) -> RecordStore:
        return self.ingestion.store

    async def execute_batch(self, trigger: str = "cron") -> BatchSummary:
        """
        Run one batch and publish its event.

        A publishing failure is logged and does not affect the batch result.
        """
        logger.info("Starting batch execution: trigger=%s", trigger)

        summary = await self.ingestion.run_batch()

        if self.publish_events:
            try:
                await publish_batch_event(summary, trigger)
            except Exception as e:
                logger.error("Batch event not published: %s", str(e))

        logger.info("Batch execution finished", extra={"trigger": trigger, **summary.to_dict()})
        return summary

    def trigger(self, source: str = "manual") -> bool:
        """Queue a batch on the worker. Returns False if one is already pending."""
        return self.worker.submit(source)

    async def _cron_tick(self) -> None:
        # Coroutine job so APScheduler runs it on the event loop, not in a thread
        logger.info("Cron job triggered")
        self.trigger("cron")

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def start_background(self, enable_cron: bool = True) -> None:
        """Start the batch worker and, unless disabled, the cron schedule."""
        self.worker.start()

        if not enable_cron:
            logger.info("Cron schedule disabled, manual triggers only")
            return

        self.scheduler = AsyncIOScheduler()

        trigger = CronTrigger.from_crontab(self.cron)
        self.scheduler.add_job(
            self._cron_tick,
            trigger=trigger,
            id=JOB_ID,
            name="Periodic News Harvest",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        # Start scheduler first to get next_run_time
        self.scheduler.start()

        job = self.scheduler.get_job(JOB_ID)
        next_run = getattr(job, "next_run_time", None)
        next_run_str = str(next_run) if next_run is not None else None

        logger.info(
            "Scheduled harvest job",
            extra={"schedule": self.cron, "next_run": next_run_str},
        )

    async def shutdown(self) -> None:
        """
        Stop cron, stop the worker and close the API client.

        A batch already running is allowed to finish; queued requests are dropped.
        """
        logger.info("Shutting down scheduler")
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None

        await self.worker.stop()

        aclose = getattr(self.ingestion.client, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("Scheduler shutdown complete")

    async def start(self) -> None:
        """
        Start scheduler or execute once.

        In scheduled mode, runs continuously until shutdown signal.
        In RUN_ONCE mode, executes one batch immediately and exits.
        """
        self.setup_signal_handlers()

        if self.run_once:
            logger.info("Running in RUN_ONCE mode")
            try:
                await self.execute_batch("run_once")
            finally:
                await self.shutdown()
            return

        logger.info("Running in scheduled mode")
        await self.start_background()
        logger.info("Waiting for jobs...")

        await self.shutdown_event.wait()

        await self.shutdown()


async def main() -> None:
    """Main entry point for the harvester."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    run_once = os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")

    try:
        harvester = build_harvester()
    except Exception as e:
        logger.error("Failed to initialize harvester", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)

    harvester.run_once = run_once

    try:
        await harvester.start()
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
