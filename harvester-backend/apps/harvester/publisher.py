"""
Batch Event Publisher

Announces every finished batch on a Redis Pub/Sub channel so other services
can follow harvest progress without polling the admin API.

Each message is a `BatchEvent` serialized by pydantic. Delivery is retried on
Redis connection and timeout errors; anything else fails at once.

Usage:
    from apps.harvester.publisher import publish_batch_event

    await publish_batch_event(summary, trigger="cron")
"""

import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from apps.harvester.ingestion import BatchSummary
from utils.config import settings
from utils.schemas import BatchEvent

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (RedisConnectionError, RedisTimeoutError)


def build_batch_event(summary: BatchSummary, trigger: str) -> BatchEvent:
    return BatchEvent(
        trigger=trigger,
        status=summary.status.value,
        processed=summary.processed,
        skipped=summary.skipped,
        failed=summary.failed,
        current_index=summary.end_index,
        total_ids=summary.total_ids,
        wrapped=summary.wrapped,
    )


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Batch event publish failed, retrying",
        extra={"attempt": retry_state.attempt_number, "error": str(error)},
    )


class BatchEventPublisher:
    """Publishes `BatchEvent`s to the batches channel."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
        client: Optional[Any] = None,
        attempts: int = 3,
        wait: Optional[wait_base] = None,
    ) -> None:
        """
        Args:
            redis_url: Redis connection URL, defaults to settings.REDIS_URL
            channel: Pub/Sub channel, defaults to settings.REDIS_CHANNEL_BATCHES
            client: Existing redis client; left open by close()
            attempts: Delivery attempts before giving up
            wait: Pause between attempts, exponential 1-5s by default
        """
        self.redis_url = redis_url or settings.REDIS_URL
        self.channel = channel or settings.REDIS_CHANNEL_BATCHES
        self.client = client
        self._owns_client = client is None
        self.attempts = attempts
        self.wait = wait or wait_exponential(multiplier=1, min=1, max=5)

    def _get_client(self) -> Any:
        if self.client is None:
            self.client = redis.from_url(
                self.redis_url,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
            )
        return self.client

    async def publish(self, event: BatchEvent) -> int:
        """
        Send one event.

        Returns:
            Number of subscribers that received it

        Raises:
            redis.RedisError: If delivery fails after retries, or with a non-retryable error
        """
        client = self._get_client()
        payload = event.model_dump_json()

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.attempts),
            wait=self.wait,
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                receivers = await client.publish(self.channel, payload)

        logger.info(
            "Published batch event",
            extra={
                "channel": self.channel,
                "trigger": event.trigger,
                "processed": event.processed,
                "receivers": receivers,
            },
        )
        return receivers

    async def close(self) -> None:
        if self.client is not None and self._owns_client:
            await self.client.aclose()
            self.client = None


async def publish_batch_event(
    summary: BatchSummary,
    trigger: str,
    publisher: Optional[BatchEventPublisher] = None,
) -> BatchEvent:
    """
    Publish a batch_completed event for a finished batch.

    Args:
        summary: Result of the batch
        trigger: What started the batch
        publisher: Publisher to use; a fresh one is created and closed otherwise

    Raises:
        redis.RedisError: If publishing fails
    """
    owned = publisher is None
    publisher = publisher or BatchEventPublisher()
    event = build_batch_event(summary, trigger)

    try:
        await publisher.publish(event)
    except Exception as e:
        logger.error(
            "Failed to publish batch event",
            extra={"channel": publisher.channel, "trigger": trigger, "error": str(e)},
        )
        raise
    finally:
        if owned:
            await publisher.close()

    return event
