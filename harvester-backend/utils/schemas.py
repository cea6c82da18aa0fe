"""
Pydantic Schemas - Data Validation Models

Defines the Pydantic schemas shared by the harvester and the admin API:
- Stored news records
- Scheduler status and checkpoint
- Redis Pub/Sub batch events
- API response envelopes

Field names are snake_case in Python and camelCase on the wire, matching the
JSON contract of the admin API.

Usage:
    from utils.schemas import NewsRecord

    record = store.find_by_id(101)
    if record and record.is_complete:
        ...
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class CamelModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    class Config:
        populate_by_name = True


class NewsRecord(CamelModel):
    """One harvested news item.

    A record is complete only when both payloads are present; incomplete
    records are fetched again on the next pass over their identifier.
    """

    id: int = Field(..., description="Remote news identifier")
    version_data: Optional[Any] = Field(default=None, alias="versionData")
    full_data: Optional[Any] = Field(default=None, alias="fullData")
    fail_count: int = Field(default=0, ge=0, alias="failCount")
    fetched_at: datetime = Field(..., alias="fetchedAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @property
    def is_complete(self) -> bool:
        return self.version_data is not None and self.full_data is not None


class Checkpoint(BaseModel):
    """Persisted cursor position."""

    current_index: int = Field(..., ge=0)
    total_ids: int = Field(..., ge=0)
    updated_at: datetime


class SchedulerStatus(CamelModel):
    """Snapshot of the ingestion scheduler's cursor state."""

    total_ids: int = Field(..., alias="totalIds")
    current_index: int = Field(..., alias="currentIndex")
    is_processing: bool = Field(..., alias="isProcessing")
    progress: str = Field(..., description="Cursor position as a percentage, e.g. '66.67%'")


class BatchEvent(BaseModel):
    """Redis Pub/Sub event published after each batch.

    {
        "type": "batch_completed",
        "trigger": "cron",
        "processed": 10,
        ...
        "ts": "2025-01-15T03:15:02Z"
    }
    """

    type: str = Field(default="batch_completed", description="Event type")
    trigger: str = Field(..., description="What started the batch (cron, manual, run_once)")
    status: str
    processed: int
    skipped: int
    failed: int
    current_index: int
    total_ids: int
    wrapped: bool
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp")


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(..., alias="totalPages")


class RecordListResponse(BaseModel):
    success: bool = True
    data: list[NewsRecord]
    pagination: Pagination


class RecordResponse(BaseModel):
    success: bool = True
    data: NewsRecord


class StatsCount(CamelModel):
    total: int
    with_version_data: int = Field(..., alias="withVersionData")
    with_full_data: int = Field(..., alias="withFullData")


class StatsResponse(BaseModel):
    success: bool = True
    stats: StatsCount


class ScraperStatus(SchedulerStatus):
    stored_in_database: int = Field(..., alias="storedInDatabase")


class ScraperStatusResponse(BaseModel):
    success: bool = True
    status: ScraperStatus


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class TriggerResponse(MessageResponse):
    queued: bool


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    scraper: SchedulerStatus
