"""
Admin API routes for harvested news data and the harvest scheduler.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from apps.harvester.ingestion import SchedulerBusyError
from apps.harvester.scheduler import HarvestScheduler
from utils.db import RecordStore
from utils.schemas import (
    HealthResponse,
    MessageResponse,
    Pagination,
    RecordListResponse,
    RecordResponse,
    ScraperStatus,
    ScraperStatusResponse,
    StatsCount,
    StatsResponse,
    TriggerResponse,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "News data not found"

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 50
MAX_LIMIT = 500

router = APIRouter(prefix="/api/news-data", tags=["news-data"])
health_router = APIRouter(tags=["health"])


def get_harvester(request: Request) -> HarvestScheduler:
    return request.app.state.harvester


def get_store(request: Request) -> RecordStore:
    return request.app.state.harvester.store


def _positive_int(value: Optional[str], default: int) -> int:
    # Missing, non-numeric and non-positive values fall back to the default
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        return default
    return number if number >= 1 else default


@router.get("", response_model=RecordListResponse)
async def list_news_data(
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    store: RecordStore = Depends(get_store),
) -> RecordListResponse:
    page_number = _positive_int(page, DEFAULT_PAGE)
    page_size = min(_positive_int(limit, DEFAULT_LIMIT), MAX_LIMIT)
    records = store.list_all(page=page_number, limit=page_size)
    total = store.count_all()
    return RecordListResponse(
        data=records,
        pagination=Pagination(
            page=page_number, limit=page_size, total=total, total_pages=math.ceil(total / page_size)
        ),
    )


@router.get("/stats/count", response_model=StatsResponse)
async def stats_count(store: RecordStore = Depends(get_store)) -> StatsResponse:
    return StatsResponse(
        stats=StatsCount(
            total=store.count_all(),
            with_version_data=store.count_where("version_data"),
            with_full_data=store.count_where("full_data"),
        )
    )


@router.get("/scraper/status", response_model=ScraperStatusResponse)
async def scraper_status(harvester: HarvestScheduler = Depends(get_harvester)) -> ScraperStatusResponse:
    current = harvester.ingestion.get_status()
    return ScraperStatusResponse(
        status=ScraperStatus(**current.model_dump(), stored_in_database=harvester.store.count_all())
    )


@router.post("/scraper/trigger", response_model=TriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def scraper_trigger(harvester: HarvestScheduler = Depends(get_harvester)) -> TriggerResponse:
    queued = harvester.trigger("manual")
    message = "Batch processing triggered" if queued else "Batch processing already pending"
    return TriggerResponse(message=message, queued=queued)


@router.post("/scraper/reset", response_model=MessageResponse)
async def scraper_reset(harvester: HarvestScheduler = Depends(get_harvester)) -> MessageResponse:
    try:
        harvester.ingestion.reset_processing()
    except SchedulerBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return MessageResponse(message="Scraper reset to beginning")


@router.get("/{news_id}", response_model=RecordResponse)
async def get_news_data(news_id: int, store: RecordStore = Depends(get_store)) -> RecordResponse:
    record = store.find_by_id(news_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    return RecordResponse(data=record)


@router.delete("/{news_id}", response_model=MessageResponse)
async def delete_news_data(news_id: int, store: RecordStore = Depends(get_store)) -> MessageResponse:
    if not store.delete_by_id(news_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND)
    logger.info("Deleted news data: id=%s", news_id)
    return MessageResponse(message=f"Deleted news data with ID: {news_id}")


@health_router.get("/health", response_model=HealthResponse)
async def health(harvester: HarvestScheduler = Depends(get_harvester)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        scraper=harvester.ingestion.get_status(),
    )
