"""
FastAPI application factory for the harvester admin API.

The harvester (store, ingestion scheduler, worker, cron) lives in the app
lifespan, so one process serves the admin routes and runs the schedule.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.harvester.scheduler import HarvestScheduler, build_harvester
from services.api import routes
from utils.config import settings

logger = logging.getLogger(__name__)


def create_app(harvester: Optional[HarvestScheduler] = None, enable_cron: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        harvester: Pre-built harvester; built from settings at startup otherwise
        enable_cron: Register the periodic schedule in addition to the worker
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Store failures here abort startup
        app.state.harvester = harvester or build_harvester()
        await app.state.harvester.start_background(enable_cron=enable_cron)
        try:
            yield
        finally:
            await app.state.harvester.shutdown()

    app = FastAPI(
        title="Playliner Data Scraper API",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # e.g. "news_id: Input should be a valid integer"
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or err['loc'][0]}: {err['msg']}"
            for err in exc.errors()
        )
        return JSONResponse(status_code=422, content={"success": False, "error": message})

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error: path=%s, error=%s", request.url.path, str(exc), exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    app.include_router(routes.health_router)
    app.include_router(routes.router)

    @app.get("/")
    async def index() -> dict:
        return {
            "name": "Playliner Data Scraper API",
            "version": settings.APP_VERSION,
            "endpoints": {
                "GET /health": "Health check",
                "GET /api/news-data": "Get all news data (paginated)",
                "GET /api/news-data/:id": "Get single news data by ID",
                "GET /api/news-data/stats/count": "Get database statistics",
                "GET /api/news-data/scraper/status": "Get scraper status",
                "POST /api/news-data/scraper/trigger": "Manually trigger batch processing",
                "POST /api/news-data/scraper/reset": "Reset scraper to beginning",
                "DELETE /api/news-data/:id": "Delete news data by ID",
            },
        }

    return app


# Application instance for `uvicorn services.api.app:app`
app = create_app()
