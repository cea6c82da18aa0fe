"""
API Service Entry Point

Allows execution via: python -m services.api

Serves the admin API with uvicorn; the harvester runs inside the app lifespan.
"""

import uvicorn

from services.api.app import create_app
from utils.config import settings
from utils.logging import setup_logging


def main() -> None:
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    uvicorn.run(
        create_app(),
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()
