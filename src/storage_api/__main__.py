"""Entrypoint for running the FastAPI server."""

from __future__ import annotations

import logging

import uvicorn

from .config import get_settings
from .logging import configure_logging

logger = logging.getLogger("storage_api")


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Storage API listening on http://%s:%d", settings.host, settings.port)
    logger.info("Storage root: %s", settings.storage_root)
    uvicorn.run(
        "storage_api.api:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
