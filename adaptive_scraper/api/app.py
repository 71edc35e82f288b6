"""FastAPI application entry point for the adaptive scraper.

Run with `uvicorn adaptive_scraper.api.app:create_app --factory`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from adaptive_scraper.api.extraction_service import ExtractionService
from adaptive_scraper.api.routes import router
from adaptive_scraper.config.settings import ScraperConfig
from adaptive_scraper.fetch.factory import create_fetcher
from adaptive_scraper.fetch.types import Fetcher
from adaptive_scraper.storage.repository import FileRepository, Repository

VERSION = "1.0.0"


def create_app(
    config: ScraperConfig | None = None,
    repository: Repository | None = None,
    fetcher: Fetcher | None = None,
) -> FastAPI:
    """Factory function for creating the FastAPI application."""
    config = config or ScraperConfig()
    logging.basicConfig(level=config.log_level.upper())

    service = ExtractionService(
        repository=repository or FileRepository(config.storage.data_dir),
        fetcher=fetcher or create_fetcher(config),
        config=config,
        ledger_dir=config.storage.data_dir / "requests",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(
        title="Adaptive Scraper",
        description="Self-repairing selector based extraction",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.extraction_service = service
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "adaptive-scraper", "version": VERSION}

    return app
