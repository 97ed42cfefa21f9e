"""
FastAPI application exposing the article engine.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .articles.cache import CacheInvalidationBus, QueryCache
from .articles.routes import router as articles_router
from .articles.service import ArticleService
from .config import get_settings
from .db.base import init_database
from .logging_utils import configure_logging

logger = structlog.get_logger()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("api_starting", app=settings.app_name, environment=settings.environment)

    try:
        await init_database()
    except Exception:
        logger.exception("api_startup_failed")
        raise

    bus = CacheInvalidationBus()
    query_cache = QueryCache(settings.list_cache_ttl_seconds, settings.list_cache_max_entries)
    unsubscribe = bus.subscribe(query_cache.handle)

    app.state.article_service = ArticleService(bus=bus, settings=settings)
    app.state.query_cache = query_cache
    logger.info("api_started")

    yield

    logger.info("api_stopping")
    unsubscribe()
    await bus.drain()
    logger.info("api_stopped")


app = FastAPI(
    title="Article Engine",
    description="Article persistence and relationship reconciliation",
    version=importlib.metadata.version("article-engine"),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(articles_router)


@app.get("/healthz", tags=["system"])
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": importlib.metadata.version("article-engine")}
