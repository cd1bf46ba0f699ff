"""Main FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ledger.api import health, revenue
from ledger.core.config import settings
from ledger.db.redis import close_redis, get_redis
from ledger.db.session import AsyncSessionLocal, engine
from ledger.middleware.request_tracing import RequestTracingMiddleware
from ledger.services.revenue.handler import build_revenue_event_handler

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if settings.DEBUG else logging.INFO),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events."""
    logger.info(
        "Starting application",
        app_name=settings.APP_NAME,
        idempotency_backend=settings.IDEMPOTENCY_BACKEND,
        dead_letter_backend=settings.DEAD_LETTER_BACKEND,
    )

    redis = None
    if settings.uses_redis:
        try:
            # Initialize Redis (fatal if fails)
            redis = await get_redis()
            logger.info("Redis connection established")
        except Exception:
            logger.exception("Failed to initialize Redis - application cannot start")
            raise

    app.state.revenue_event_handler = build_revenue_event_handler(AsyncSessionLocal, redis)

    yield

    logger.info("Shutting down application")

    if redis is not None:
        try:
            await close_redis()
            logger.info("Redis connection closed")
        except Exception:
            logger.exception("Error closing Redis connection")

    try:
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception:
        logger.exception("Error closing database connections")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(RequestTracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

app.include_router(health.router, tags=["health"])
app.include_router(revenue.router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )
