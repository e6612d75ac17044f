"""
Reservation Engine API - Main Application Entry Point

Allocates a finite number of event spots among concurrent requests:
- Capacity check and decrement in one serializable transaction
- Invalidate-only Redis cache for event reads
- Structured logging with request correlation
- Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from reservation_engine.core.config import get_settings
from reservation_engine.core.logging import setup_logging, get_logger
from reservation_engine.core.metrics import metrics_endpoint
from reservation_engine.api.errors import register_error_handlers
from reservation_engine.api.router import api_router
from reservation_engine.api.middleware import RequestLoggingMiddleware
from reservation_engine.db.session import get_engine
from reservation_engine.infrastructure.redis_client import get_redis, close_redis
from reservation_engine.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Capacity-safe event reservation API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)
register_error_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Database must answer; the cache is reported but optional."""
    cache_stats = await get_cache_stats()
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "connected"
    except (SQLAlchemyError, OSError) as e:
        get_logger(__name__).error("health_database_error", error=str(e))
        database = "unreachable"

    body = {
        "status": "healthy" if database == "connected" else "unhealthy",
        "version": get_settings().APP_VERSION,
        "environment": get_settings().ENVIRONMENT,
        "database": database,
        "cache": cache_stats,
    }
    return JSONResponse(status_code=200 if database == "connected" else 503, content=body)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()
