# main.py
"""
Pantry Locator API - Main Application.

FastAPI app with MongoDB backend: store identity resolution, chain
grouping, proximity search and session location.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from slowapi.errors import RateLimitExceeded

from database import Database
from settings import settings
from locator.middleware.db_middleware import LazyDatabaseMiddleware
from locator.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from locator.services.cache import cache_service
from locator.utils.errors import LocatorException
from locator.dependencies import get_chain_grouping

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR
            ),
        ],
    )
    logger.info(f"Sentry initialized ({settings.SENTRY_ENVIRONMENT})")
else:
    logger.warning("Sentry DSN not configured - error tracking disabled")

# Import routers
from locator.routes import stores, chains, location, availability


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting Pantry Locator API...")
    # If initialization fails, lazy initialization will be used as fallback
    try:
        await Database.connect_db(settings.DATABASE_URL, settings.DATABASE_NAME)
        logger.info("Database initialized successfully")
        await get_chain_grouping().refresh(force=True)
    except Exception as e:
        logger.warning(f"Failed to initialize database at startup: {e}")
        logger.warning("Database will be initialized lazily on first request")

    if not settings.maps_configured:
        logger.warning("GOOGLE_API_KEY not configured - place search and reverse geocoding disabled")

    yield

    await Database.close_db()
    logger.info("Pantry Locator API shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Pantry Locator API",
    version="1.0.0",
    description="Store and chain identity resolution with geo-proximity search",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Lazy database connection middleware
app.add_middleware(LazyDatabaseMiddleware)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint - fast response without database dependency."""
    return {
        "status": "ok",
        "environment": settings.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0"
    }


@app.get("/health/detailed")
async def health_check_detailed():
    """
    Dependency health.

    MongoDB is required; Redis only backs caches and session locations, so
    losing it degrades nothing but latency and location persistence.
    """
    mongo_ok = await Database.ping()
    redis_ok = await cache_service.healthcheck()
    return {
        "status": "ok" if mongo_ok else "degraded",
        "database_connected": mongo_ok,
        "redis_connected": redis_ok,
        "cache_circuit_open": cache_service.circuit_open,
        "maps_configured": settings.maps_configured,
        "environment": settings.ENV,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0"
    }


@app.exception_handler(LocatorException)
async def locator_exception_handler(request: Request, exc: LocatorException):
    """Errors that escape a route keep their own status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message} ({exc.detail})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "detail": exc.detail},
    )


# Include routers; chains before stores so /stores/chains is not read as a store id
app.include_router(chains.router, prefix="/stores/chains", tags=["Store Chains"])
app.include_router(stores.router, prefix="/stores", tags=["Stores"])
app.include_router(location.router, prefix="/location", tags=["Location"])
app.include_router(availability.router, prefix="/availability", tags=["Availability"])


# Root endpoint
@app.get("/")
async def root():
    """API root endpoint."""
    return {
        "message": "Pantry Locator API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health"
    }
