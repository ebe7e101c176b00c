# locator/middleware/db_middleware.py
"""
Lazy Database Connection Middleware.

Startup does not block on MongoDB; the first request that needs the store
catalogue opens the connection.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import logging

from database import Database
from settings import settings

logger = logging.getLogger(__name__)

# Route prefixes that read or write store documents
DATABASE_PREFIXES = ("/stores", "/availability")


class LazyDatabaseMiddleware(BaseHTTPMiddleware):
    """Connect to MongoDB on the first catalogue request."""

    async def dispatch(self, request: Request, call_next):
        if not Database._initialized and request.url.path.startswith(DATABASE_PREFIXES):
            try:
                logger.info("Lazy initializing MongoDB connection...")
                await Database.connect_db(
                    database_url=settings.DATABASE_URL,
                    database_name=settings.DATABASE_NAME
                )
            except Exception as e:
                # Routes surface their own errors when the store is unreachable
                logger.error(f"Failed to initialize database: {e}")

        return await call_next(request)
