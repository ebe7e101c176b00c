"""
Pantry Locator API - Rate Limiting Middleware.

Protects the mapping-provider quota with per-client rate limits.
Uses SlowAPI with Redis backend for distributed rate limiting.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from settings import settings


logger = logging.getLogger(__name__)


def get_client_identifier(request: Request) -> str:
    """
    Get rate limit key identifier from request.

    Always the client IP. The X-Session-Id header is chosen by the client and
    not authenticated, so rotating it must not reset the quota.
    """
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_client_identifier,
    storage_uri=settings.redis_url_with_auth,
    default_limits=["60/minute"],
    enabled=settings.ENV != "testing"  # Disable rate limiting in test environment
)


def place_lookup_limit() -> str:
    """Rate limit for endpoints that call the mapping provider."""
    if settings.ENV in ("testing", "development"):
        return "1000/hour"
    return "30/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Translate RateLimitExceeded into a 429 with a Retry-After header."""
    retry_after = getattr(exc, "retry_after", 60)
    logger.warning(f"Rate limit exceeded for {get_client_identifier(request)}")

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": {
                "error": "Rate limit exceeded",
                "retry_after_seconds": retry_after,
                "message": "Please slow down your requests"
            }
        },
        headers={"Retry-After": str(retry_after)}
    )
