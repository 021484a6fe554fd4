"""
Rate limiting configuration and setup.

Uses slowapi to enforce per-client request limits. The default limit
applies to every route through SlowAPIMiddleware. Run submission and
direct execution have their own, tighter limit.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from sigflow.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    enabled=settings.rate_limit_enabled,
)

RUN_SUBMISSION_LIMIT = settings.rate_limit_heavy


async def rate_limit_exceeded_handler(
    _request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Return a 429 response using the shared error body."""
    return JSONResponse(
        status_code=429,
        content={"error": "Rate limit exceeded", "detail": str(exc.detail)},
    )
