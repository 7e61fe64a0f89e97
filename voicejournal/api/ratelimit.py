"""
Request throttling keyed by client address.

Every route gets the default limit. Uploads and outbound sends carry their
own tighter limits through @limiter.limit.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from voicejournal.config import get_settings
from voicejournal.errors import RateLimitedError

settings = get_settings()
logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit_default],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit %s exceeded by %s on %s %s",
        exc.detail,
        get_remote_address(request),
        request.method,
        request.url.path,
    )
    error = RateLimitedError("Too many requests, please try again later", details={"limit": exc.detail})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
