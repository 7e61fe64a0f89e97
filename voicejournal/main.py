"""
VoiceJournal FastAPI Application Entry Point.

Run with: uvicorn voicejournal.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from voicejournal.api.ratelimit import limiter, rate_limit_exceeded_handler
from voicejournal.api.routes import (
    assignments,
    journals,
    notifications,
    questions,
    recordings,
    users,
)
from voicejournal.config import get_settings, sanitize_error
from voicejournal.errors import AppError, InternalError
from voicejournal.schemas.errors import ErrorResponse

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    logger.info(
        "Starting %s (%s): storage=%s sms=%s email=%s push=%s cadence=%s",
        settings.app_name,
        settings.environment,
        settings.storage_provider,
        settings.sms_provider,
        settings.email_provider,
        settings.push_provider,
        settings.reminder_cadence,
    )
    yield


app = FastAPI(
    title=settings.app_name,
    description="Question assignment, delivery and voice recording API",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    error = InternalError(sanitize_error(exc))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include routers
error_responses = {code: {"model": ErrorResponse} for code in (400, 403, 404, 409, 429, 502, 503)}
app.include_router(assignments.router, responses=error_responses)
app.include_router(questions.router, responses=error_responses)
app.include_router(recordings.router, responses=error_responses)
app.include_router(recordings.public_router, responses=error_responses)
app.include_router(journals.router, responses=error_responses)
app.include_router(notifications.router, responses=error_responses)
app.include_router(users.router, responses=error_responses)

# Local audio is served from the same origin; S3 playback uses presigned URLs.
if settings.storage_provider == "local":
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
