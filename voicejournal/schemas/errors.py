"""Error envelope returned for every handled failure."""

from typing import Any

from voicejournal.schemas.base import BaseSchema


class ErrorBody(BaseSchema):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseSchema):
    error: ErrorBody
