"""User device schemas."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from voicejournal.db.models import PushPlatform
from voicejournal.schemas.base import BaseSchema, IDMixin

PushPlatformType = Literal["ios", "android", "web"]


class PushTokenRegister(BaseSchema):
    """Register a device for push notifications."""

    token: str = Field(..., min_length=1, max_length=512)
    platform: PushPlatformType


class PushTokenDelete(BaseSchema):
    token: str = Field(..., min_length=1, max_length=512)


class PushTokenRead(IDMixin, BaseSchema):
    token: str
    platform: PushPlatform
    created_at: datetime
