"""Notification schemas."""

from datetime import datetime
from uuid import UUID

from voicejournal.db.models import NotificationType
from voicejournal.schemas.base import BaseSchema, IDMixin


class NotificationRead(IDMixin, BaseSchema):
    """Schema for reading an in-app notification."""

    notification_type: NotificationType
    title: str | None
    body: str | None
    related_assignment_id: UUID | None
    related_recording_id: UUID | None
    related_journal_id: UUID | None
    sent_at: datetime
    read_at: datetime | None


class NotificationList(BaseSchema):
    items: list[NotificationRead]
    unread_count: int


class MarkAllReadResponse(BaseSchema):
    updated: int
