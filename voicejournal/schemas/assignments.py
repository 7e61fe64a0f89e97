"""Assignment schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from voicejournal.db.models import AssignmentStatus
from voicejournal.schemas.base import BaseSchema, IDMixin, TimestampMixin

# Type aliases for enums (used as literals for API validation)
DeliveryChannelType = Literal["sms", "email"]
IneligibleReasonType = Literal["already_answered", "cooldown_active", "max_reminders_reached", "daily_cap_reached"]
ReminderCadenceType = Literal["standard", "relaxed", "escalating"]


class AssignmentRead(IDMixin, TimestampMixin, BaseSchema):
    """Schema for reading assignment data."""

    question_id: UUID
    person_id: UUID
    status: AssignmentStatus
    sent_at: datetime | None
    viewed_at: datetime | None
    answered_at: datetime | None
    reminder_count: int
    last_reminder_at: datetime | None
    recording_link: str | None = None


class AssignQuestionRequest(BaseSchema):
    """People to send a question to. Unknown or foreign ids are skipped."""

    person_ids: list[UUID] = Field(..., min_length=1, max_length=100)


class DeliveryRequest(BaseSchema):
    """Channel for a send or a reminder."""

    channel: DeliveryChannelType


class RemindRequest(DeliveryRequest):
    """Channel for a reminder, optionally with a cooldown cadence other than the deployment default."""

    cadence: ReminderCadenceType | None = None


class SendResponse(BaseSchema):
    assignment: AssignmentRead
    channel: DeliveryChannelType
    sent_at: datetime
    message_id: str | None = None


class RemindResponse(BaseSchema):
    assignment: AssignmentRead
    reminder_count: int
    next_eligible_at: datetime | None
    message_id: str | None = None


class ReminderEligibilityRead(BaseSchema):
    """Server-computed reminder eligibility; clients may mirror it but never enforce it."""

    allowed: bool
    reason: IneligibleReasonType | None = None
    cooldown_remaining_seconds: int | None = None
    next_eligible_at: datetime | None = None
    reminders_remaining: int
    daily_remaining: int
