"""Journal aggregation schemas (read-only views)."""

from datetime import datetime
from uuid import UUID

from voicejournal.db.models import AssignmentStatus
from voicejournal.schemas.base import BaseSchema, IDMixin


class JournalSummary(IDMixin, BaseSchema):
    """Journal with progress counts."""

    title: str
    description: str | None
    created_at: datetime
    question_count: int = 0
    answered_count: int = 0
    person_count: int = 0


class AssignmentSummary(IDMixin, BaseSchema):
    person_id: UUID
    person_name: str
    status: AssignmentStatus
    sent_at: datetime | None
    answered_at: datetime | None
    reminder_count: int
    recording_id: UUID | None = None
    recording_duration_seconds: int | None = None


class QuestionDetail(IDMixin, BaseSchema):
    question_text: str
    source: str
    display_order: int
    assignments: list[AssignmentSummary]


class JournalDetail(JournalSummary):
    questions: list[QuestionDetail]
