"""Recording schemas."""

from datetime import datetime
from uuid import UUID

from voicejournal.db.models import AssignmentStatus
from voicejournal.schemas.base import BaseSchema, IDMixin


class RecordingRead(IDMixin, BaseSchema):
    """Schema for reading recording metadata."""

    assignment_id: UUID
    person_id: UUID
    content_type: str
    file_size_bytes: int
    duration_seconds: int | None
    transcription: str | None
    recorded_at: datetime


class RecordingDetail(RecordingRead):
    """Recording with a playback URL and the question it answers."""

    audio_url: str
    question_id: UUID
    question_text: str
    journal_id: UUID
    person_name: str


class RecordingList(BaseSchema):
    items: list[RecordingRead]
    total: int
    limit: int
    offset: int


class UploadResponse(BaseSchema):
    """Response for both the public and the self-recording upload."""

    message: str
    recording_id: UUID
    duration_seconds: int | None


class RecordPageRead(BaseSchema):
    """What the public recording page renders."""

    question_text: str
    recipient_name: str
    owner_name: str
    journal_title: str
    status: AssignmentStatus
    answered: bool
