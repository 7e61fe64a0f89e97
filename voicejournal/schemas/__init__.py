"""Pydantic schemas for API request/response validation."""

from voicejournal.schemas.assignments import (
    AssignmentRead,
    AssignQuestionRequest,
    DeliveryRequest,
    RemindResponse,
    ReminderEligibilityRead,
    SendResponse,
)
from voicejournal.schemas.errors import ErrorBody, ErrorResponse
from voicejournal.schemas.journals import AssignmentSummary, JournalDetail, JournalSummary, QuestionDetail
from voicejournal.schemas.notifications import MarkAllReadResponse, NotificationList, NotificationRead
from voicejournal.schemas.recordings import (
    RecordingDetail,
    RecordingList,
    RecordingRead,
    RecordPageRead,
    UploadResponse,
)
from voicejournal.schemas.users import PushTokenDelete, PushTokenRead, PushTokenRegister

__all__ = [
    # Assignments
    "AssignmentRead",
    "AssignQuestionRequest",
    "DeliveryRequest",
    "RemindResponse",
    "ReminderEligibilityRead",
    "SendResponse",
    # Errors
    "ErrorBody",
    "ErrorResponse",
    # Journals
    "AssignmentSummary",
    "JournalDetail",
    "JournalSummary",
    "QuestionDetail",
    # Notifications
    "MarkAllReadResponse",
    "NotificationList",
    "NotificationRead",
    # Recordings
    "RecordingDetail",
    "RecordingList",
    "RecordingRead",
    "RecordPageRead",
    "UploadResponse",
    # Users
    "PushTokenDelete",
    "PushTokenRead",
    "PushTokenRegister",
]
