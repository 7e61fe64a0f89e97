"""API routes package."""

from voicejournal.api.routes import (
    assignments,
    journals,
    notifications,
    questions,
    recordings,
    users,
)

__all__ = [
    "assignments",
    "journals",
    "notifications",
    "questions",
    "recordings",
    "users",
]
