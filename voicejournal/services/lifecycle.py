"""
Assignment state machine.

    pending -> sent -> viewed -> answered
                 ^                  |
                 +---- revert ------+   (recording deleted)

sent and viewed repeat (resend, revisit). A self-recorded assignment can go
from pending straight to answered. answered is terminal except for the
revert. Resending never moves viewed back to sent.

These functions only mutate the ORM object and return the event; the caller
owns the transaction and any dispatch.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from voicejournal.db.models import (
    Assignment,
    AssignmentReminder,
    AssignmentStatus,
    DeliveryChannel,
    Person,
)
from voicejournal.errors import ValidationError
from voicejournal.services.reminder_policy import ReminderPolicy


class AssignmentEvent(str, Enum):
    SENT = "sent"
    VIEWED = "viewed"
    REMINDED = "reminded"
    ANSWERED = "answered"
    REVERTED = "reverted"


def already_answered_error() -> ValidationError:
    return ValidationError("This question has already been answered", code="ALREADY_ANSWERED")


def require_contact(person: Person, channel: DeliveryChannel) -> str:
    """Return the contact field the channel needs or raise."""
    if channel == DeliveryChannel.SMS:
        if not person.phone_number:
            raise ValidationError(
                "Person does not have a phone number",
                code="CONTACT_MISSING",
                details={"channel": channel.value},
            )
        return person.phone_number
    if not person.email:
        raise ValidationError(
            "Person does not have an email address",
            code="CONTACT_MISSING",
            details={"channel": channel.value},
        )
    return person.email


def apply_send(assignment: Assignment, now: datetime) -> AssignmentEvent:
    if assignment.status == AssignmentStatus.ANSWERED:
        raise already_answered_error()
    if assignment.status == AssignmentStatus.PENDING:
        assignment.status = AssignmentStatus.SENT
    assignment.sent_at = now
    return AssignmentEvent.SENT


def apply_view(assignment: Assignment, now: datetime) -> AssignmentEvent | None:
    """First page load only; later loads are no-ops."""
    if assignment.viewed_at is not None:
        return None
    assignment.viewed_at = now
    if assignment.status in (AssignmentStatus.PENDING, AssignmentStatus.SENT):
        assignment.status = AssignmentStatus.VIEWED
    return AssignmentEvent.VIEWED


def apply_remind(
    assignment: Assignment,
    now: datetime,
    *,
    policy: ReminderPolicy,
    daily_remind_count: int,
    owner_user_id: UUID,
    channel: DeliveryChannel,
) -> AssignmentReminder:
    """Check eligibility and count the reminder; status is left alone."""
    eligibility = policy.can_remind(assignment, now, daily_remind_count)
    if not eligibility.allowed:
        details = {"reason": eligibility.reason.value}
        if eligibility.cooldown_remaining is not None:
            details["cooldown_remaining_seconds"] = int(eligibility.cooldown_remaining.total_seconds())
        raise ValidationError(
            REMINDER_MESSAGES[eligibility.reason.value],
            code="REMINDER_NOT_ALLOWED",
            details=details,
        )
    assignment.reminder_count += 1
    assignment.last_reminder_at = now
    return AssignmentReminder(
        assignment_id=assignment.id,
        owner_user_id=owner_user_id,
        channel=channel,
        sent_at=now,
    )


REMINDER_MESSAGES = {
    "already_answered": "This question has already been answered",
    "cooldown_active": "Cooldown period has not elapsed",
    "max_reminders_reached": "Maximum reminders reached for this question",
    "daily_cap_reached": "Daily reminder limit reached",
}


def apply_answer(assignment: Assignment, now: datetime, *, has_recording: bool) -> AssignmentEvent:
    if assignment.status == AssignmentStatus.ANSWERED or has_recording:
        raise already_answered_error()
    assignment.status = AssignmentStatus.ANSWERED
    assignment.answered_at = now
    return AssignmentEvent.ANSWERED


def apply_revert(assignment: Assignment) -> AssignmentEvent:
    """Compensating transition after the recording is deleted."""
    assignment.status = AssignmentStatus.SENT
    assignment.answered_at = None
    return AssignmentEvent.REVERTED
