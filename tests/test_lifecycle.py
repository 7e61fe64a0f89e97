"""Assignment state machine transitions."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from voicejournal.db.models import Assignment, AssignmentStatus, DeliveryChannel, Person
from voicejournal.errors import ValidationError
from voicejournal.services.lifecycle import (
    AssignmentEvent,
    apply_answer,
    apply_remind,
    apply_revert,
    apply_send,
    apply_view,
    require_contact,
)
from voicejournal.services.reminder_policy import ReminderPolicy

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def make(status=AssignmentStatus.PENDING, **fields) -> Assignment:
    fields.setdefault("reminder_count", 0)
    return Assignment(id=uuid4(), status=status, **fields)


class TestSend:
    def test_pending_becomes_sent(self):
        assignment = make()
        assert apply_send(assignment, NOW) == AssignmentEvent.SENT
        assert assignment.status == AssignmentStatus.SENT
        assert assignment.sent_at == NOW

    def test_resend_keeps_viewed_and_updates_sent_at(self):
        assignment = make(AssignmentStatus.VIEWED, sent_at=NOW - timedelta(days=1), viewed_at=NOW)
        apply_send(assignment, NOW)
        assert assignment.status == AssignmentStatus.VIEWED
        assert assignment.sent_at == NOW

    def test_answered_cannot_be_sent(self):
        assignment = make(AssignmentStatus.ANSWERED, answered_at=NOW)
        with pytest.raises(ValidationError) as exc:
            apply_send(assignment, NOW)
        assert exc.value.code == "ALREADY_ANSWERED"
        assert assignment.sent_at is None


class TestView:
    def test_first_view_only(self):
        assignment = make(AssignmentStatus.SENT, sent_at=NOW)
        assert apply_view(assignment, NOW) == AssignmentEvent.VIEWED
        assert assignment.status == AssignmentStatus.VIEWED

        later = NOW + timedelta(hours=1)
        assert apply_view(assignment, later) is None
        assert assignment.viewed_at == NOW

    def test_answered_stays_answered(self):
        assignment = make(AssignmentStatus.ANSWERED, answered_at=NOW)
        apply_view(assignment, NOW)
        assert assignment.status == AssignmentStatus.ANSWERED


class TestAnswerAndRevert:
    def test_answer_then_revert(self):
        assignment = make(AssignmentStatus.VIEWED)
        assert apply_answer(assignment, NOW, has_recording=False) == AssignmentEvent.ANSWERED
        assert assignment.status == AssignmentStatus.ANSWERED
        assert assignment.answered_at == NOW

        assert apply_revert(assignment) == AssignmentEvent.REVERTED
        assert assignment.status == AssignmentStatus.SENT
        assert assignment.answered_at is None

    def test_pending_can_be_answered_directly(self):
        assignment = make()
        apply_answer(assignment, NOW, has_recording=False)
        assert assignment.status == AssignmentStatus.ANSWERED

    @pytest.mark.parametrize(
        "status, has_recording",
        [(AssignmentStatus.ANSWERED, False), (AssignmentStatus.SENT, True)],
    )
    def test_at_most_one_answer(self, status, has_recording):
        assignment = make(status)
        with pytest.raises(ValidationError) as exc:
            apply_answer(assignment, NOW, has_recording=has_recording)
        assert exc.value.code == "ALREADY_ANSWERED"


class TestRemind:
    def test_counts_and_returns_audit_row(self):
        owner_id = uuid4()
        assignment = make(AssignmentStatus.SENT, sent_at=NOW - timedelta(days=2))
        reminder = apply_remind(
            assignment,
            NOW,
            policy=ReminderPolicy(),
            daily_remind_count=0,
            owner_user_id=owner_id,
            channel=DeliveryChannel.EMAIL,
        )
        assert assignment.reminder_count == 1
        assert assignment.last_reminder_at == NOW
        assert assignment.status == AssignmentStatus.SENT
        assert reminder.assignment_id == assignment.id
        assert reminder.owner_user_id == owner_id
        assert reminder.channel == DeliveryChannel.EMAIL

    def test_ineligible_reports_reason_and_leaves_counters(self):
        assignment = make(AssignmentStatus.SENT, sent_at=NOW - timedelta(hours=2))
        with pytest.raises(ValidationError) as exc:
            apply_remind(
                assignment,
                NOW,
                policy=ReminderPolicy(),
                daily_remind_count=0,
                owner_user_id=uuid4(),
                channel=DeliveryChannel.SMS,
            )
        assert exc.value.code == "REMINDER_NOT_ALLOWED"
        assert exc.value.details["reason"] == "cooldown_active"
        assert exc.value.details["cooldown_remaining_seconds"] == 22 * 3600
        assert assignment.reminder_count == 0
        assert assignment.last_reminder_at is None


class TestRequireContact:
    def test_returns_contact_for_channel(self):
        person = Person(name="Rose", email="rose@example.com", phone_number="+15555550123")
        assert require_contact(person, DeliveryChannel.SMS) == "+15555550123"
        assert require_contact(person, DeliveryChannel.EMAIL) == "rose@example.com"

    @pytest.mark.parametrize("channel", [DeliveryChannel.SMS, DeliveryChannel.EMAIL])
    def test_missing_contact(self, channel):
        with pytest.raises(ValidationError) as exc:
            require_contact(Person(name="Rose"), channel)
        assert exc.value.code == "CONTACT_MISSING"
        assert exc.value.details == {"channel": channel.value}
