"""Reminder eligibility rules."""

from datetime import datetime, timedelta, timezone

import pytest

from voicejournal.db.models import Assignment, AssignmentStatus
from voicejournal.services.reminder_policy import (
    IneligibleReason,
    ReminderPolicy,
    as_utc,
    build_policy,
    start_of_utc_day,
)

NOW = datetime(2026, 10, 17, 15, 30, tzinfo=timezone.utc)


def make(status=AssignmentStatus.SENT, reminder_count=0, sent_at=None, last_reminder_at=None) -> Assignment:
    return Assignment(
        status=status,
        reminder_count=reminder_count,
        sent_at=sent_at,
        last_reminder_at=last_reminder_at,
    )


@pytest.fixture
def policy() -> ReminderPolicy:
    return ReminderPolicy()


def test_allowed_once_cooldown_since_send_elapsed(policy):
    result = policy.can_remind(make(sent_at=NOW - timedelta(hours=25)), NOW, 0)
    assert result.allowed
    assert result.reason is None


def test_answered_is_never_eligible(policy):
    assignment = make(status=AssignmentStatus.ANSWERED, sent_at=NOW - timedelta(days=10))
    result = policy.can_remind(assignment, NOW, 0)
    assert not result.allowed
    assert result.reason == IneligibleReason.ALREADY_ANSWERED


def test_answered_wins_over_other_reasons(policy):
    assignment = make(status=AssignmentStatus.ANSWERED, reminder_count=3, last_reminder_at=NOW)
    assert policy.can_remind(assignment, NOW, 99).reason == IneligibleReason.ALREADY_ANSWERED


def test_max_reminders_regardless_of_elapsed_time(policy):
    assignment = make(reminder_count=3, last_reminder_at=NOW - timedelta(days=30))
    result = policy.can_remind(assignment, NOW, 0)
    assert result.reason == IneligibleReason.MAX_REMINDERS_REACHED


def test_cooldown_counts_from_sent_at_when_never_reminded(policy):
    result = policy.can_remind(make(sent_at=NOW - timedelta(hours=1)), NOW, 0)
    assert result.reason == IneligibleReason.COOLDOWN_ACTIVE
    assert result.cooldown_remaining == timedelta(hours=23)


def test_cooldown_counts_from_last_reminder(policy):
    assignment = make(reminder_count=1, sent_at=NOW - timedelta(days=5), last_reminder_at=NOW - timedelta(hours=2))
    result = policy.can_remind(assignment, NOW, 0)
    assert result.reason == IneligibleReason.COOLDOWN_ACTIVE
    assert result.cooldown_remaining == timedelta(hours=22)


def test_cooldown_boundary_is_inclusive(policy):
    assert policy.can_remind(make(sent_at=NOW - timedelta(hours=24)), NOW, 0).allowed


def test_daily_cap(policy):
    result = policy.can_remind(make(sent_at=NOW - timedelta(days=2)), NOW, 5)
    assert result.reason == IneligibleReason.DAILY_CAP_REACHED
    assert policy.can_remind(make(sent_at=NOW - timedelta(days=2)), NOW, 4).allowed


def test_never_sent_has_no_cooldown(policy):
    assert policy.can_remind(make(status=AssignmentStatus.PENDING), NOW, 0).allowed


def test_naive_timestamps_are_utc(policy):
    naive_sent = (NOW - timedelta(hours=1)).replace(tzinfo=None)
    assert policy.can_remind(make(sent_at=naive_sent), NOW, 0).reason == IneligibleReason.COOLDOWN_ACTIVE


def test_relaxed_cadence():
    policy = build_policy("relaxed", max_reminders=3, daily_cap=5)
    assert policy.can_remind(make(sent_at=NOW - timedelta(hours=48)), NOW, 0).reason == IneligibleReason.COOLDOWN_ACTIVE
    assert policy.can_remind(make(sent_at=NOW - timedelta(hours=72)), NOW, 0).allowed


def test_escalating_cadence_uses_the_next_reminder_step():
    policy = build_policy("escalating", max_reminders=3, daily_cap=5)
    assert policy.cooldown_for(0) == timedelta(hours=24)
    assert policy.cooldown_for(1) == timedelta(hours=72)
    assert policy.cooldown_for(2) == timedelta(days=7)
    assert policy.cooldown_for(7) == timedelta(days=7)

    assignment = make(reminder_count=1, last_reminder_at=NOW - timedelta(hours=48))
    assert policy.can_remind(assignment, NOW, 0).reason == IneligibleReason.COOLDOWN_ACTIVE


def test_next_eligible_at(policy):
    last = NOW - timedelta(hours=3)
    assert policy.next_eligible_at(make(reminder_count=1, last_reminder_at=last)) == last + timedelta(hours=24)
    assert policy.next_eligible_at(make(reminder_count=3, last_reminder_at=last)) is None
    assert policy.next_eligible_at(make(status=AssignmentStatus.ANSWERED, sent_at=last)) is None
    assert policy.next_eligible_at(make(status=AssignmentStatus.PENDING)) is None


def test_time_helpers():
    naive = datetime(2026, 10, 17, 23, 59)
    assert as_utc(naive).tzinfo == timezone.utc
    assert start_of_utc_day(NOW) == datetime(2026, 10, 17, tzinfo=timezone.utc)
