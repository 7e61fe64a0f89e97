"""
Reminder eligibility policy.

Pure functions over assignment state; no I/O. The server evaluates this
authoritatively inside the remind transaction. The eligibility endpoint
exposes the same result so clients can keep an advisory mirror, but a client
copy is never trusted.

Rules, checked in this order:
1. answered assignments are never eligible (already_answered)
2. reminder_count >= max_reminders (max_reminders_reached)
3. the cooldown since last_reminder_at, or sent_at if never reminded, has not
   elapsed (cooldown_active)
4. the owner already sent daily_cap reminders in the current UTC calendar day
   (daily_cap_reached)
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Literal

from voicejournal.db.models import Assignment, AssignmentStatus

ReminderCadence = Literal["standard", "relaxed", "escalating"]


class IneligibleReason(str, Enum):
    ALREADY_ANSWERED = "already_answered"
    COOLDOWN_ACTIVE = "cooldown_active"
    MAX_REMINDERS_REACHED = "max_reminders_reached"
    DAILY_CAP_REACHED = "daily_cap_reached"


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: IneligibleReason | None = None
    cooldown_remaining: timedelta | None = None


@dataclass(frozen=True)
class ReminderPolicy:
    """
    Policy constants.

    cooldowns[i] is the wait before reminder number i + 1; the last entry
    repeats for any later reminder.
    """

    cooldowns: tuple[timedelta, ...] = (timedelta(hours=24),)
    max_reminders: int = 3
    daily_cap: int = 5

    def with_cadence(self, cadence: ReminderCadence) -> "ReminderPolicy":
        """Same limits, different cooldowns."""
        return replace(self, cooldowns=CADENCES[cadence])

    def cooldown_for(self, reminder_count: int) -> timedelta:
        index = min(reminder_count, len(self.cooldowns) - 1)
        return self.cooldowns[index]

    def can_remind(
        self,
        assignment: Assignment,
        now: datetime,
        daily_remind_count: int,
    ) -> Eligibility:
        if assignment.status == AssignmentStatus.ANSWERED:
            return Eligibility(False, IneligibleReason.ALREADY_ANSWERED)

        if assignment.reminder_count >= self.max_reminders:
            return Eligibility(False, IneligibleReason.MAX_REMINDERS_REACHED)

        eligible_at = self._cooldown_ends_at(assignment)
        if eligible_at is not None and as_utc(now) < eligible_at:
            return Eligibility(
                False,
                IneligibleReason.COOLDOWN_ACTIVE,
                cooldown_remaining=eligible_at - as_utc(now),
            )

        if daily_remind_count >= self.daily_cap:
            return Eligibility(False, IneligibleReason.DAILY_CAP_REACHED)

        return Eligibility(True)

    def next_eligible_at(self, assignment: Assignment) -> datetime | None:
        """When the per-assignment rules next allow a reminder, None if never."""
        if assignment.status == AssignmentStatus.ANSWERED:
            return None
        if assignment.reminder_count >= self.max_reminders:
            return None
        return self._cooldown_ends_at(assignment)

    def _cooldown_ends_at(self, assignment: Assignment) -> datetime | None:
        anchor = assignment.last_reminder_at or assignment.sent_at
        if anchor is None:
            return None
        return as_utc(anchor) + self.cooldown_for(assignment.reminder_count)


CADENCES: dict[str, tuple[timedelta, ...]] = {
    "standard": (timedelta(hours=24),),
    "relaxed": (timedelta(hours=72),),
    "escalating": (timedelta(hours=24), timedelta(hours=72), timedelta(days=7)),
}


def build_policy(cadence: ReminderCadence, *, max_reminders: int, daily_cap: int) -> ReminderPolicy:
    return ReminderPolicy(cooldowns=CADENCES[cadence], max_reminders=max_reminders, daily_cap=daily_cap)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_utc_day(now: datetime) -> datetime:
    now = as_utc(now)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
