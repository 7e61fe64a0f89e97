"""
Assignment lifecycle operations.

Every mutating operation runs as: lock row -> validate -> transition ->
commit -> dispatch. Provider calls never happen while a row lock is held.
When the single required channel of a send/remind fails, a compensating
transaction restores the previous counters/timestamps and the caller gets
ExternalProviderError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from voicejournal.config import get_settings
from voicejournal.db.models import (
    Assignment,
    AssignmentReminder,
    AssignmentStatus,
    DeliveryChannel,
    Journal,
    Person,
    Question,
    Recording,
    User,
    utcnow,
)
from voicejournal.errors import (
    ConflictError,
    ExternalProviderError,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from voicejournal.services.dispatcher import DispatchContext, DispatchResult, NotificationDispatcher
from voicejournal.services.hooks import PostCommitHooks
from voicejournal.services.lifecycle import (
    AssignmentEvent,
    apply_remind,
    apply_send,
    require_contact,
)
from voicejournal.services.reminder_policy import (
    Eligibility,
    ReminderPolicy,
    as_utc,
    start_of_utc_day,
)
from voicejournal.services.storage import BlobStore
from voicejournal.services.tokens import new_link_token, recording_link

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class SendOutcome:
    assignment: Assignment
    channel: DeliveryChannel
    sent_at: datetime
    dispatch: DispatchResult


@dataclass
class RemindOutcome:
    assignment: Assignment
    reminder_count: int
    next_eligible_at: datetime | None
    dispatch: DispatchResult


@dataclass
class EligibilityView:
    eligibility: Eligibility
    next_eligible_at: datetime | None
    reminders_remaining: int
    daily_remaining: int


# =============================================================================
# LOADING
# =============================================================================


def assignment_query():
    """Assignment with everything needed to render and route its messages."""
    return select(Assignment).options(
        selectinload(Assignment.question).selectinload(Question.journal).selectinload(Journal.owner),
        selectinload(Assignment.person),
    )


async def get_owned_assignment(
    db: AsyncSession,
    user_id: UUID,
    assignment_id: UUID,
    *,
    for_update: bool = False,
) -> Assignment:
    stmt = assignment_query().where(Assignment.id == assignment_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    assignment = (await db.execute(stmt)).scalar_one_or_none()
    if assignment is None:
        raise NotFoundError("Assignment")
    if assignment.question.journal.owner_user_id != user_id:
        raise ForbiddenError("You do not have access to this assignment")
    return assignment


def build_dispatch_context(
    assignment: Assignment,
    *,
    recording_id: UUID | None = None,
    push_tokens: list[str] | None = None,
) -> DispatchContext:
    question = assignment.question
    journal = question.journal
    owner = journal.owner
    person = assignment.person
    return DispatchContext(
        assignment_id=assignment.id,
        journal_id=journal.id,
        question_text=question.question_text,
        recipient_name=person.name,
        recipient_email=person.email,
        recipient_phone=person.phone_number,
        owner_user_id=owner.id,
        owner_name=owner.display_name,
        owner_email=owner.email,
        recording_url=recording_link(settings.public_base_url, assignment.link_token),
        app_url=settings.public_base_url,
        recording_id=recording_id,
        owner_push_tokens=push_tokens or [],
    )


# =============================================================================
# CREATE
# =============================================================================


async def _mint_unique_token(db: AsyncSession) -> str:
    """New link token; one regeneration on collision, then give up."""
    for _ in range(2):
        token = new_link_token()
        taken = await db.scalar(select(Assignment.id).where(Assignment.link_token == token))
        if taken is None:
            return token
        logger.warning("Link token collision, regenerating")
    raise InternalError("Could not allocate a unique recording link")


async def create_assignment(db: AsyncSession, question: Question, person: Person) -> Assignment:
    """Return the assignment for (question, person), creating it if needed."""
    existing = await db.scalar(
        select(Assignment).where(
            Assignment.question_id == question.id,
            Assignment.person_id == person.id,
        )
    )
    if existing is not None:
        return existing

    assignment = Assignment(
        question_id=question.id,
        person_id=person.id,
        link_token=await _mint_unique_token(db),
        status=AssignmentStatus.PENDING,
        reminder_count=0,
    )
    db.add(assignment)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Assignment was created concurrently, please retry") from e
    logger.info("Created assignment %s (question=%s, person=%s)", assignment.id, question.id, person.id)
    return assignment


async def assign_question(
    db: AsyncSession,
    user_id: UUID,
    question_id: UUID,
    person_ids: list[UUID],
) -> list[Assignment]:
    """
    Create assignments for each of the caller's people.

    People the caller does not own are skipped. Existing pairs are returned
    unchanged.
    """
    question = await db.scalar(
        select(Question).options(selectinload(Question.journal)).where(Question.id == question_id)
    )
    if question is None:
        raise NotFoundError("Question")
    if question.journal.owner_user_id != user_id:
        raise ForbiddenError("You do not have access to this question")

    result = await db.execute(
        select(Person).where(Person.id.in_(person_ids), Person.owner_user_id == user_id)
    )
    people = {p.id: p for p in result.scalars()}

    assignments = []
    for person_id in dict.fromkeys(person_ids):
        person = people.get(person_id)
        if person is None:
            logger.debug("Skipping person %s not owned by %s", person_id, user_id)
            continue
        assignments.append(await create_assignment(db, question, person))
    await db.commit()
    return assignments


# =============================================================================
# SEND
# =============================================================================


async def send_assignment(
    db: AsyncSession,
    user_id: UUID,
    assignment_id: UUID,
    channel: DeliveryChannel,
    dispatcher: NotificationDispatcher,
    *,
    now: datetime | None = None,
) -> SendOutcome:
    now = now or utcnow()
    assignment = await get_owned_assignment(db, user_id, assignment_id, for_update=True)
    require_contact(assignment.person, channel)

    previous_status, previous_sent_at = assignment.status, assignment.sent_at
    apply_send(assignment, now)
    context = build_dispatch_context(assignment)
    await db.commit()

    result = await dispatcher.dispatch(AssignmentEvent.SENT, context, channel)
    if not result.success:
        await _undo_send(db, assignment.id, now, previous_status, previous_sent_at)
        raise ExternalProviderError(
            f"Failed to deliver the question via {channel.value}",
            details={"channel": channel.value},
        )
    return SendOutcome(assignment=assignment, channel=channel, sent_at=now, dispatch=result)


async def _undo_send(
    db: AsyncSession,
    assignment_id: UUID,
    attempted_at: datetime,
    previous_status: AssignmentStatus,
    previous_sent_at: datetime | None,
) -> None:
    try:
        assignment = await db.scalar(
            select(Assignment)
            .where(Assignment.id == assignment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        # Only roll back our own write; a later send/view wins.
        if assignment is not None and assignment.sent_at and as_utc(assignment.sent_at) == as_utc(attempted_at):
            if assignment.status == AssignmentStatus.SENT and previous_status == AssignmentStatus.PENDING:
                assignment.status = AssignmentStatus.PENDING
            assignment.sent_at = previous_sent_at
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Failed to undo send for assignment %s: %s", assignment_id, e, exc_info=True)


# =============================================================================
# REMIND
# =============================================================================


async def count_reminders_today(db: AsyncSession, owner_user_id: UUID, now: datetime) -> int:
    """Reminders sent by the owner since 00:00 UTC."""
    count = await db.scalar(
        select(func.count(AssignmentReminder.id)).where(
            AssignmentReminder.owner_user_id == owner_user_id,
            AssignmentReminder.sent_at >= start_of_utc_day(now),
        )
    )
    return count or 0


async def remind_assignment(
    db: AsyncSession,
    user_id: UUID,
    assignment_id: UUID,
    channel: DeliveryChannel,
    dispatcher: NotificationDispatcher,
    policy: ReminderPolicy,
    *,
    now: datetime | None = None,
) -> RemindOutcome:
    now = now or utcnow()
    # Serializes an owner's reminders so the daily count and the increment are atomic.
    await db.execute(select(User.id).where(User.id == user_id).with_for_update())
    assignment = await get_owned_assignment(db, user_id, assignment_id, for_update=True)
    require_contact(assignment.person, channel)

    daily = await count_reminders_today(db, user_id, now)
    previous_last = assignment.last_reminder_at
    reminder = apply_remind(
        assignment,
        now,
        policy=policy,
        daily_remind_count=daily,
        owner_user_id=user_id,
        channel=channel,
    )
    db.add(reminder)
    context = build_dispatch_context(assignment)
    await db.commit()

    result = await dispatcher.dispatch(AssignmentEvent.REMINDED, context, channel)
    if not result.success:
        await _undo_remind(db, assignment.id, reminder.id, previous_last)
        raise ExternalProviderError(
            f"Failed to deliver the reminder via {channel.value}",
            details={"channel": channel.value},
        )
    logger.info("Reminder %d sent for assignment %s", assignment.reminder_count, assignment.id)
    return RemindOutcome(
        assignment=assignment,
        reminder_count=assignment.reminder_count,
        next_eligible_at=policy.next_eligible_at(assignment),
        dispatch=result,
    )


async def _undo_remind(
    db: AsyncSession,
    assignment_id: UUID,
    reminder_id: UUID,
    previous_last: datetime | None,
) -> None:
    try:
        assignment = await db.scalar(
            select(Assignment)
            .where(Assignment.id == assignment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        deleted = await db.execute(delete(AssignmentReminder).where(AssignmentReminder.id == reminder_id))
        if assignment is not None and deleted.rowcount:
            assignment.reminder_count = max(0, assignment.reminder_count - 1)
            assignment.last_reminder_at = previous_last
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error("Failed to undo reminder for assignment %s: %s", assignment_id, e, exc_info=True)


async def reminder_eligibility(
    db: AsyncSession,
    user_id: UUID,
    assignment_id: UUID,
    policy: ReminderPolicy,
    *,
    now: datetime | None = None,
) -> EligibilityView:
    """Read-only evaluation for clients; remind_assignment re-checks under lock."""
    now = now or utcnow()
    assignment = await get_owned_assignment(db, user_id, assignment_id)
    daily = await count_reminders_today(db, user_id, now)
    return EligibilityView(
        eligibility=policy.can_remind(assignment, now, daily),
        next_eligible_at=policy.next_eligible_at(assignment),
        reminders_remaining=max(0, policy.max_reminders - assignment.reminder_count),
        daily_remaining=max(0, policy.daily_cap - daily),
    )


# =============================================================================
# DELETE
# =============================================================================


async def delete_assignment(
    db: AsyncSession,
    user_id: UUID,
    assignment_id: UUID,
    blob_store: BlobStore,
) -> None:
    """Remove the assignment and its recording. The recipient is not notified."""
    assignment = await get_owned_assignment(db, user_id, assignment_id, for_update=True)
    audio_keys = (
        await db.scalars(select(Recording.audio_key).where(Recording.assignment_id == assignment.id))
    ).all()

    await db.execute(delete(Recording).where(Recording.assignment_id == assignment.id))
    await db.execute(delete(AssignmentReminder).where(AssignmentReminder.assignment_id == assignment.id))
    await db.delete(assignment)
    await db.commit()
    logger.info("Deleted assignment %s (%d recordings)", assignment_id, len(audio_keys))

    hooks = PostCommitHooks()
    for key in audio_keys:
        hooks.add(f"delete-blob:{key}", blob_store.delete, key)
    await hooks.run()
