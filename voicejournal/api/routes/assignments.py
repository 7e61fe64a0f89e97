"""Assignment lifecycle routes: read, send, remind, eligibility, delete."""

from uuid import UUID

from fastapi import APIRouter, Request, status

from voicejournal.api.deps import BlobStoreDep, CurrentUser, DbSession, DispatcherDep, ReminderPolicyDep
from voicejournal.api.ratelimit import limiter
from voicejournal.config import get_settings
from voicejournal.db.models import Assignment, DeliveryChannel
from voicejournal.schemas.assignments import (
    AssignmentRead,
    DeliveryRequest,
    RemindRequest,
    RemindResponse,
    ReminderCadenceType,
    ReminderEligibilityRead,
    SendResponse,
)
from voicejournal.services import assignments as assignment_service
from voicejournal.services.tokens import recording_link

router = APIRouter(prefix="/assignments", tags=["assignments"])
settings = get_settings()


def assignment_read(assignment: Assignment) -> AssignmentRead:
    read = AssignmentRead.model_validate(assignment)
    read.recording_link = recording_link(settings.public_base_url, assignment.link_token)
    return read


def _message_id(results) -> str | None:
    return results[0].message_id if results else None


@router.get("/{assignment_id}", response_model=AssignmentRead)
async def get_assignment(
    assignment_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> AssignmentRead:
    """Get an assignment with its recording link."""
    assignment = await assignment_service.get_owned_assignment(db, current_user.id, assignment_id)
    return assignment_read(assignment)


@router.post("/{assignment_id}/send", response_model=SendResponse)
@limiter.limit(settings.rate_limit_send)
async def send_assignment(
    request: Request,
    assignment_id: UUID,
    data: DeliveryRequest,
    current_user: CurrentUser,
    db: DbSession,
    dispatcher: DispatcherDep,
) -> SendResponse:
    """
    Send (or resend) the recording link to the person.

    Fails with 400 CONTACT_MISSING when the person has no phone/email for
    the chosen channel, and 502 PROVIDER_FAILURE when the provider rejects
    the message (the send is then not recorded).
    """
    outcome = await assignment_service.send_assignment(
        db, current_user.id, assignment_id, DeliveryChannel(data.channel), dispatcher
    )
    return SendResponse(
        assignment=assignment_read(outcome.assignment),
        channel=outcome.channel.value,
        sent_at=outcome.sent_at,
        message_id=_message_id(outcome.dispatch.results),
    )


@router.post("/{assignment_id}/remind", response_model=RemindResponse)
@limiter.limit(settings.rate_limit_send)
async def remind_assignment(
    request: Request,
    assignment_id: UUID,
    data: RemindRequest,
    current_user: CurrentUser,
    db: DbSession,
    dispatcher: DispatcherDep,
    policy: ReminderPolicyDep,
) -> RemindResponse:
    """
    Remind the person to answer.

    Ineligible reminders fail with 400 REMINDER_NOT_ALLOWED and a
    machine-readable details.reason. A cadence in the body replaces the
    default cooldowns for this reminder only.
    """
    if data.cadence:
        policy = policy.with_cadence(data.cadence)
    outcome = await assignment_service.remind_assignment(
        db, current_user.id, assignment_id, DeliveryChannel(data.channel), dispatcher, policy
    )
    return RemindResponse(
        assignment=assignment_read(outcome.assignment),
        reminder_count=outcome.reminder_count,
        next_eligible_at=outcome.next_eligible_at,
        message_id=_message_id(outcome.dispatch.results),
    )


@router.get("/{assignment_id}/reminder-eligibility", response_model=ReminderEligibilityRead)
async def get_reminder_eligibility(
    assignment_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    policy: ReminderPolicyDep,
    cadence: ReminderCadenceType | None = None,
) -> ReminderEligibilityRead:
    if cadence:
        policy = policy.with_cadence(cadence)
    view = await assignment_service.reminder_eligibility(db, current_user.id, assignment_id, policy)
    eligibility = view.eligibility
    return ReminderEligibilityRead(
        allowed=eligibility.allowed,
        reason=eligibility.reason.value if eligibility.reason else None,
        cooldown_remaining_seconds=(
            int(eligibility.cooldown_remaining.total_seconds()) if eligibility.cooldown_remaining else None
        ),
        next_eligible_at=view.next_eligible_at,
        reminders_remaining=view.reminders_remaining,
        daily_remaining=view.daily_remaining,
    )


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    blob_store: BlobStoreDep,
) -> None:
    """Delete an assignment and its recording. The person is not notified."""
    await assignment_service.delete_assignment(db, current_user.id, assignment_id, blob_store)
