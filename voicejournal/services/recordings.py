"""Owner-side recording management: listing, playback and deletion."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from voicejournal.db.models import Assignment, Journal, Question, Recording
from voicejournal.errors import ForbiddenError, NotFoundError
from voicejournal.services.hooks import PostCommitHooks
from voicejournal.services.lifecycle import apply_revert
from voicejournal.services.storage import BlobStore

logger = logging.getLogger(__name__)


def _owned_recordings(user_id: UUID):
    return (
        select(Recording)
        .join(Assignment, Recording.assignment_id == Assignment.id)
        .join(Question, Assignment.question_id == Question.id)
        .join(Journal, Question.journal_id == Journal.id)
        .where(Journal.owner_user_id == user_id)
    )


async def list_recordings(
    db: AsyncSession,
    user_id: UUID,
    *,
    journal_id: UUID | None = None,
    person_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Recording], int]:
    """Newest first. Returns (page, total)."""
    query = _owned_recordings(user_id)
    if journal_id:
        query = query.where(Journal.id == journal_id)
    if person_id:
        query = query.where(Recording.person_id == person_id)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(Recording.recorded_at.desc(), Recording.id).limit(limit).offset(offset)
    )
    return list(result.scalars()), total or 0


async def get_owned_recording(db: AsyncSession, user_id: UUID, recording_id: UUID) -> Recording:
    recording = await db.scalar(
        select(Recording)
        .options(
            selectinload(Recording.assignment).selectinload(Assignment.question).selectinload(Question.journal),
            selectinload(Recording.person),
        )
        .where(Recording.id == recording_id)
    )
    if recording is None:
        raise NotFoundError("Recording")
    if recording.assignment.question.journal.owner_user_id != user_id:
        raise ForbiddenError("You do not have access to this recording")
    return recording


async def delete_recording(
    db: AsyncSession,
    user_id: UUID,
    recording_id: UUID,
    blob_store: BlobStore,
) -> Assignment:
    """
    Delete a recording and reopen its assignment.

    The assignment goes back to sent with answered_at cleared. The blob is
    removed only after the commit; a failed blob delete leaves an orphan,
    never a dangling row.
    """
    recording = await get_owned_recording(db, user_id, recording_id)
    assignment = await db.scalar(
        select(Assignment)
        .where(Assignment.id == recording.assignment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    audio_key = recording.audio_key

    await db.delete(recording)
    apply_revert(assignment)
    await db.commit()
    logger.info("Deleted recording %s, assignment %s reverted to sent", recording_id, assignment.id)

    hooks = PostCommitHooks()
    hooks.add(f"delete-blob:{audio_key}", blob_store.delete, audio_key)
    await hooks.run()
    return assignment
