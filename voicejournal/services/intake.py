"""
Recording intake pipeline.

Two entry points share one pipeline:
- the anonymous recording page, authenticated by the assignment's link token
- the owner's own journal, authenticated by the session (self-recording)

Validation and the blob upload happen before any row lock is taken. The
Recording insert, the answered transition and the in-app notification are
committed as one unit; owner push/email runs after that commit, and after the
response when the route hands over its BackgroundTasks. It can fail without
touching the accepted answer.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from fastapi import BackgroundTasks
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from voicejournal.config import Settings
from voicejournal.db.models import (
    Assignment,
    AssignmentStatus,
    Journal,
    Person,
    PushToken,
    Question,
    Recording,
    User,
    utcnow,
)
from voicejournal.errors import AppError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from voicejournal.services.assignments import assignment_query, build_dispatch_context, create_assignment
from voicejournal.services.dispatcher import NotificationDispatcher
from voicejournal.services.hooks import PostCommitHooks
from voicejournal.services.lifecycle import (
    AssignmentEvent,
    already_answered_error,
    apply_answer,
    apply_view,
)
from voicejournal.services.storage import BlobStore, recording_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntakeLimits:
    max_duration_seconds: int = 180
    max_size_bytes: int = 50 * 1024 * 1024
    allowed_content_types: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: Settings) -> "IntakeLimits":
        return cls(
            max_duration_seconds=settings.max_recording_duration_seconds,
            max_size_bytes=settings.max_audio_size_bytes,
            allowed_content_types=frozenset(t.lower() for t in settings.allowed_audio_content_types),
        )


@dataclass
class AudioUpload:
    data: bytes
    content_type: str | None
    duration_seconds: float | None = None
    idempotency_key: str | None = None


@dataclass
class IntakeResult:
    recording: Recording
    assignment: Assignment
    created: bool


@dataclass
class RecordPage:
    """What the public recording page needs to render."""

    assignment_id: UUID
    status: AssignmentStatus
    question_text: str
    recipient_name: str
    owner_name: str
    journal_title: str

    @property
    def answered(self) -> bool:
        return self.status == AssignmentStatus.ANSWERED


def normalize_content_type(content_type: str | None) -> str | None:
    """Strip parameters such as '; codecs=opus'."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower()


class RecordingIntake:
    def __init__(self, blob_store: BlobStore, dispatcher: NotificationDispatcher, limits: IntakeLimits):
        self.blob_store = blob_store
        self.dispatcher = dispatcher
        self.limits = limits

    # ------------------------------------------------------------------
    # Public link
    # ------------------------------------------------------------------

    async def _by_token(self, db: AsyncSession, token: str, *, for_update: bool = False) -> Assignment:
        stmt = assignment_query().where(Assignment.link_token == token)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        assignment = (await db.execute(stmt)).scalar_one_or_none()
        if assignment is None:
            raise NotFoundError("Recording link")
        return assignment

    async def open_page(self, db: AsyncSession, token: str, *, now: datetime | None = None) -> RecordPage:
        """Resolve the link and mark the assignment viewed on first load."""
        assignment = await self._by_token(db, token, for_update=True)
        if apply_view(assignment, now or utcnow()) is not None:
            await db.commit()
            logger.info("Assignment %s viewed", assignment.id)
        return RecordPage(
            assignment_id=assignment.id,
            status=assignment.status,
            question_text=assignment.question.question_text,
            recipient_name=assignment.person.name,
            owner_name=assignment.question.journal.owner.display_name,
            journal_title=assignment.question.journal.title,
        )

    async def intake_from_link(
        self,
        db: AsyncSession,
        token: str,
        upload: AudioUpload,
        *,
        now: datetime | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> IntakeResult:
        assignment = await self._by_token(db, token)
        return await self._accept(db, assignment, upload, now or utcnow(), background_tasks)

    # ------------------------------------------------------------------
    # Self-recording
    # ------------------------------------------------------------------

    async def _self_person(self, db: AsyncSession, user: User) -> Person:
        person = await db.scalar(
            select(Person).where(Person.owner_user_id == user.id, Person.linked_user_id == user.id)
        )
        if person is None:
            person = Person(
                owner_user_id=user.id,
                linked_user_id=user.id,
                name=user.display_name,
                relationship_label="self",
                email=user.email,
            )
            db.add(person)
            await db.flush()
            logger.info("Created self person %s for user %s", person.id, user.id)
        return person

    async def intake_for_owner(
        self,
        db: AsyncSession,
        user: User,
        journal_id: UUID,
        question_id: UUID,
        upload: AudioUpload,
        *,
        now: datetime | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> IntakeResult:
        journal = await db.get(Journal, journal_id)
        if journal is None:
            raise NotFoundError("Journal")
        if journal.owner_user_id != user.id:
            raise ForbiddenError("You do not have access to this journal")
        question = await db.get(Question, question_id)
        if question is None or question.journal_id != journal.id:
            raise NotFoundError("Question")
        # Rejected uploads must not leave a self person or assignment behind.
        self._validate(upload)

        person = await self._self_person(db, user)
        created = await create_assignment(db, question, person)
        assignment_id = created.id
        # Persist the self assignment so the blob upload below holds no locks.
        await db.commit()

        assignment = (
            await db.execute(
                assignment_query()
                .where(Assignment.id == assignment_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        return await self._accept(db, assignment, upload, now or utcnow(), background_tasks)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _validate(self, upload: AudioUpload) -> str:
        content_type = normalize_content_type(upload.content_type)
        if content_type not in self.limits.allowed_content_types:
            raise ValidationError(
                f"Unsupported audio format: {upload.content_type or 'unknown'}",
                code="INVALID_AUDIO_FORMAT",
                details={"allowed": sorted(self.limits.allowed_content_types)},
            )
        if not upload.data:
            raise ValidationError("Audio file is empty")
        if len(upload.data) > self.limits.max_size_bytes:
            raise ValidationError(
                "Audio file is too large",
                code="AUDIO_TOO_LARGE",
                details={"max_bytes": self.limits.max_size_bytes},
            )
        if upload.duration_seconds is not None:
            if upload.duration_seconds < 0:
                raise ValidationError("Duration cannot be negative")
            if upload.duration_seconds > self.limits.max_duration_seconds:
                raise ValidationError(
                    f"Recording exceeds the maximum duration of {self.limits.max_duration_seconds} seconds",
                    code="DURATION_EXCEEDED",
                    details={"max_seconds": self.limits.max_duration_seconds},
                )
        return content_type

    async def _replay(self, db: AsyncSession, assignment_id: UUID, key: str) -> IntakeResult | None:
        existing = await db.scalar(
            select(Recording).where(Recording.idempotency_key == key).execution_options(populate_existing=True)
        )
        if existing is None:
            return None
        if existing.assignment_id != assignment_id:
            raise ConflictError("Idempotency key was already used for a different upload")
        assignment = await db.get(Assignment, assignment_id, populate_existing=True)
        logger.info("Idempotent replay of recording %s", existing.id)
        return IntakeResult(recording=existing, assignment=assignment, created=False)

    async def _accept(
        self,
        db: AsyncSession,
        assignment: Assignment,
        upload: AudioUpload,
        now: datetime,
        background_tasks: BackgroundTasks | None = None,
    ) -> IntakeResult:
        assignment_id = assignment.id
        if upload.idempotency_key:
            replay = await self._replay(db, assignment_id, upload.idempotency_key)
            if replay is not None:
                return replay

        if assignment.status == AssignmentStatus.ANSWERED:
            raise already_answered_error()
        has_recording = await db.scalar(select(Recording.id).where(Recording.assignment_id == assignment.id))
        if has_recording is not None:
            raise already_answered_error()

        content_type = self._validate(upload)
        journal = assignment.question.journal
        recording_id = uuid4()
        key = recording_key(journal.owner_user_id, journal.id, assignment.id, recording_id, content_type)
        blob = await self.blob_store.put(key, upload.data, content_type)

        try:
            assignment = (
                await db.execute(
                    assignment_query()
                    .where(Assignment.id == assignment.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalar_one()
            has_recording = await db.scalar(
                select(Recording.id).where(Recording.assignment_id == assignment.id)
            )
            apply_answer(assignment, now, has_recording=has_recording is not None)

            recording = Recording(
                id=recording_id,
                assignment_id=assignment.id,
                person_id=assignment.person_id,
                audio_key=blob.key,
                content_type=content_type,
                file_size_bytes=blob.size,
                duration_seconds=int(upload.duration_seconds) if upload.duration_seconds is not None else None,
                idempotency_key=upload.idempotency_key,
                recorded_at=now,
            )
            db.add(recording)

            tokens = (
                await db.scalars(select(PushToken.token).where(PushToken.user_id == journal.owner_user_id))
            ).all()
            context = build_dispatch_context(assignment, recording_id=recording_id, push_tokens=list(tokens))
            self.dispatcher.record_in_app(db, context)
            # Once the commit starts, a client disconnect must not abort it.
            await asyncio.shield(db.commit())
        except IntegrityError as e:
            await db.rollback()
            await self._discard_blob(key)
            if upload.idempotency_key:
                replay = await self._replay(db, assignment_id, upload.idempotency_key)
                if replay is not None:
                    return replay
            logger.warning("Concurrent upload for assignment %s lost the race", assignment_id)
            raise ConflictError("Another recording for this question was accepted first") from e
        except AppError:
            await db.rollback()
            await self._discard_blob(key)
            raise

        logger.info(
            "Accepted recording %s for assignment %s (%d bytes)", recording.id, assignment.id, blob.size
        )
        hooks = PostCommitHooks()
        hooks.add("notify-owner", self.dispatcher.dispatch, AssignmentEvent.ANSWERED, context)
        if background_tasks is not None:
            # Push and email to the owner go out after the response is sent.
            background_tasks.add_task(hooks.run)
        else:
            await hooks.run()
        return IntakeResult(recording=recording, assignment=assignment, created=True)

    async def _discard_blob(self, key: str) -> None:
        try:
            await self.blob_store.delete(key)
        except Exception as e:
            logger.error("Failed to remove orphaned blob %s: %s", key, e, exc_info=True)
