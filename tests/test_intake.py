"""Recording intake: public link and self-recording."""

import asyncio
from datetime import timedelta

import pytest
from fastapi import BackgroundTasks
from sqlalchemy import func, select

from voicejournal.db.models import (
    Assignment,
    AssignmentStatus,
    Notification,
    NotificationType,
    Person,
    Recording,
    utcnow,
)
from voicejournal.errors import ConflictError, NotFoundError, ValidationError
from voicejournal.services.intake import AudioUpload, IntakeLimits, RecordingIntake, normalize_content_type


def upload(data: bytes, content_type: str = "audio/mp4", duration: float | None = 45, key: str | None = None):
    return AudioUpload(data=data, content_type=content_type, duration_seconds=duration, idempotency_key=key)


def stored_files(tmp_path) -> list:
    root = tmp_path / "uploads"
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]


async def count(db, model) -> int:
    return await db.scalar(select(func.count()).select_from(model))


def test_normalize_content_type():
    assert normalize_content_type("audio/webm; codecs=opus") == "audio/webm"
    assert normalize_content_type("Audio/MP4") == "audio/mp4"
    assert normalize_content_type(None) is None


# =============================================================================
# RECORDING PAGE
# =============================================================================


class TestOpenPage:
    async def test_first_load_marks_viewed(self, db, sent_world, intake):
        page = await intake.open_page(db, sent_world.assignment.link_token)

        assert page.status == AssignmentStatus.VIEWED
        assert page.question_text == "What was your first job?"
        assert page.recipient_name == "Grandma Rose"
        assert page.owner_name == "Olivia"
        assert not page.answered

    async def test_second_load_keeps_first_viewed_at(self, db, sent_world, intake):
        first = utcnow()
        await intake.open_page(db, sent_world.assignment.link_token, now=first)
        await intake.open_page(db, sent_world.assignment.link_token, now=first + timedelta(hours=3))

        stored = await db.get(Assignment, sent_world.assignment.id, populate_existing=True)
        assert stored.status == AssignmentStatus.VIEWED
        assert stored.viewed_at.replace(tzinfo=None) == first.replace(tzinfo=None)

    async def test_unknown_token(self, db, intake):
        with pytest.raises(NotFoundError):
            await intake.open_page(db, "no-such-token")


# =============================================================================
# PUBLIC UPLOAD
# =============================================================================


class TestLinkUpload:
    async def test_accepts_answer_and_notifies_owner(
        self, db, sent_world, intake, owner_device, push, email, m4a, tmp_path
    ):
        result = await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a, duration=45.4))

        assert result.created
        assert result.assignment.status == AssignmentStatus.ANSWERED
        assert result.assignment.answered_at is not None
        assert result.recording.duration_seconds == 45
        assert result.recording.file_size_bytes == len(m4a)
        assert result.recording.person_id == sent_world.person.id

        owner = sent_world.owner
        assert result.recording.audio_key.startswith(
            f"recordings/{owner.id}/{sent_world.journal.id}/{sent_world.assignment.id}/"
        )
        assert len(stored_files(tmp_path)) == 1

        notification = await db.scalar(select(Notification))
        assert notification.recipient_user_id == owner.id
        assert notification.notification_type == NotificationType.RECORDING_RECEIVED
        assert notification.related_recording_id == result.recording.id

        assert [m.token for m in push.sent] == [owner_device.token]
        assert email.sent[0].to == "olivia@example.com"

    async def test_second_upload_is_rejected(self, db, sent_world, intake, m4a, tmp_path):
        token = sent_world.assignment.link_token
        await intake.intake_from_link(db, token, upload(m4a))

        with pytest.raises(ValidationError) as exc:
            await intake.intake_from_link(db, token, upload(m4a))

        assert exc.value.code == "ALREADY_ANSWERED"
        assert await count(db, Recording) == 1
        assert len(stored_files(tmp_path)) == 1

    async def test_idempotent_retry_returns_the_same_recording(self, db, sent_world, intake, push, m4a):
        token = sent_world.assignment.link_token
        first = await intake.intake_from_link(db, token, upload(m4a, key="upload-1"))
        again = await intake.intake_from_link(db, token, upload(m4a, key="upload-1"))

        assert first.created
        assert not again.created
        assert again.recording.id == first.recording.id
        assert await count(db, Recording) == 1
        assert await count(db, Notification) == 1

    async def test_idempotency_key_is_bound_to_one_assignment(self, db, factory, sent_world, intake, m4a):
        other = await factory.person(sent_world.owner, name="Grandpa Joe")
        second = await factory.assignment(sent_world.question, other)
        await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a, key="shared-key"))

        with pytest.raises(ConflictError):
            await intake.intake_from_link(db, second.link_token, upload(m4a, key="shared-key"))

    async def test_pending_assignment_can_be_answered(self, db, world, intake, m4a):
        result = await intake.intake_from_link(db, world.assignment.link_token, upload(m4a))
        assert result.assignment.status == AssignmentStatus.ANSWERED

    async def test_owner_notification_failure_keeps_the_answer(self, db, sent_world, intake, owner_device, push, email, m4a):
        push.raise_error = True
        email.fail = True

        result = await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a))

        assert result.created
        stored = await db.get(Assignment, sent_world.assignment.id, populate_existing=True)
        assert stored.status == AssignmentStatus.ANSWERED
        assert await count(db, Notification) == 1

    async def test_owner_notifications_can_wait_for_the_response(
        self, db, sent_world, intake, owner_device, push, m4a
    ):
        released = asyncio.Event()
        send = push.send

        async def slow_send(message):
            await released.wait()
            return await send(message)

        push.send = slow_send
        tasks = BackgroundTasks()

        result = await asyncio.wait_for(
            intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a), background_tasks=tasks),
            timeout=1,
        )

        assert result.created
        assert push.sent == []
        assert await count(db, Notification) == 1

        released.set()
        await tasks()
        assert [m.token for m in push.sent] == [owner_device.token]

    async def test_unknown_token(self, db, intake, m4a):
        with pytest.raises(NotFoundError):
            await intake.intake_from_link(db, "no-such-token", upload(m4a))


class TestValidation:
    async def test_codec_parameters_are_accepted(self, db, sent_world, intake, m4a):
        result = await intake.intake_from_link(
            db, sent_world.assignment.link_token, upload(m4a, content_type="audio/webm;codecs=opus")
        )
        assert result.recording.content_type == "audio/webm"
        assert result.recording.audio_key.endswith(".webm")

    @pytest.mark.parametrize(
        "kwargs, code",
        [
            ({"content_type": "video/mp4"}, "INVALID_AUDIO_FORMAT"),
            ({"content_type": None}, "INVALID_AUDIO_FORMAT"),
            ({"duration": 200}, "DURATION_EXCEEDED"),
            ({"duration": -1}, "VALIDATION_ERROR"),
        ],
    )
    async def test_rejections_leave_no_trace(self, db, sent_world, intake, m4a, tmp_path, kwargs, code):
        with pytest.raises(ValidationError) as exc:
            await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a, **kwargs))

        assert exc.value.code == code
        assert stored_files(tmp_path) == []
        stored = await db.get(Assignment, sent_world.assignment.id, populate_existing=True)
        assert stored.status == AssignmentStatus.SENT

    async def test_duration_at_the_limit_is_accepted(self, db, sent_world, intake, m4a):
        result = await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a, duration=180))
        assert result.recording.duration_seconds == 180

    async def test_empty_file(self, db, sent_world, intake):
        with pytest.raises(ValidationError) as exc:
            await intake.intake_from_link(db, sent_world.assignment.link_token, upload(b""))
        assert exc.value.code == "VALIDATION_ERROR"

    async def test_too_large(self, db, sent_world, blob_store, dispatcher, m4a):
        small = RecordingIntake(
            blob_store,
            dispatcher,
            IntakeLimits(max_size_bytes=64, allowed_content_types=frozenset({"audio/mp4"})),
        )
        with pytest.raises(ValidationError) as exc:
            await small.intake_from_link(db, sent_world.assignment.link_token, upload(m4a))
        assert exc.value.code == "AUDIO_TOO_LARGE"


async def test_losing_a_concurrent_upload_discards_the_blob(db, session_factory, sent_world, intake, m4a, tmp_path):
    """Another upload commits between validation and the locked insert."""
    assignment_id = sent_world.assignment.id
    person_id = sent_world.person.id
    real_put = intake.blob_store.put

    async def put_then_lose_race(key, data, content_type):
        stored = await real_put(key, data, content_type)
        async with session_factory() as other:
            competitor = await other.get(Assignment, assignment_id)
            competitor.status = AssignmentStatus.ANSWERED
            competitor.answered_at = utcnow()
            other.add(
                Recording(
                    assignment_id=assignment_id,
                    person_id=person_id,
                    audio_key="recordings/winner.m4a",
                    content_type="audio/mp4",
                    file_size_bytes=10,
                )
            )
            await other.commit()
        return stored

    intake.blob_store.put = put_then_lose_race

    with pytest.raises(ValidationError) as exc:
        await intake.intake_from_link(db, sent_world.assignment.link_token, upload(m4a))

    assert exc.value.code == "ALREADY_ANSWERED"
    assert stored_files(tmp_path) == []
    assert await count(db, Recording) == 1
    assert await count(db, Notification) == 0


# =============================================================================
# SELF-RECORDING
# =============================================================================


class TestSelfRecording:
    async def test_owner_answers_own_question(self, db, world, intake, m4a):
        result = await intake.intake_for_owner(db, world.owner, world.journal.id, world.question.id, upload(m4a))

        assert result.created
        assert result.assignment.status == AssignmentStatus.ANSWERED
        person = await db.get(Person, result.recording.person_id)
        assert person.linked_user_id == world.owner.id
        assert person.relationship_label == "self"
        assert person.name == "Olivia"

    async def test_self_person_is_reused(self, db, factory, world, intake, m4a):
        second_question = await factory.question(world.journal, text="Where did you grow up?", order=1)
        await db.commit()

        first = await intake.intake_for_owner(db, world.owner, world.journal.id, world.question.id, upload(m4a))
        second = await intake.intake_for_owner(db, world.owner, world.journal.id, second_question.id, upload(m4a))

        assert first.recording.person_id == second.recording.person_id
        assert await db.scalar(select(func.count()).select_from(Person).where(Person.relationship_label == "self")) == 1

    async def test_answer_once(self, db, world, intake, m4a):
        await intake.intake_for_owner(db, world.owner, world.journal.id, world.question.id, upload(m4a))
        with pytest.raises(ValidationError) as exc:
            await intake.intake_for_owner(db, world.owner, world.journal.id, world.question.id, upload(m4a))
        assert exc.value.code == "ALREADY_ANSWERED"

    async def test_question_must_belong_to_journal(self, db, factory, world, intake, m4a):
        other_journal = await factory.journal(world.owner, title="Recipes")
        await db.commit()
        with pytest.raises(NotFoundError):
            await intake.intake_for_owner(db, world.owner, other_journal.id, world.question.id, upload(m4a))

    @pytest.mark.parametrize(
        "kwargs, code",
        [
            ({"duration": 200}, "DURATION_EXCEEDED"),
            ({"content_type": "text/plain"}, "INVALID_AUDIO_FORMAT"),
        ],
    )
    async def test_rejected_upload_creates_no_rows(self, db, world, intake, m4a, tmp_path, kwargs, code):
        people = await count(db, Person)
        assignments = await count(db, Assignment)

        with pytest.raises(ValidationError) as exc:
            await intake.intake_for_owner(
                db, world.owner, world.journal.id, world.question.id, upload(m4a, **kwargs)
            )

        assert exc.value.code == code
        assert await count(db, Person) == people
        assert await count(db, Assignment) == assignments
        assert stored_files(tmp_path) == []

    async def test_empty_file_creates_no_rows(self, db, world, intake):
        people = await count(db, Person)
        with pytest.raises(ValidationError):
            await intake.intake_for_owner(db, world.owner, world.journal.id, world.question.id, upload(b""))
        assert await count(db, Person) == people
