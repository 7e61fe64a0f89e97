"""Notification dispatcher routing and failure isolation."""

from uuid import uuid4

import pytest
from sqlalchemy import func, select

from voicejournal.db.models import DeliveryChannel, Notification, PushPlatform, PushToken
from voicejournal.errors import ValidationError
from voicejournal.services.dispatcher import DispatchContext
from voicejournal.services.lifecycle import AssignmentEvent


def make_context(**overrides) -> DispatchContext:
    fields = dict(
        assignment_id=uuid4(),
        journal_id=uuid4(),
        question_text="What was your first job?",
        recipient_name="Grandma Rose",
        recipient_email="rose@example.com",
        recipient_phone="+15555550123",
        owner_user_id=uuid4(),
        owner_name="Olivia",
        owner_email="olivia@example.com",
        recording_url="https://voicejournal.test/record/tok",
        app_url="https://voicejournal.test",
    )
    fields.update(overrides)
    return DispatchContext(**fields)


class TestRecipientChannels:
    async def test_sms_send(self, dispatcher, sms, email):
        result = await dispatcher.dispatch(AssignmentEvent.SENT, make_context(), DeliveryChannel.SMS)

        assert result.success
        assert len(sms.sent) == 1
        assert sms.sent[0].to == "+15555550123"
        assert "https://voicejournal.test/record/tok" in sms.sent[0].body
        assert email.sent == []

    async def test_reminder_email_uses_reminder_template(self, dispatcher, email):
        result = await dispatcher.dispatch(AssignmentEvent.REMINDED, make_context(), DeliveryChannel.EMAIL)

        assert result.success
        assert email.sent[0].subject.startswith("Reminder:")
        assert "https://voicejournal.test/record/tok" in email.sent[0].html

    async def test_channel_required(self, dispatcher):
        with pytest.raises(ValidationError) as exc:
            await dispatcher.dispatch(AssignmentEvent.SENT, make_context())
        assert exc.value.code == "CHANNEL_REQUIRED"

    async def test_missing_contact(self, dispatcher, sms):
        with pytest.raises(ValidationError) as exc:
            await dispatcher.dispatch(AssignmentEvent.SENT, make_context(recipient_phone=None), DeliveryChannel.SMS)
        assert exc.value.code == "CONTACT_MISSING"
        assert sms.sent == []

    async def test_provider_failure_is_reported(self, dispatcher, sms):
        sms.fail = True
        result = await dispatcher.dispatch(AssignmentEvent.SENT, make_context(), DeliveryChannel.SMS)

        assert not result.success
        assert result.channel("sms")[0].error == "sms:rejected"

    async def test_provider_exception_becomes_failure(self, dispatcher, email):
        email.raise_error = True
        result = await dispatcher.dispatch(AssignmentEvent.SENT, make_context(), DeliveryChannel.EMAIL)

        assert not result.success
        assert result.results[0].error == "email:ConnectionError"


class TestOwnerFanOut:
    async def test_push_every_device_and_email(self, dispatcher, push, email):
        context = make_context(recording_id=uuid4(), owner_push_tokens=["tok-a", "tok-b", "tok-a"])
        result = await dispatcher.dispatch(AssignmentEvent.ANSWERED, context)

        assert sorted(m.token for m in push.sent) == ["tok-a", "tok-b"]
        assert push.sent[0].data["recordingId"] == str(context.recording_id)
        assert email.sent[0].to == "olivia@example.com"
        assert len(result.channel("push")) == 2
        assert len(result.channel("email")) == 1

    async def test_no_email_without_owner_address(self, dispatcher, email):
        await dispatcher.dispatch(AssignmentEvent.ANSWERED, make_context(owner_email=None))
        assert email.sent == []

    async def test_failures_are_best_effort(self, dispatcher, push, email):
        push.raise_error = True
        email.fail = True
        result = await dispatcher.dispatch(AssignmentEvent.ANSWERED, make_context(owner_push_tokens=["tok-a"]))

        assert result.success
        assert not any(r.success for r in result.results)

    async def test_invalid_tokens_are_pruned(self, dispatcher, push, db, factory):
        owner = await factory.user()
        db.add_all(
            [
                PushToken(user_id=owner.id, token="stale-device-token", platform=PushPlatform.ANDROID),
                PushToken(user_id=owner.id, token="live-device-token", platform=PushPlatform.IOS),
            ]
        )
        await db.commit()
        push.invalid_tokens.add("stale-device-token")

        result = await dispatcher.dispatch(
            AssignmentEvent.ANSWERED,
            make_context(owner_user_id=owner.id, owner_push_tokens=["stale-device-token", "live-device-token"]),
        )

        assert result.pruned_tokens == 1
        remaining = (await db.execute(select(PushToken.token).where(PushToken.user_id == owner.id))).scalars().all()
        assert remaining == ["live-device-token"]


@pytest.mark.parametrize("event", [AssignmentEvent.VIEWED, AssignmentEvent.REVERTED])
async def test_silent_events(dispatcher, sms, email, push, event):
    result = await dispatcher.dispatch(event, make_context(owner_push_tokens=["tok-a"]))

    assert result.results == []
    assert sms.sent == email.sent == push.sent == []


async def test_record_in_app_joins_callers_transaction(dispatcher, db, factory):
    owner = await factory.user()
    context = make_context(owner_user_id=owner.id)
    notification = dispatcher.record_in_app(db, context)

    assert notification.title == "Grandma Rose answered your question!"
    await db.flush()
    assert await db.scalar(select(func.count()).select_from(Notification)) == 1
    await db.rollback()
    assert await db.scalar(select(func.count()).select_from(Notification)) == 0
