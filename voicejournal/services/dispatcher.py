"""
Notification dispatcher.

Channel selection by event:
- SENT / REMINDED: exactly one recipient channel (sms or email) chosen by the
  caller. Reported synchronously, never retried.
- ANSWERED: push to every owner device, email if the owner has one. Both are
  best-effort and run concurrently after commit. The in-app Notification is
  written by record_in_app() inside the answering transaction.
- VIEWED / REVERTED: nothing.

Provider-reported invalid push tokens are deleted as a side effect.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voicejournal.db.models import DeliveryChannel, Notification, NotificationType, PushToken
from voicejournal.errors import ValidationError
from voicejournal.services import messages
from voicejournal.services.lifecycle import AssignmentEvent
from voicejournal.services.senders import EmailSender, PushSender, SendResult, SmsSender, mask

logger = logging.getLogger(__name__)


@dataclass
class DispatchContext:
    """Rendered content and routing for one assignment event."""

    assignment_id: UUID
    journal_id: UUID
    question_text: str
    recipient_name: str
    recipient_email: str | None
    recipient_phone: str | None
    owner_user_id: UUID
    owner_name: str
    owner_email: str | None
    recording_url: str
    app_url: str
    recording_id: UUID | None = None
    owner_push_tokens: list[str] = field(default_factory=list)


@dataclass
class ChannelResult:
    channel: str
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class DispatchResult:
    event: AssignmentEvent
    results: list[ChannelResult] = field(default_factory=list)
    pruned_tokens: int = 0

    @property
    def success(self) -> bool:
        # Owner fan-out is best-effort: only the recipient channels are required.
        if self.event in (AssignmentEvent.SENT, AssignmentEvent.REMINDED):
            return bool(self.results) and all(r.success for r in self.results)
        return True

    def channel(self, name: str) -> list[ChannelResult]:
        return [r for r in self.results if r.channel == name]


class NotificationDispatcher:
    def __init__(
        self,
        sms: SmsSender,
        email: EmailSender,
        push: PushSender,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.sms = sms
        self.email = email
        self.push = push
        self.session_factory = session_factory

    async def dispatch(
        self,
        event: AssignmentEvent,
        context: DispatchContext,
        channel: DeliveryChannel | None = None,
    ) -> DispatchResult:
        if event in (AssignmentEvent.SENT, AssignmentEvent.REMINDED):
            if channel is None:
                raise ValidationError("A delivery channel is required", code="CHANNEL_REQUIRED")
            return await self._dispatch_to_recipient(event, context, channel)
        if event == AssignmentEvent.ANSWERED:
            return await self._dispatch_to_owner(context)
        return DispatchResult(event=event)

    # ------------------------------------------------------------------
    # Recipient-facing
    # ------------------------------------------------------------------

    async def _dispatch_to_recipient(
        self,
        event: AssignmentEvent,
        context: DispatchContext,
        channel: DeliveryChannel,
    ) -> DispatchResult:
        reminder = event == AssignmentEvent.REMINDED
        args = (context.recipient_name, context.owner_name, context.question_text, context.recording_url)

        if channel == DeliveryChannel.SMS:
            if not context.recipient_phone:
                raise ValidationError("Person does not have a phone number", code="CONTACT_MISSING")
            render = messages.reminder_sms if reminder else messages.question_link_sms
            result = await self._guarded(self.sms.send(render(context.recipient_phone, *args)), "sms")
        else:
            if not context.recipient_email:
                raise ValidationError("Person does not have an email address", code="CONTACT_MISSING")
            render = messages.reminder_email if reminder else messages.question_link_email
            result = await self._guarded(self.email.send(render(context.recipient_email, *args)), "email")

        logger.info(
            "Dispatched %s for assignment %s via %s: success=%s",
            event.value,
            context.assignment_id,
            channel.value,
            result.success,
        )
        return DispatchResult(event=event, results=[_channel_result(channel.value, result)])

    # ------------------------------------------------------------------
    # Owner-facing
    # ------------------------------------------------------------------

    def record_in_app(self, db: AsyncSession, context: DispatchContext) -> Notification:
        """Add the in-app notification to the caller's (answering) transaction."""
        notification = Notification(
            recipient_user_id=context.owner_user_id,
            notification_type=NotificationType.RECORDING_RECEIVED,
            title=messages.recording_received_title(context.recipient_name),
            body=context.question_text,
            related_assignment_id=context.assignment_id,
            related_recording_id=context.recording_id,
            related_journal_id=context.journal_id,
        )
        db.add(notification)
        return notification

    async def _dispatch_to_owner(self, context: DispatchContext) -> DispatchResult:
        tasks = [self._push_all(context)]
        if context.owner_email:
            tasks.append(self._email_owner(context))
        gathered = await asyncio.gather(*tasks)

        push_results, invalid_tokens = gathered[0]
        results = list(push_results)
        if len(gathered) > 1:
            results.append(gathered[1])

        pruned = await self._prune_tokens(invalid_tokens) if invalid_tokens else 0
        for r in results:
            if not r.success:
                logger.warning(
                    "Owner notification via %s failed for assignment %s: %s",
                    r.channel,
                    context.assignment_id,
                    r.error,
                )
        return DispatchResult(event=AssignmentEvent.ANSWERED, results=results, pruned_tokens=pruned)

    async def _email_owner(self, context: DispatchContext) -> ChannelResult:
        message = messages.recording_received_email(
            context.owner_email,
            context.owner_name,
            context.recipient_name,
            context.question_text,
            context.app_url,
        )
        return _channel_result("email", await self._guarded(self.email.send(message), "email"))

    async def _push_all(self, context: DispatchContext) -> tuple[list[ChannelResult], list[str]]:
        if not context.owner_push_tokens:
            return [], []
        tokens = list(dict.fromkeys(context.owner_push_tokens))
        sends = [
            self._guarded(
                self.push.send(
                    messages.recording_received_push(
                        token,
                        context.recipient_name,
                        context.question_text,
                        str(context.recording_id),
                        str(context.journal_id),
                    )
                ),
                "push",
            )
            for token in tokens
        ]
        outcomes = await asyncio.gather(*sends)
        invalid = [token for token, outcome in zip(tokens, outcomes) if outcome.invalid_token]
        return [_channel_result("push", o) for o in outcomes], invalid

    async def _prune_tokens(self, tokens: list[str]) -> int:
        try:
            async with self.session_factory() as session:
                result = await session.execute(delete(PushToken).where(PushToken.token.in_(tokens)))
                await session.commit()
        except Exception as e:
            logger.error("Failed to prune %d invalid push tokens: %s", len(tokens), e, exc_info=True)
            return 0
        logger.info("Removed %d invalid push tokens: %s", result.rowcount, [mask(t, 12) for t in tokens])
        return result.rowcount

    @staticmethod
    async def _guarded(send, channel: str) -> SendResult:
        """Turn provider exceptions into a failed result so channels stay independent."""
        try:
            return await send
        except Exception as e:
            logger.error("Unexpected %s provider error: %s", channel, e, exc_info=True)
            return SendResult(success=False, error=f"{channel}:{type(e).__name__}")


def _channel_result(channel: str, result: SendResult) -> ChannelResult:
    return ChannelResult(channel=channel, success=result.success, message_id=result.message_id, error=result.error)
