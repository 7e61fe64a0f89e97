"""SMS senders: console (development) and Twilio."""

import logging
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from voicejournal.services.senders import SendResult, SmsMessage, mask

logger = logging.getLogger(__name__)


class ConsoleSmsSender:
    """Logs the message instead of sending it."""

    async def send(self, message: SmsMessage) -> SendResult:
        logger.info("MOCK SMS to %s: %s", mask(message.to), message.body)
        return SendResult(success=True, message_id=f"console-sms-{uuid4()}")


class TwilioSmsSender:
    """Sends SMS through the Twilio REST API."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.client = Client(account_sid, auth_token)
        self.from_number = from_number

    async def send(self, message: SmsMessage) -> SendResult:
        try:
            sent = await run_in_threadpool(
                self.client.messages.create,
                body=message.body,
                from_=self.from_number,
                to=message.to,
            )
        except TwilioRestException as e:
            # 21211: invalid 'To' number, 21608: unverified number on trial accounts
            logger.warning("Twilio rejected SMS to %s: code=%s %s", mask(message.to), e.code, e.msg)
            return SendResult(success=False, error=f"twilio:{e.code}")
        logger.info("SMS sent to %s (sid=%s)", mask(message.to), sent.sid)
        return SendResult(success=True, message_id=sent.sid)
