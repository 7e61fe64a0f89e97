"""Push senders: console (development) and Firebase Cloud Messaging."""

import base64
import binascii
import json
import logging
from uuid import uuid4

import firebase_admin
from fastapi.concurrency import run_in_threadpool
from firebase_admin import credentials, exceptions, messaging

from voicejournal.services.senders import PushMessage, SendResult, mask

logger = logging.getLogger(__name__)


class ConsolePushSender:
    """Logs the notification instead of sending it."""

    async def send(self, message: PushMessage) -> SendResult:
        logger.info("MOCK PUSH to %s: %s - %s", mask(message.token, 12), message.title, message.body)
        return SendResult(success=True, message_id=f"console-push-{uuid4()}")


def load_service_account(raw: str) -> dict:
    """Accept the service account as base64-encoded JSON or raw JSON."""
    try:
        return json.loads(base64.b64decode(raw, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
        return json.loads(raw)


def _is_invalid_token_error(error: exceptions.FirebaseError) -> bool:
    if isinstance(error, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return True
    return isinstance(error, exceptions.InvalidArgumentError) and "registration token" in str(error).lower()


class FirebasePushSender:
    """Sends one notification per device token through FCM."""

    def __init__(self, service_account: dict, app_name: str = "voicejournal"):
        self.app = firebase_admin.initialize_app(
            credentials.Certificate(service_account),
            {"projectId": service_account.get("project_id")},
            name=app_name,
        )
        logger.info("Firebase Admin SDK initialized for project %s", service_account.get("project_id"))

    def _build(self, message: PushMessage) -> messaging.Message:
        return messaging.Message(
            token=message.token,
            notification=messaging.Notification(title=message.title, body=message.body),
            data=message.data or None,
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1)),
            ),
        )

    async def send(self, message: PushMessage) -> SendResult:
        try:
            message_id = await run_in_threadpool(messaging.send, self._build(message), app=self.app)
        except exceptions.FirebaseError as e:
            if _is_invalid_token_error(e):
                logger.info("FCM reports invalid token %s", mask(message.token, 12))
                return SendResult(success=False, error=f"fcm:{e.code}", invalid_token=True)
            logger.warning("FCM send to %s failed: %s", mask(message.token, 12), e)
            return SendResult(success=False, error=f"fcm:{e.code}")
        return SendResult(success=True, message_id=message_id)
