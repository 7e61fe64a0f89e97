"""
Delivery capability interfaces.

The dispatcher depends only on these protocols. Concrete senders (console,
Twilio, SMTP, Resend, Firebase) are chosen once at start-up in
voicejournal.services.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class SmsMessage:
    to: str
    body: str


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class PushMessage:
    token: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SendResult:
    """Outcome reported by a provider for one message."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    # Provider says the push token is unknown/unregistered and should be dropped
    invalid_token: bool = False


class SmsSender(Protocol):
    async def send(self, message: SmsMessage) -> SendResult: ...


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> SendResult: ...


class PushSender(Protocol):
    async def send(self, message: PushMessage) -> SendResult: ...


def mask(value: str, keep: int = 4) -> str:
    """Shorten a phone number, address or token for logs."""
    if len(value) <= keep:
        return "*" * len(value)
    return f"{value[:keep]}...({len(value)})"
