"""Email senders: console (development), SMTP and the Resend HTTP API."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from uuid import uuid4

import httpx
from fastapi.concurrency import run_in_threadpool

from voicejournal.services.senders import EmailMessage, SendResult, mask

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class ConsoleEmailSender:
    """Logs the message instead of sending it."""

    async def send(self, message: EmailMessage) -> SendResult:
        logger.info("MOCK EMAIL to %s: %s\n%s", mask(message.to), message.subject, message.text)
        return SendResult(success=True, message_id=f"console-email-{uuid4()}")


class SmtpEmailSender:
    """Plain SMTP with optional STARTTLS and login."""

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.from_address = from_address
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.from_address
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.attach(MIMEText(message.text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _send_blocking(self, message: EmailMessage) -> None:
        msg = self._build(message)
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.ehlo()
            if self.use_tls:
                smtp.starttls(context=ssl.create_default_context())
                smtp.ehlo()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.sendmail(self.from_address, [message.to], msg.as_string())

    async def send(self, message: EmailMessage) -> SendResult:
        try:
            await run_in_threadpool(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send to %s failed: %s", mask(message.to), e)
            return SendResult(success=False, error=f"smtp:{type(e).__name__}")
        logger.info("Email sent to %s via SMTP", mask(message.to))
        return SendResult(success=True, message_id=f"smtp-{uuid4()}")


class ResendEmailSender:
    """Transactional email through Resend."""

    def __init__(self, api_key: str, from_address: str, *, timeout: float = 10.0):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> SendResult:
        payload = {
            "from": self.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    RESEND_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Resend rejected email to %s: %s %s",
                mask(message.to),
                e.response.status_code,
                e.response.text[:200],
            )
            return SendResult(success=False, error=f"resend:{e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("Resend request for %s failed: %s", mask(message.to), e)
            return SendResult(success=False, error="resend:transport")
        message_id = response.json().get("id")
        logger.info("Email sent to %s via Resend (id=%s)", mask(message.to), message_id)
        return SendResult(success=True, message_id=message_id)
