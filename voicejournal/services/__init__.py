"""Services for external integrations, built once from settings."""

from functools import lru_cache

from voicejournal.config import get_settings
from voicejournal.db.session import AsyncSessionLocal
from voicejournal.services.dispatcher import NotificationDispatcher
from voicejournal.services.intake import IntakeLimits, RecordingIntake
from voicejournal.services.mailer import ConsoleEmailSender, ResendEmailSender, SmtpEmailSender
from voicejournal.services.push import ConsolePushSender, FirebasePushSender, load_service_account
from voicejournal.services.reminder_policy import ReminderPolicy, build_policy
from voicejournal.services.sms import ConsoleSmsSender, TwilioSmsSender
from voicejournal.services.storage import BlobStore, LocalBlobStore, S3BlobStore


@lru_cache
def get_blob_store() -> BlobStore:
    settings = get_settings()
    if settings.storage_provider == "s3":
        if not settings.aws_s3_bucket:
            raise RuntimeError("AWS_S3_BUCKET must be set when STORAGE_PROVIDER=s3")
        return S3BlobStore(
            settings.aws_s3_bucket,
            region=settings.aws_s3_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            endpoint_url=settings.aws_s3_endpoint_url,
            url_expiration=settings.signed_url_expire_seconds,
        )
    return LocalBlobStore(settings.upload_dir, settings.public_base_url)


def _sms_sender():
    settings = get_settings()
    if settings.sms_provider == "twilio":
        if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_phone_number):
            raise RuntimeError("Twilio credentials must be set when SMS_PROVIDER=twilio")
        return TwilioSmsSender(
            settings.twilio_account_sid, settings.twilio_auth_token, settings.twilio_phone_number
        )
    return ConsoleSmsSender()


def _email_sender():
    settings = get_settings()
    if settings.email_provider == "resend":
        if not settings.resend_api_key:
            raise RuntimeError("RESEND_API_KEY must be set when EMAIL_PROVIDER=resend")
        return ResendEmailSender(settings.resend_api_key, settings.email_from)
    if settings.email_provider == "smtp":
        return SmtpEmailSender(
            settings.smtp_host,
            settings.smtp_port,
            settings.email_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
        )
    return ConsoleEmailSender()


def _push_sender():
    settings = get_settings()
    if settings.push_provider == "firebase":
        if not settings.firebase_service_account:
            raise RuntimeError("FIREBASE_SERVICE_ACCOUNT must be set when PUSH_PROVIDER=firebase")
        return FirebasePushSender(load_service_account(settings.firebase_service_account))
    return ConsolePushSender()


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        sms=_sms_sender(),
        email=_email_sender(),
        push=_push_sender(),
        session_factory=AsyncSessionLocal,
    )


@lru_cache
def get_reminder_policy() -> ReminderPolicy:
    settings = get_settings()
    return build_policy(
        settings.reminder_cadence,
        max_reminders=settings.reminder_max_per_assignment,
        daily_cap=settings.reminder_daily_cap,
    )


@lru_cache
def get_intake() -> RecordingIntake:
    return RecordingIntake(get_blob_store(), get_dispatcher(), IntakeLimits.from_settings(get_settings()))


__all__ = ["get_blob_store", "get_dispatcher", "get_intake", "get_reminder_policy"]
