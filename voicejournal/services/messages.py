"""Rendered content for recipient and owner notifications."""

from html import escape

from voicejournal.services.senders import EmailMessage, PushMessage, SmsMessage


def preview(text: str, limit: int = 50) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def question_link_sms(to: str, recipient_name: str, sender_name: str, question_text: str, url: str) -> SmsMessage:
    body = (
        f'Hi {recipient_name}! {sender_name} would like to ask you: "{preview(question_text)}" '
        f"Record your answer here: {url}"
    )
    return SmsMessage(to=to, body=body)


def reminder_sms(to: str, recipient_name: str, sender_name: str, question_text: str, url: str) -> SmsMessage:
    body = (
        f'Reminder: {sender_name} is still waiting for your answer to: "{preview(question_text)}" '
        f"Record here: {url}"
    )
    return SmsMessage(to=to, body=body)


def _question_email_html(greeting: str, lead: str, question_text: str, url: str) -> str:
    return f"""
    <h1>{escape(greeting)}</h1>
    <p>{escape(lead)}</p>
    <blockquote style="font-style: italic; padding: 10px; background: #f5f5f5; border-left: 3px solid #333;">
      "{escape(question_text)}"
    </blockquote>
    <p><a href="{escape(url)}" style="display: inline-block; padding: 12px 24px; background: #007bff; color: white; text-decoration: none; border-radius: 4px;">Record Your Answer</a></p>
    <p>Or copy this link: {escape(url)}</p>
    """


def question_link_email(to: str, recipient_name: str, sender_name: str, question_text: str, url: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"{sender_name} has a question for you",
        html=_question_email_html(
            f"Hi {recipient_name}!", f"{sender_name} would like to ask you:", question_text, url
        ),
        text=f'Hi {recipient_name}! {sender_name} would like to ask you: "{question_text}". Record your answer here: {url}',
    )


def reminder_email(to: str, recipient_name: str, sender_name: str, question_text: str, url: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"Reminder: {sender_name} is waiting for your answer",
        html=_question_email_html(
            f"Hi {recipient_name}!", f"{sender_name} is still waiting for your answer to:", question_text, url
        ),
        text=f'Reminder: {sender_name} is still waiting for your answer to: "{question_text}". Record here: {url}',
    )


def recording_received_title(person_name: str) -> str:
    return f"{person_name} answered your question!"


def recording_received_email(to: str, owner_name: str, person_name: str, question_text: str, app_url: str) -> EmailMessage:
    html = f"""
    <h1>Hi {escape(owner_name)}!</h1>
    <p>{escape(person_name)} just recorded an answer to:</p>
    <blockquote style="font-style: italic; padding: 10px; background: #f5f5f5; border-left: 3px solid #333;">
      "{escape(question_text)}"
    </blockquote>
    <p><a href="{escape(app_url)}" style="display: inline-block; padding: 12px 24px; background: #007bff; color: white; text-decoration: none; border-radius: 4px;">Listen Now</a></p>
    """
    return EmailMessage(
        to=to,
        subject=recording_received_title(person_name),
        html=html,
        text=f'Hi {owner_name}! {person_name} answered your question: "{question_text}". Open the app to listen.',
    )


def recording_received_push(token: str, person_name: str, question_text: str, recording_id: str, journal_id: str) -> PushMessage:
    return PushMessage(
        token=token,
        title=recording_received_title(person_name),
        body=f'"{preview(question_text)}"',
        data={"type": "recording_received", "recordingId": recording_id, "journalId": journal_id},
    )
