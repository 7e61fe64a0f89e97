"""
SQLAlchemy 2.0 Models for VoiceJournal.

Uses modern declarative syntax with Mapped[] type annotations.
All models use UUID primary keys and proper relationship definitions.

Column types are the portable SQLAlchemy ones (Uuid, DateTime, Enum) so the
same metadata runs on PostgreSQL in production and SQLite in tests.
"""

from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from voicejournal.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


# =============================================================================
# ENUMS
# =============================================================================


class AssignmentStatus(str, PyEnum):
    """Delivery progress of a question sent to one person."""

    PENDING = "pending"
    SENT = "sent"
    VIEWED = "viewed"
    ANSWERED = "answered"


class DeliveryChannel(str, PyEnum):
    """Recipient-facing channel for send/remind."""

    SMS = "sms"
    EMAIL = "email"


class QuestionSource(str, PyEnum):
    """Where the question text came from."""

    TEMPLATE = "template"
    CUSTOM = "custom"


class NotificationType(str, PyEnum):
    """Kind of in-app notification."""

    RECORDING_RECEIVED = "recording_received"


class PushPlatform(str, PyEnum):
    """Device platform of a registered push token."""

    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


# =============================================================================
# MODELS
# =============================================================================


class User(Base):
    """
    Account of a journal owner.

    Users are created by the identity service; this core only reads them and
    their push tokens for delivery routing.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, index=True, nullable=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    # Relationships
    push_tokens: Mapped[list["PushToken"]] = relationship(
        "PushToken", back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    journals: Mapped[list["Journal"]] = relationship(
        "Journal", back_populates="owner", passive_deletes=True
    )


class PushToken(Base):
    """Device token registered by a user for push delivery."""

    __tablename__ = "push_tokens"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    platform: Mapped[PushPlatform] = mapped_column(
        Enum(PushPlatform, name="push_platform", values_callable=_enum_values),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    user: Mapped["User"] = relationship("User", back_populates="push_tokens")


class Person(Base):
    """
    Contact a question can be sent to.

    Owned by the user who created it. linked_user_id is set for the "self"
    person used when an owner records answers in their own journal.
    """

    __tablename__ = "people"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    relationship_label: Mapped[str] = mapped_column("relationship", String(50), nullable=False, default="other")
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    linked_user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )


class Journal(Base):
    """Collection of questions owned by one user."""

    __tablename__ = "journals"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    owner: Mapped["User"] = relationship("User", back_populates="journals")
    questions: Mapped[list["Question"]] = relationship(
        "Question",
        back_populates="journal",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Question.display_order",
    )


class Question(Base):
    """A biographical question inside a journal."""

    __tablename__ = "questions"
    __table_args__ = (
        UniqueConstraint("journal_id", "display_order", name="unique_question_display_order"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    journal_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("journals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[QuestionSource] = mapped_column(
        Enum(QuestionSource, name="question_source", values_callable=_enum_values),
        nullable=False,
        default=QuestionSource.CUSTOM,
    )
    display_order: Mapped[int] = mapped_column(nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    journal: Mapped["Journal"] = relationship("Journal", back_populates="questions")
    assignments: Mapped[list["Assignment"]] = relationship(
        "Assignment", back_populates="question", cascade="all, delete-orphan", passive_deletes=True
    )


class Assignment(Base):
    """
    Delivery of one question to one person.

    status is authoritative; the *_at columns are audit data only.
    link_token authenticates the public, loginless recording page.
    """

    __tablename__ = "question_assignments"
    __table_args__ = (
        UniqueConstraint("question_id", "person_id", name="unique_question_person"),
        Index("idx_assignments_question_status", "question_id", "status"),
        CheckConstraint("reminder_count >= 0", name="valid_reminder_count"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    question_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    person_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True
    )
    link_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus, name="assignment_status", values_callable=_enum_values),
        nullable=False,
        default=AssignmentStatus.PENDING,
    )
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    answered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_count: Mapped[int] = mapped_column(nullable=False, default=0)
    last_reminder_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    question: Mapped["Question"] = relationship("Question", back_populates="assignments")
    person: Mapped["Person"] = relationship("Person")
    # At most one row by constraint; kept as a collection so the shape can grow.
    recordings: Mapped[list["Recording"]] = relationship(
        "Recording", back_populates="assignment", passive_deletes=True
    )
    reminders: Mapped[list["AssignmentReminder"]] = relationship(
        "AssignmentReminder", back_populates="assignment", passive_deletes=True
    )


class AssignmentReminder(Base):
    """
    Audit row for each reminder delivered.

    The per-owner daily cap is a COUNT over these rows.
    """

    __tablename__ = "assignment_reminders"
    __table_args__ = (
        Index("idx_assignment_reminders_owner_sent", "owner_user_id", "sent_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    assignment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("question_assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    channel: Mapped[DeliveryChannel] = mapped_column(
        Enum(DeliveryChannel, name="delivery_channel", values_callable=_enum_values),
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    assignment: Mapped["Assignment"] = relationship("Assignment", back_populates="reminders")


class Recording(Base):
    """
    Audio answer to an assignment.

    Unique on assignment_id (at most one answer) and on idempotency_key when
    present. Created only by the recording intake pipeline.
    """

    __tablename__ = "recordings"
    __table_args__ = (
        UniqueConstraint("assignment_id", name="unique_recording_per_assignment"),
        UniqueConstraint("idempotency_key", name="unique_recording_idempotency_key"),
        CheckConstraint(
            "duration_seconds IS NULL OR duration_seconds >= 0",
            name="valid_duration_seconds",
        ),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    assignment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("question_assignments.id", ondelete="CASCADE"), nullable=False
    )
    person_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("people.id", ondelete="CASCADE"), nullable=False, index=True
    )
    audio_key: Mapped[str] = mapped_column(String(512), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    duration_seconds: Mapped[Optional[int]] = mapped_column(nullable=True)
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    transcription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), default=utcnow, nullable=False
    )

    assignment: Mapped["Assignment"] = relationship("Assignment", back_populates="recordings")
    person: Mapped["Person"] = relationship("Person")


class Notification(Base):
    """
    In-app alert for a user.

    Unique per (type, recording) so a retried side effect cannot create a
    second alert for the same answer.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("notification_type", "related_recording_id", name="unique_notification_per_recording"),
        Index("idx_notifications_recipient_read", "recipient_user_id", "read_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    recipient_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type", values_callable=_enum_values),
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    related_assignment_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("question_assignments.id", ondelete="SET NULL"), nullable=True
    )
    related_recording_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("recordings.id", ondelete="SET NULL"), nullable=True
    )
    related_journal_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("journals.id", ondelete="SET NULL"), nullable=True
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
