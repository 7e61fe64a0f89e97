"""Initial schema with all tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

This migration creates the VoiceJournal delivery schema:
- Extensions: uuid-ossp
- Enums: assignment_status, delivery_channel, question_source,
  notification_type, push_platform
- Tables: users, push_tokens, people, journals, questions,
  question_assignments, assignment_reminders, recordings, notifications
- Triggers: updated_at auto-update on question_assignments
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


def _id() -> sa.Column:
    return sa.Column(
        "id", postgresql.UUID(as_uuid=True), server_default=sa.text("uuid_generate_v4()"), nullable=False
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False
    )


def upgrade() -> None:
    # ==========================================================================
    # EXTENSIONS
    # ==========================================================================
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ==========================================================================
    # ENUMS
    # ==========================================================================
    for name, values in (
        ("assignment_status", ("pending", "sent", "viewed", "answered")),
        ("delivery_channel", ("sms", "email")),
        ("question_source", ("template", "custom")),
        ("notification_type", ("recording_received",)),
        ("push_platform", ("ios", "android", "web")),
    ):
        postgresql.ENUM(*values, name=name, create_type=True).create(op.get_bind(), checkfirst=True)

    # ==========================================================================
    # USERS TABLE
    # ==========================================================================
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # ==========================================================================
    # PUSH_TOKENS TABLE
    # ==========================================================================
    op.create_table(
        "push_tokens",
        _id(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("token", sa.String(512), nullable=False),
        sa.Column("platform", _enum("push_platform", "ios", "android", "web"), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("token"),
    )
    op.create_index("ix_push_tokens_user_id", "push_tokens", ["user_id"])

    # ==========================================================================
    # PEOPLE TABLE
    # ==========================================================================
    op.create_table(
        "people",
        _id(),
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("relationship", sa.String(50), nullable=False, server_default="other"),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("linked_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["linked_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_people_owner_user_id", "people", ["owner_user_id"])
    op.create_index("ix_people_linked_user_id", "people", ["linked_user_id"])

    # ==========================================================================
    # JOURNALS TABLE
    # ==========================================================================
    op.create_table(
        "journals",
        _id(),
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_journals_owner_user_id", "journals", ["owner_user_id"])

    # ==========================================================================
    # QUESTIONS TABLE
    # ==========================================================================
    op.create_table(
        "questions",
        _id(),
        sa.Column("journal_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("source", _enum("question_source", "template", "custom"), nullable=False, server_default="custom"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("journal_id", "display_order", name="unique_question_display_order"),
    )
    op.create_index("ix_questions_journal_id", "questions", ["journal_id"])

    # ==========================================================================
    # QUESTION_ASSIGNMENTS TABLE
    # ==========================================================================
    op.create_table(
        "question_assignments",
        _id(),
        sa.Column("question_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("person_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("link_token", sa.String(64), nullable=False),
        sa.Column(
            "status",
            _enum("assignment_status", "pending", "sent", "viewed", "answered"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("sent_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("viewed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("answered_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("link_token"),
        sa.UniqueConstraint("question_id", "person_id", name="unique_question_person"),
        sa.CheckConstraint("reminder_count >= 0", name="valid_reminder_count"),
    )
    op.create_index("ix_question_assignments_person_id", "question_assignments", ["person_id"])
    op.create_index("idx_assignments_question_status", "question_assignments", ["question_id", "status"])

    # ==========================================================================
    # ASSIGNMENT_REMINDERS TABLE
    # ==========================================================================
    op.create_table(
        "assignment_reminders",
        _id(),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("channel", _enum("delivery_channel", "sms", "email"), nullable=False),
        sa.Column("sent_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["assignment_id"], ["question_assignments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["owner_user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_assignment_reminders_assignment_id", "assignment_reminders", ["assignment_id"])
    op.create_index("idx_assignment_reminders_owner_sent", "assignment_reminders", ["owner_user_id", "sent_at"])

    # ==========================================================================
    # RECORDINGS TABLE
    # ==========================================================================
    op.create_table(
        "recordings",
        _id(),
        sa.Column("assignment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("person_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("audio_key", sa.String(512), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("idempotency_key", sa.String(255), nullable=True),
        sa.Column("transcription", sa.Text(), nullable=True),
        sa.Column("recorded_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["assignment_id"], ["question_assignments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("assignment_id", name="unique_recording_per_assignment"),
        sa.UniqueConstraint("idempotency_key", name="unique_recording_idempotency_key"),
        sa.CheckConstraint(
            "duration_seconds IS NULL OR duration_seconds >= 0",
            name="valid_duration_seconds",
        ),
    )
    op.create_index("ix_recordings_person_id", "recordings", ["person_id"])

    # ==========================================================================
    # NOTIFICATIONS TABLE
    # ==========================================================================
    op.create_table(
        "notifications",
        _id(),
        sa.Column("recipient_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("notification_type", _enum("notification_type", "recording_received"), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("related_assignment_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("related_recording_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("related_journal_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("sent_at", postgresql.TIMESTAMP(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("read_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["recipient_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["related_assignment_id"], ["question_assignments.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["related_recording_id"], ["recordings.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["related_journal_id"], ["journals.id"], ondelete="SET NULL"),
        sa.UniqueConstraint(
            "notification_type", "related_recording_id", name="unique_notification_per_recording"
        ),
    )
    op.create_index("idx_notifications_recipient_read", "notifications", ["recipient_user_id", "read_at"])

    # ==========================================================================
    # UPDATED_AT TRIGGER
    # ==========================================================================
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ language 'plpgsql'
    """)
    op.execute("""
        CREATE TRIGGER update_question_assignments_updated_at
        BEFORE UPDATE ON question_assignments
        FOR EACH ROW EXECUTE FUNCTION update_updated_at_column()
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS update_question_assignments_updated_at ON question_assignments")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    for table in (
        "notifications",
        "recordings",
        "assignment_reminders",
        "question_assignments",
        "questions",
        "journals",
        "people",
        "push_tokens",
        "users",
    ):
        op.drop_table(table)

    for name in ("push_platform", "notification_type", "question_source", "delivery_channel", "assignment_status"):
        op.execute(f"DROP TYPE IF EXISTS {name}")
