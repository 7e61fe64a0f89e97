"""Read-only journal aggregation over questions and assignments."""

from uuid import UUID

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from voicejournal.db.models import Assignment, AssignmentStatus, Journal, Question
from voicejournal.errors import ForbiddenError, NotFoundError
from voicejournal.schemas.journals import AssignmentSummary, JournalDetail, JournalSummary, QuestionDetail


async def list_journals(db: AsyncSession, user_id: UUID) -> list[JournalSummary]:
    """Owned journals, newest first, with progress counts."""
    question_count = (
        select(func.count(Question.id))
        .where(Question.journal_id == Journal.id)
        .correlate(Journal)
        .scalar_subquery()
    )
    answered_count = (
        select(func.count(Assignment.id))
        .join(Question, Assignment.question_id == Question.id)
        .where(Question.journal_id == Journal.id, Assignment.status == AssignmentStatus.ANSWERED)
        .correlate(Journal)
        .scalar_subquery()
    )
    person_count = (
        select(func.count(distinct(Assignment.person_id)))
        .join(Question, Assignment.question_id == Question.id)
        .where(Question.journal_id == Journal.id)
        .correlate(Journal)
        .scalar_subquery()
    )
    result = await db.execute(
        select(Journal, question_count, answered_count, person_count)
        .where(Journal.owner_user_id == user_id)
        .order_by(Journal.created_at.desc())
    )
    return [
        JournalSummary(
            id=journal.id,
            title=journal.title,
            description=journal.description,
            created_at=journal.created_at,
            question_count=questions or 0,
            answered_count=answered or 0,
            person_count=people or 0,
        )
        for journal, questions, answered, people in result.all()
    ]


def _summarize(assignment: Assignment) -> AssignmentSummary:
    recording = assignment.recordings[0] if assignment.recordings else None
    return AssignmentSummary(
        id=assignment.id,
        person_id=assignment.person_id,
        person_name=assignment.person.name,
        status=assignment.status,
        sent_at=assignment.sent_at,
        answered_at=assignment.answered_at,
        reminder_count=assignment.reminder_count,
        recording_id=recording.id if recording else None,
        recording_duration_seconds=recording.duration_seconds if recording else None,
    )


async def get_journal_detail(db: AsyncSession, user_id: UUID, journal_id: UUID) -> JournalDetail:
    journal = await db.scalar(
        select(Journal)
        .options(
            selectinload(Journal.questions)
            .selectinload(Question.assignments)
            .selectinload(Assignment.person),
            selectinload(Journal.questions)
            .selectinload(Question.assignments)
            .selectinload(Assignment.recordings),
        )
        .where(Journal.id == journal_id)
    )
    if journal is None:
        raise NotFoundError("Journal")
    if journal.owner_user_id != user_id:
        raise ForbiddenError("You do not have access to this journal")

    questions = [
        QuestionDetail(
            id=q.id,
            question_text=q.question_text,
            source=q.source.value,
            display_order=q.display_order,
            assignments=[_summarize(a) for a in q.assignments],
        )
        for q in journal.questions
    ]
    assignments = [a for q in journal.questions for a in q.assignments]
    return JournalDetail(
        id=journal.id,
        title=journal.title,
        description=journal.description,
        created_at=journal.created_at,
        question_count=len(questions),
        answered_count=sum(1 for a in assignments if a.status == AssignmentStatus.ANSWERED),
        person_count=len({a.person_id for a in assignments}),
        questions=questions,
    )
