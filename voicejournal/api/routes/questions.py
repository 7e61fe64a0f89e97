"""Question routes: assigning a question to people."""

from uuid import UUID

from fastapi import APIRouter, status

from voicejournal.api.deps import CurrentUser, DbSession
from voicejournal.api.routes.assignments import assignment_read
from voicejournal.schemas.assignments import AssignmentRead, AssignQuestionRequest
from voicejournal.services import assignments as assignment_service

router = APIRouter(prefix="/questions", tags=["questions"])


@router.post(
    "/{question_id}/assignments",
    response_model=list[AssignmentRead],
    status_code=status.HTTP_201_CREATED,
)
async def assign_question(
    question_id: UUID,
    data: AssignQuestionRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> list[AssignmentRead]:
    """
    Create one assignment per person.

    Idempotent per (question, person): existing assignments are returned
    as they are. People the caller does not own are skipped.
    """
    assignments = await assignment_service.assign_question(db, current_user.id, question_id, data.person_ids)
    return [assignment_read(a) for a in assignments]
