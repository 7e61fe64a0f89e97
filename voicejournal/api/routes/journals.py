"""Journal routes: aggregated reads and the owner's own recordings."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, File, Form, Header, Request, Response, UploadFile, status

from voicejournal.api.deps import CurrentUser, DbSession, IntakeDep
from voicejournal.api.ratelimit import limiter
from voicejournal.api.routes.recordings import UPLOAD_SUCCESS_MESSAGE, read_upload
from voicejournal.config import get_settings
from voicejournal.schemas.journals import JournalDetail, JournalSummary
from voicejournal.schemas.recordings import UploadResponse
from voicejournal.services import journals as journal_service
from voicejournal.services.intake import AudioUpload

router = APIRouter(prefix="/journals", tags=["journals"])
settings = get_settings()


@router.get("/", response_model=list[JournalSummary])
async def list_journals(current_user: CurrentUser, db: DbSession) -> list[JournalSummary]:
    """List the caller's journals with question, answer and people counts."""
    return await journal_service.list_journals(db, current_user.id)


@router.get("/{journal_id}", response_model=JournalDetail)
async def get_journal(journal_id: UUID, current_user: CurrentUser, db: DbSession) -> JournalDetail:
    """Get a journal with its questions in display order and each question's assignments."""
    return await journal_service.get_journal_detail(db, current_user.id, journal_id)


@router.post(
    "/{journal_id}/questions/{question_id}/recordings",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.rate_limit_upload)
async def record_own_answer(
    request: Request,
    journal_id: UUID,
    question_id: UUID,
    response: Response,
    background_tasks: BackgroundTasks,
    current_user: CurrentUser,
    db: DbSession,
    intake: IntakeDep,
    audio: Annotated[UploadFile, File()],
    duration_seconds: Annotated[float | None, Form()] = None,
    idempotency_key: Annotated[str | None, Header(max_length=255)] = None,
) -> UploadResponse:
    """
    Record an answer to a question in your own journal.

    Send an Idempotency-Key header to make retries safe: a repeated key
    returns the original recording with 200 instead of creating another.
    """
    upload = AudioUpload(
        data=await read_upload(audio, intake),
        content_type=audio.content_type,
        duration_seconds=duration_seconds,
        idempotency_key=idempotency_key,
    )
    result = await intake.intake_for_owner(
        db, current_user, journal_id, question_id, upload, background_tasks=background_tasks
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return UploadResponse(
        message=UPLOAD_SUCCESS_MESSAGE,
        recording_id=result.recording.id,
        duration_seconds=result.recording.duration_seconds,
    )
