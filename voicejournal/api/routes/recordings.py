"""Recording routes: owner management and the public recording link."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, Request, UploadFile, status

from voicejournal.api.deps import BlobStoreDep, CurrentUser, DbSession, IntakeDep
from voicejournal.api.ratelimit import limiter
from voicejournal.config import get_settings
from voicejournal.schemas.recordings import (
    RecordingDetail,
    RecordingList,
    RecordingRead,
    RecordPageRead,
    UploadResponse,
)
from voicejournal.services import recordings as recording_service
from voicejournal.services.intake import AudioUpload, RecordingIntake

router = APIRouter(prefix="/recordings", tags=["recordings"])
public_router = APIRouter(prefix="/record", tags=["public"])
settings = get_settings()

UPLOAD_SUCCESS_MESSAGE = "Recording uploaded successfully"


async def read_upload(audio: UploadFile, intake: RecordingIntake) -> bytes:
    """Read at most one byte past the size limit so oversize uploads are rejected cheaply."""
    try:
        return await audio.read(intake.limits.max_size_bytes + 1)
    finally:
        await audio.close()


# =============================================================================
# OWNER
# =============================================================================


@router.get("/", response_model=RecordingList)
async def list_recordings(
    current_user: CurrentUser,
    db: DbSession,
    journal_id: UUID | None = None,
    person_id: UUID | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> RecordingList:
    """
    List recordings across the caller's journals, newest first.

    Filters:
    - journal_id: Only recordings answering questions in this journal
    - person_id: Only recordings by this person
    """
    items, total = await recording_service.list_recordings(
        db, current_user.id, journal_id=journal_id, person_id=person_id, limit=limit, offset=offset
    )
    return RecordingList(
        items=[RecordingRead.model_validate(r) for r in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{recording_id}", response_model=RecordingDetail)
async def get_recording(
    recording_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    blob_store: BlobStoreDep,
) -> RecordingDetail:
    """Get a recording with a (signed, when on S3) playback URL."""
    recording = await recording_service.get_owned_recording(db, current_user.id, recording_id)
    question = recording.assignment.question
    return RecordingDetail(
        **RecordingRead.model_validate(recording).model_dump(),
        audio_url=await blob_store.url_for(recording.audio_key),
        question_id=question.id,
        question_text=question.question_text,
        journal_id=question.journal_id,
        person_name=recording.person.name,
    )


@router.delete("/{recording_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recording(
    recording_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
    blob_store: BlobStoreDep,
) -> None:
    """Delete a recording; its assignment goes back to sent so it can be answered again."""
    await recording_service.delete_recording(db, current_user.id, recording_id, blob_store)


# =============================================================================
# PUBLIC (link token is the credential)
# =============================================================================


@public_router.get("/{token}", response_model=RecordPageRead)
async def open_recording_page(token: str, db: DbSession, intake: IntakeDep) -> RecordPageRead:
    """Resolve a recording link. The first load marks the assignment viewed."""
    page = await intake.open_page(db, token)
    return RecordPageRead(
        question_text=page.question_text,
        recipient_name=page.recipient_name,
        owner_name=page.owner_name,
        journal_title=page.journal_title,
        status=page.status,
        answered=page.answered,
    )


@public_router.post("/{token}/upload", response_model=UploadResponse)
@limiter.limit(settings.rate_limit_upload)
async def upload_recording(
    request: Request,
    token: str,
    background_tasks: BackgroundTasks,
    db: DbSession,
    intake: IntakeDep,
    audio: Annotated[UploadFile, File()],
    duration_seconds: Annotated[float | None, Form()] = None,
) -> UploadResponse:
    """Accept the recipient's answer. At most one recording per link."""
    upload = AudioUpload(
        data=await read_upload(audio, intake),
        content_type=audio.content_type,
        duration_seconds=duration_seconds,
    )
    result = await intake.intake_from_link(db, token, upload, background_tasks=background_tasks)
    return UploadResponse(
        message=UPLOAD_SUCCESS_MESSAGE,
        recording_id=result.recording.id,
        duration_seconds=result.recording.duration_seconds,
    )
