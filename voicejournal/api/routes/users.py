"""Current-user device routes."""

from fastapi import APIRouter, status

from voicejournal.api.deps import CurrentUser, DbSession
from voicejournal.db.models import PushPlatform
from voicejournal.schemas.users import PushTokenDelete, PushTokenRead, PushTokenRegister
from voicejournal.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/me/push-token", response_model=PushTokenRead, status_code=status.HTTP_201_CREATED)
async def register_push_token(
    data: PushTokenRegister,
    current_user: CurrentUser,
    db: DbSession,
) -> PushTokenRead:
    """Register this device for push notifications. Safe to call on every launch."""
    push_token = await user_service.register_push_token(
        db, current_user.id, data.token, PushPlatform(data.platform)
    )
    return PushTokenRead.model_validate(push_token)


@router.delete("/me/push-token", status_code=status.HTTP_204_NO_CONTENT)
async def remove_push_token(data: PushTokenDelete, current_user: CurrentUser, db: DbSession) -> None:
    """Deregister a device (e.g. on sign-out). Unknown tokens are ignored."""
    await user_service.remove_push_token(db, current_user.id, data.token)
