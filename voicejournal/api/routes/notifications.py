"""In-app notification routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from voicejournal.api.deps import CurrentUser, DbSession
from voicejournal.schemas.notifications import MarkAllReadResponse, NotificationList, NotificationRead
from voicejournal.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/", response_model=NotificationList)
async def list_notifications(
    current_user: CurrentUser,
    db: DbSession,
    unread_only: bool = False,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> NotificationList:
    items, unread_count = await notification_service.list_notifications(
        db, current_user.id, unread_only=unread_only, limit=limit
    )
    return NotificationList(
        items=[NotificationRead.model_validate(n) for n in items],
        unread_count=unread_count,
    )


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> NotificationRead:
    notification = await notification_service.mark_read(db, current_user.id, notification_id)
    return NotificationRead.model_validate(notification)


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(current_user: CurrentUser, db: DbSession) -> MarkAllReadResponse:
    updated = await notification_service.mark_all_read(db, current_user.id)
    return MarkAllReadResponse(updated=updated)
