"""In-app notification inbox."""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voicejournal.db.models import Notification, utcnow
from voicejournal.errors import ForbiddenError, NotFoundError


async def list_notifications(
    db: AsyncSession,
    user_id: UUID,
    *,
    unread_only: bool = False,
    limit: int = 50,
) -> tuple[list[Notification], int]:
    """Newest first, plus the caller's total unread count."""
    query = select(Notification).where(Notification.recipient_user_id == user_id)
    if unread_only:
        query = query.where(Notification.read_at.is_(None))
    result = await db.execute(query.order_by(Notification.sent_at.desc()).limit(limit))

    unread = await db.scalar(
        select(func.count(Notification.id)).where(
            Notification.recipient_user_id == user_id,
            Notification.read_at.is_(None),
        )
    )
    return list(result.scalars()), unread or 0


async def mark_read(db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
    notification = await db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification")
    if notification.recipient_user_id != user_id:
        raise ForbiddenError("You do not have access to this notification")
    if notification.read_at is None:
        notification.read_at = utcnow()
        await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=utcnow())
    )
    await db.commit()
    return result.rowcount
