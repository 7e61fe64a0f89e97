"""Push token registration for the current user's devices."""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from voicejournal.db.models import PushPlatform, PushToken
from voicejournal.services.senders import mask

logger = logging.getLogger(__name__)


async def register_push_token(db: AsyncSession, user_id: UUID, token: str, platform: PushPlatform) -> PushToken:
    """
    Idempotent per token.

    A token already registered to another user moves to the caller (same
    device, new sign-in).
    """
    existing = await db.scalar(select(PushToken).where(PushToken.token == token))
    if existing is not None:
        if existing.user_id != user_id or existing.platform != platform:
            logger.info("Reassigning push token %s to user %s", mask(token, 12), user_id)
            existing.user_id = user_id
            existing.platform = platform
            await db.commit()
        return existing

    push_token = PushToken(user_id=user_id, token=token, platform=platform)
    db.add(push_token)
    await db.commit()
    logger.info("Registered %s push token %s for user %s", platform.value, mask(token, 12), user_id)
    return push_token


async def remove_push_token(db: AsyncSession, user_id: UUID, token: str) -> bool:
    result = await db.execute(
        delete(PushToken).where(PushToken.user_id == user_id, PushToken.token == token)
    )
    await db.commit()
    return bool(result.rowcount)
