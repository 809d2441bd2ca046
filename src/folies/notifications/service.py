"""Notifications: admin broadcasts and per-user gamification messages."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import Fridge, Notification

logger = structlog.get_logger()

NOTIFICATION_TYPES = ("restock", "promotion", "game", "info", "badge")


async def list_notifications(
    db: AsyncSession,
    user_id: uuid.UUID | None = None,
    limit: int = 50,
) -> list[Notification]:
    """Newest first. With ``user_id``: broadcasts plus that user's own messages."""
    query = select(Notification)
    if user_id is None:
        query = query.where(Notification.user_id.is_(None))
    else:
        query = query.where(or_(Notification.user_id.is_(None), Notification.user_id == user_id))
    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def send_notification(
    db: AsyncSession,
    title: str,
    message: str,
    type: str = "info",
    fridge_id: uuid.UUID | None = None,
    link_url: str | None = None,
) -> Notification:
    """Publish a broadcast notification.

    Raises:
        ValueError: missing title or message, unknown type.
        LookupError: unknown fridge.
    """
    title = title.strip()
    message = message.strip()
    if not title or not message:
        msg = "Le titre et le message sont obligatoires"
        raise ValueError(msg)
    if type not in NOTIFICATION_TYPES:
        msg = f"Type de notification inconnu : {type}"
        raise ValueError(msg)
    if fridge_id is not None:
        result = await db.execute(select(Fridge.id).where(Fridge.id == fridge_id))
        if result.scalar_one_or_none() is None:
            msg = "Frigo introuvable"
            raise LookupError(msg)

    now = datetime.now(timezone.utc)
    notification = Notification(
        user_id=None,
        fridge_id=fridge_id,
        type=type,
        title=title,
        message=message,
        link_url=link_url or None,
        sent_at=now,
        created_at=now,
    )
    db.add(notification)
    await db.flush()
    logger.info("notification_sent", notification_id=str(notification.id), type=type)
    return notification
