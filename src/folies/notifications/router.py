"""Notification feed and admin broadcast endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.dependencies import get_current_user, require_admin
from folies.database import get_session
from folies.db.models import User
from folies.notifications.schemas import (
    NotificationCreateRequest,
    NotificationListResponse,
    NotificationResponse,
)
from folies.notifications.service import list_notifications, send_notification

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


@router.get("/notifications", response_model=NotificationListResponse)
async def get_notifications(
    limit: int = Query(50, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Broadcasts and the caller's own notifications, newest first."""
    items = await list_notifications(db, user_id=user.id, limit=limit)
    return NotificationListResponse(notifications=[NotificationResponse.model_validate(n) for n in items])


@router.get("/admin/notifications", response_model=NotificationListResponse)
async def get_sent_notifications(
    limit: int = Query(50, ge=1, le=100),
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Broadcast history."""
    items = await list_notifications(db, limit=limit)
    return NotificationListResponse(notifications=[NotificationResponse.model_validate(n) for n in items])


@router.post("/admin/notifications", response_model=NotificationResponse, status_code=201)
async def create_notification(
    body: NotificationCreateRequest,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Send a broadcast notification, optionally tied to a fridge."""
    try:
        notification = await send_notification(
            db,
            title=body.title,
            message=body.message,
            type=body.type,
            fridge_id=body.fridge_id,
            link_url=body.link_url,
        )
        await db.commit()
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    return NotificationResponse.model_validate(notification)
