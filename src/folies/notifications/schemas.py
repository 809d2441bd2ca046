"""Request/response models for notification endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: str
    title: str
    message: str
    fridge_id: uuid.UUID | None = None
    link_url: str | None = None
    sent_at: datetime
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]


class NotificationCreateRequest(BaseModel):
    title: str = Field(..., max_length=256)
    message: str
    type: str = "info"
    fridge_id: uuid.UUID | None = None
    link_url: str | None = Field(None, max_length=512)
