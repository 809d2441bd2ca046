"""Request/response schemas for user endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    phone: str | None = None
    loyalty_points: int
    loyalty_tier: str
    is_admin: bool
    notification_preferences: dict[str, bool] = {}
    paygreen_card_last4: str | None = None
    paygreen_card_type: str | None = None
    default_payment_method: str
    created_at: datetime | None = None


class ProfileUpdateRequest(BaseModel):
    phone: str | None = Field(None, max_length=32)
    notification_preferences: dict[str, bool] | None = None


class PaymentMethodRequest(BaseModel):
    method: str


class MealVoucherCardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    card_name: str
    card_type: str
    card_number: str
    is_default: bool
    created_at: datetime


class MealVoucherCardListResponse(BaseModel):
    cards: list[MealVoucherCardResponse]


class MealVoucherCardCreateRequest(BaseModel):
    card_name: str = Field(..., max_length=64)
    card_type: str = "swile"
    card_number: str = Field(..., max_length=32)
