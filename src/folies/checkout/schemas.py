"""Request/response models for checkout endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from folies.gamification.schemas import UnlockedBadgeResponse


class CheckoutRequest(BaseModel):
    fridge_id: uuid.UUID
    dish_id: uuid.UUID
    use_points: bool = False


class QuickPayRequest(BaseModel):
    fridge_id: uuid.UUID


class PriceQuoteResponse(BaseModel):
    base_price: Decimal
    max_points_usable: int
    points_used: int
    points_discount: Decimal
    final_price: Decimal
    points_awarded: int


class OrderDishResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    image_url: str = ""


class OrderFridgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    location: str = ""


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    fridge: OrderFridgeResponse
    dish: OrderDishResponse | None = None
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    payment_method: str
    payment_status: str
    payment_ref: str | None = None
    unlock_code: str
    unlock_expires_at: datetime | None = None
    is_collected: bool
    collected_at: datetime | None = None
    points_awarded: int
    created_at: datetime


class CheckoutResponse(BaseModel):
    order: OrderResponse
    quote: PriceQuoteResponse | None = None
    new_badges: list[UnlockedBadgeResponse] = Field(default_factory=list)
    loyalty_points: int
    replayed: bool = False


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
