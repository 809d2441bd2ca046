"""Response models for catalog endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict


class FridgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    location: str
    address: str
    status: str
    last_restocked: datetime | None = None
    opening_hours: dict[str, str] = {}


class FridgeListResponse(BaseModel):
    fridges: list[FridgeResponse]


class DishResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str
    price: Decimal
    category: str
    image_url: str
    allergens: list[str] = []
    labels: list[str] = []
    nutritional_info: dict[str, Any] = {}
    is_bestseller: bool = False


class MenuItemResponse(BaseModel):
    dish: DishResponse
    stock: int
    promotion_price: Decimal | None = None
    is_new: bool = False
    display_order: int = 0


class MenuResponse(BaseModel):
    fridge_id: uuid.UUID
    items: list[MenuItemResponse]


class PromotionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str
    type: str
    image_url: str | None = None
    start_date: datetime
    end_date: datetime
    discount_percentage: int | None = None


class PromotionListResponse(BaseModel):
    promotions: list[PromotionResponse]
