"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from folies.db.models import UserBadge


# --- Badge ---


class BadgeDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    level: int
    icon: str
    xp_reward: int
    requirement_value: int
    color: str


class AllBadgesResponse(BaseModel):
    badges: list[BadgeDefinitionResponse]


class UnlockedBadgeResponse(BaseModel):
    """A badge just unlocked, as shown in the unlock toast."""

    id: str
    name: str
    description: str
    icon: str
    color: str
    xp_reward: int
    unlocked_at: datetime


class UserBadgeEntry(BaseModel):
    badge: BadgeDefinitionResponse
    unlocked: bool
    unlocked_at: datetime | None = None
    progress: int
    progress_percent: float


class UserBadgesResponse(BaseModel):
    badges: list[UserBadgeEntry]
    total_available: int
    total_unlocked: int


# --- Stats & levels ---


class LevelProgressResponse(BaseModel):
    level: int
    total_xp: int
    xp_into_level: int
    xp_for_level: int
    next_level_xp: int
    percent: float


class UserStatsResponse(BaseModel):
    total_xp: int
    level: int
    total_orders: int
    total_spent: Decimal
    current_streak: int
    longest_streak: int
    last_order_date: date | None = None
    polls_voted: int
    progress: LevelProgressResponse


class LevelInfoResponse(BaseModel):
    level: int
    xp_required: int
    previous_level_xp: int
    level_up_reward: int


# --- XP conversion ---


class XPConversionRequest(BaseModel):
    xp_amount: int = Field(..., gt=0)


class XPConversionResponse(BaseModel):
    xp_converted: int
    points_credited: int
    total_xp: int
    loyalty_points: int


def unlocked_badge_response(unlock: UserBadge) -> UnlockedBadgeResponse:
    """Build the toast payload from an unlock row with its definition attached."""
    badge = unlock.badge
    return UnlockedBadgeResponse(
        id=str(badge.id),
        name=badge.name,
        description=badge.description,
        icon=badge.icon,
        color=badge.color,
        xp_reward=badge.xp_reward,
        unlocked_at=unlock.unlocked_at,
    )
