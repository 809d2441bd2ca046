"""ORM models for the Folies Fridge schema.

Integrity rules the application relies on live here as constraints:
one unlock row per (user, badge), one vote per (poll, user), one order per
(user, idempotency key), and non-negative XP / loyalty balances.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from folies.db.base import Base, JSONType

PAYMENT_METHODS = ("apple_pay", "google_pay", "card", "nfc", "paygreen")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
DEFAULT_PAYMENT_METHODS = ("nfc", "paygreen")
BADGE_CATEGORIES = ("orders", "spending", "streak", "voting", "special")
BADGE_COLORS = ("bronze", "silver", "gold", "platinum")
LOYALTY_TIERS = ("bronze", "silver", "gold", "platinum")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """User profile. ``id`` is the subject of the auth platform's JWT."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="ck_users_loyalty_points_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    loyalty_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    loyalty_tier: Mapped[str] = mapped_column(String(16), nullable=False, default="bronze", server_default="bronze")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    notification_preferences: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=lambda: {"restock": True, "promotions": True, "games": True},
    )
    paygreen_card_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    paygreen_card_last4: Mapped[str | None] = mapped_column(String(4), nullable=True)
    paygreen_card_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    default_payment_method: Mapped[str] = mapped_column(
        String(16), nullable=False, default="nfc", server_default="nfc"
    )
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    last_active: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MealVoucherCard(Base):
    """Meal voucher card on file. Only the last four digits are stored."""

    __tablename__ = "meal_voucher_cards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    card_name: Mapped[str] = mapped_column(String(64), nullable=False)
    card_type: Mapped[str] = mapped_column(String(32), nullable=False)
    card_number: Mapped[str] = mapped_column(String(4), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class Fridge(Base):
    """A physical smart fridge."""

    __tablename__ = "fridges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    location: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    address: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    last_restocked: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    opening_hours: Mapped[dict[str, str]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class Dish(Base):
    """A dish that can be stocked in fridges."""

    __tablename__ = "dishes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="lunch")
    image_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    allergens: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    labels: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    nutritional_info: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_bestseller: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )


class FridgeInventory(Base):
    """Stock of one dish in one fridge, with an optional promotional price."""

    __tablename__ = "fridge_inventory"
    __table_args__ = (
        UniqueConstraint("fridge_id", "dish_id", name="uq_fridge_inventory_fridge_dish"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    fridge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("fridges.id", ondelete="CASCADE"), nullable=False)
    dish_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("dishes.id", ondelete="CASCADE"), nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    promotion_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    is_new: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    dish: Mapped[Dish] = relationship("Dish", lazy="joined")


class Promotion(Base):
    """Marketing promotion, optionally restricted to a set of fridges."""

    __tablename__ = "promotions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="discount")
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    fridge_ids: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    discount_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class Order(Base):
    """Purchase or zero-amount unlock event."""

    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_orders_user_idempotency_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    fridge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("fridges.id"), nullable=False)
    dish_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("dishes.id"), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payment_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    unlock_code: Mapped[str] = mapped_column(String(6), nullable=False)
    unlock_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_collected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=false())
    collected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    points_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    dish: Mapped[Dish | None] = relationship("Dish", lazy="joined")
    fridge: Mapped[Fridge] = relationship("Fridge", lazy="joined")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """Broadcast (``user_id`` NULL) or per-user notification."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    fridge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("fridges.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Gamification
# ---------------------------------------------------------------------------


class BadgeDefinition(Base):
    """Badge catalog entry, seeded on startup."""

    __tablename__ = "badge_types"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(16), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    icon: Mapped[str] = mapped_column(String(32), nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requirement_value: Mapped[int] = mapped_column(Integer, nullable=False)
    color: Mapped[str] = mapped_column(String(16), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")


class UserBadge(Base):
    """Badge unlocked by a user. UNIQUE(user_id, badge_type_id) prevents duplicates."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "badge_type_id", name="uq_user_badges_user_badge"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge_type_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("badge_types.id"), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    badge: Mapped[BadgeDefinition] = relationship("BadgeDefinition", lazy="joined")


class UserStats(Base):
    """Per-user cumulative statistics, one row per user."""

    __tablename__ = "user_stats"
    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_user_stats_total_xp_non_negative"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_spent: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0"), server_default="0"
    )
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_order_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    polls_voted: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Weekly polls
# ---------------------------------------------------------------------------


class Poll(Base):
    """Weekly dish poll with exactly three candidates."""

    __tablename__ = "polls"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    dish_1_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("dishes.id"), nullable=False)
    dish_2_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("dishes.id"), nullable=False)
    dish_3_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("dishes.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    dish_1: Mapped[Dish] = relationship("Dish", foreign_keys=[dish_1_id], lazy="joined")
    dish_2: Mapped[Dish] = relationship("Dish", foreign_keys=[dish_2_id], lazy="joined")
    dish_3: Mapped[Dish] = relationship("Dish", foreign_keys=[dish_3_id], lazy="joined")

    @property
    def candidate_ids(self) -> list[uuid.UUID]:
        return [self.dish_1_id, self.dish_2_id, self.dish_3_id]


class PollVote(Base):
    """A user's live vote on a poll. UNIQUE(poll_id, user_id)."""

    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_votes_poll_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    poll_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("polls.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    dish_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("dishes.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
