"""Per-user statistics: order totals, daily order streaks, poll participation."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import UserBadge, UserStats

logger = logging.getLogger(__name__)


def utc_today() -> date:
    """Calendar date in UTC, the reference for streaks."""
    return datetime.now(timezone.utc).date()


def compute_streak(last_order_date: date | None, current_streak: int, today: date) -> int:
    """Streak value after an order placed on ``today``.

    Consecutive day extends the streak, a second order on the same day
    leaves it unchanged, anything else starts a new streak at 1.
    """
    if last_order_date is None:
        return 1
    gap = (today - last_order_date).days
    if gap == 1:
        return current_streak + 1
    if gap == 0:
        return current_streak
    return 1


async def get_stats(db: AsyncSession, user_id: uuid.UUID) -> UserStats | None:
    """Fetch the stats row for a user, if any."""
    result = await db.execute(select(UserStats).where(UserStats.user_id == user_id))
    return result.scalar_one_or_none()


async def ensure_stats(db: AsyncSession, user_id: uuid.UUID) -> UserStats:
    """Get or create the stats row for a user (idempotent)."""
    stats = await get_stats(db, user_id)
    if stats is None:
        stats = UserStats(
            user_id=user_id,
            total_xp=0,
            level=1,
            total_orders=0,
            total_spent=Decimal("0"),
            current_streak=0,
            longest_streak=0,
            last_order_date=None,
            polls_voted=0,
            updated_at=datetime.now(timezone.utc),
        )
        db.add(stats)
        await db.flush()
        logger.info("Initialized stats for user %s", user_id)
    return stats


async def record_order(
    db: AsyncSession,
    user_id: uuid.UUID,
    order_amount: Decimal,
    today: date | None = None,
    redis: object | None = None,
) -> list[UserBadge]:
    """Account for a completed order, then run badge evaluation.

    Returns the badges newly unlocked by this order.
    """
    from folies.gamification.badge_service import evaluate_badges

    amount = Decimal(str(order_amount))
    if amount < 0:
        msg = "Order amount cannot be negative"
        raise ValueError(msg)
    if today is None:
        today = utc_today()

    stats = await ensure_stats(db, user_id)

    stats.current_streak = compute_streak(stats.last_order_date, stats.current_streak, today)
    stats.longest_streak = max(stats.longest_streak, stats.current_streak)
    stats.total_orders += 1
    stats.total_spent = Decimal(stats.total_spent) + amount
    stats.last_order_date = today
    stats.updated_at = datetime.now(timezone.utc)
    await db.flush()

    return await evaluate_badges(db, user_id, redis=redis)


async def record_poll_vote(
    db: AsyncSession,
    user_id: uuid.UUID,
    redis: object | None = None,
) -> list[UserBadge]:
    """Count a first vote on a poll, then run badge evaluation."""
    from folies.gamification.badge_service import evaluate_badges

    stats = await ensure_stats(db, user_id)
    stats.polls_voted += 1
    stats.updated_at = datetime.now(timezone.utc)
    await db.flush()

    return await evaluate_badges(db, user_id, redis=redis)
