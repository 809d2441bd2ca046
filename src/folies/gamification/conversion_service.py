"""XP to loyalty-point conversion."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import UserStats
from folies.gamification.levels import MIN_XP_CONVERSION, xp_to_points
from folies.gamification.stats_service import get_stats
from folies.users.service import credit_loyalty_points

logger = logging.getLogger(__name__)


class ConversionError(ValueError):
    """Raised when an XP conversion request is not acceptable."""


class InsufficientXPError(ConversionError):
    """Raised when the user does not hold enough XP."""


async def convert_xp_to_loyalty_points(db: AsyncSession, user_id: uuid.UUID, xp_amount: int) -> int:
    """Convert ``xp_amount`` XP into loyalty points. Returns the points credited.

    The XP debit is conditional on the balance at write time, and both the
    debit and the credit happen in the caller's transaction: the caller
    commits on success and rolls back on any exception, so XP is never
    lost without the matching points.

    Raises:
        ConversionError: below the minimum conversion amount.
        InsufficientXPError: the user holds less XP than requested.
        LookupError: the user profile does not exist.
    """
    if xp_amount < MIN_XP_CONVERSION:
        msg = f"Minimum {MIN_XP_CONVERSION} XP par conversion"
        raise ConversionError(msg)

    stats = await get_stats(db, user_id)
    if stats is None or stats.total_xp < xp_amount:
        msg = "XP insuffisants pour cette conversion"
        raise InsufficientXPError(msg)

    points = xp_to_points(xp_amount)

    result = await db.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id, UserStats.total_xp >= xp_amount)
        .values(
            total_xp=UserStats.total_xp - xp_amount,
            updated_at=datetime.now(timezone.utc),
        )
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        msg = "XP insuffisants pour cette conversion"
        raise InsufficientXPError(msg)

    await credit_loyalty_points(db, user_id, points)
    logger.info("User %s converted %d XP into %d loyalty points", user_id, xp_amount, points)
    return points
