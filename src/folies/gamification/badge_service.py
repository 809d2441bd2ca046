"""Badge evaluation: unlock newly qualifying badges and grant their XP."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import BadgeDefinition, Notification, UserBadge, UserStats
from folies.gamification.stats_service import get_stats

logger = logging.getLogger(__name__)

COLLECTOR_BADGE_NAME = "Collectionneur"


async def list_badge_definitions(db: AsyncSession) -> list[BadgeDefinition]:
    """Full badge catalog in its natural order."""
    result = await db.execute(
        select(BadgeDefinition).order_by(BadgeDefinition.sort_order, BadgeDefinition.name)
    )
    return list(result.scalars().all())


async def list_unlocked_badge_ids(db: AsyncSession, user_id: uuid.UUID) -> set[uuid.UUID]:
    """IDs of badges the user has already unlocked."""
    result = await db.execute(
        select(UserBadge.badge_type_id).where(UserBadge.user_id == user_id)
    )
    return set(result.scalars().all())


async def list_user_badges(db: AsyncSession, user_id: uuid.UUID) -> list[UserBadge]:
    """Unlocked badges with their definitions, most recent first."""
    result = await db.execute(
        select(UserBadge)
        .where(UserBadge.user_id == user_id)
        .order_by(UserBadge.unlocked_at.desc())
    )
    return list(result.scalars().unique().all())


def predicate_holds(badge: BadgeDefinition, stats: UserStats, unlocked_count: int) -> bool:
    """Whether ``badge``'s category requirement is met by ``stats``.

    ``unlocked_count`` is the number of badges unlocked before the current
    evaluation pass; only the collector badge looks at it.
    """
    if badge.category == "orders":
        return stats.total_orders >= badge.requirement_value
    if badge.category == "spending":
        return stats.total_spent >= badge.requirement_value
    if badge.category == "streak":
        return stats.longest_streak >= badge.requirement_value
    if badge.category == "voting":
        return stats.polls_voted >= badge.requirement_value
    if badge.category == "special" and badge.name == COLLECTOR_BADGE_NAME:
        return unlocked_count >= badge.requirement_value
    return False


async def insert_unlock(db: AsyncSession, user_id: uuid.UUID, badge: BadgeDefinition) -> UserBadge:
    """Insert the unlock row. UNIQUE(user_id, badge_type_id) rejects a concurrent duplicate."""
    unlock = UserBadge(
        user_id=user_id,
        badge_type_id=badge.id,
        unlocked_at=datetime.now(timezone.utc),
        progress=0,
    )
    unlock.badge = badge
    db.add(unlock)
    await db.flush()
    return unlock


async def grant_xp(db: AsyncSession, user_id: uuid.UUID, amount: int) -> None:
    """Atomically add ``amount`` XP to the user's total."""
    await db.execute(
        update(UserStats)
        .where(UserStats.user_id == user_id)
        .values(
            total_xp=UserStats.total_xp + amount,
            updated_at=datetime.now(timezone.utc),
        )
    )


async def evaluate_badges(
    db: AsyncSession,
    user_id: uuid.UUID,
    redis: object | None = None,
) -> list[UserBadge]:
    """Unlock every catalog badge the user newly qualifies for.

    Returns the new unlocks (definition attached as ``.badge``), in catalog
    order. Returns an empty list if the user has no stats row yet.
    """
    stats = await get_stats(db, user_id)
    if stats is None:
        return []

    catalog = await list_badge_definitions(db)
    unlocked_ids = await list_unlocked_badge_ids(db, user_id)
    unlocked_count = len(unlocked_ids)

    newly_unlocked: list[UserBadge] = []
    for badge in catalog:
        if badge.id in unlocked_ids:
            continue
        if not predicate_holds(badge, stats, unlocked_count):
            continue

        unlock = await insert_unlock(db, user_id, badge)
        await grant_xp(db, user_id, badge.xp_reward)
        newly_unlocked.append(unlock)
        logger.info("User %s unlocked badge %s (+%d XP)", user_id, badge.name, badge.xp_reward)

    for unlock in newly_unlocked:
        await _emit_badge_unlocked(db, redis, user_id, unlock.badge)

    return newly_unlocked


async def _emit_badge_unlocked(
    db: AsyncSession,
    redis: object | None,
    user_id: uuid.UUID,
    badge: BadgeDefinition,
) -> None:
    """Persist a per-user notification and publish the unlock on Redis."""
    now = datetime.now(timezone.utc)
    db.add(Notification(
        user_id=user_id,
        type="badge",
        title=f'Badge débloqué : "{badge.name}"',
        message=f"+{badge.xp_reward} XP : {badge.description}",
        link_url="/profile",
        sent_at=now,
        created_at=now,
    ))

    if redis is not None:
        try:
            await redis.publish(  # type: ignore[attr-defined]
                "pubsub:badge_unlocked",
                json.dumps({
                    "user_id": str(user_id),
                    "badge_id": str(badge.id),
                    "badge_name": badge.name,
                    "color": badge.color,
                    "xp_reward": badge.xp_reward,
                }),
            )
        except Exception:
            logger.warning("Failed to publish badge_unlocked notification", exc_info=True)


def badge_progress(badge: BadgeDefinition, stats: UserStats | None, unlocked_count: int) -> int:
    """Current value of the statistic ``badge`` measures, for progress bars."""
    if stats is None:
        return 0
    if badge.category == "orders":
        return stats.total_orders
    if badge.category == "spending":
        return int(stats.total_spent)
    if badge.category == "streak":
        return stats.longest_streak
    if badge.category == "voting":
        return stats.polls_voted
    if badge.category == "special" and badge.name == COLLECTOR_BADGE_NAME:
        return unlocked_count
    return 0
