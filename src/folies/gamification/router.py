"""Gamification API endpoints: badges, stats, levels, XP conversion."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.dependencies import get_current_user
from folies.database import get_session
from folies.db.models import BadgeDefinition, User
from folies.gamification.badge_service import badge_progress, list_badge_definitions, list_user_badges
from folies.gamification.conversion_service import ConversionError, convert_xp_to_loyalty_points
from folies.gamification.levels import level_progress, level_threshold, level_up_reward
from folies.gamification.schemas import (
    AllBadgesResponse,
    BadgeDefinitionResponse,
    LevelInfoResponse,
    LevelProgressResponse,
    UserBadgeEntry,
    UserBadgesResponse,
    UserStatsResponse,
    XPConversionRequest,
    XPConversionResponse,
)
from folies.gamification.stats_service import ensure_stats, get_stats

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _badge_response(b: BadgeDefinition) -> BadgeDefinitionResponse:
    return BadgeDefinitionResponse(
        id=str(b.id),
        name=b.name,
        description=b.description,
        category=b.category,
        level=b.level,
        icon=b.icon,
        xp_reward=b.xp_reward,
        requirement_value=b.requirement_value,
        color=b.color,
    )


# ── Public endpoints ──


@router.get("/badges", response_model=AllBadgesResponse)
async def list_badges(db: AsyncSession = Depends(get_session)):
    """Full badge catalog."""
    catalog = await list_badge_definitions(db)
    return AllBadgesResponse(badges=[_badge_response(b) for b in catalog])


@router.get("/levels/{level}", response_model=LevelInfoResponse)
async def get_level(level: int = Path(..., ge=1, le=1000)):
    """XP band and level-up reward of one level."""
    return LevelInfoResponse(
        level=level,
        xp_required=level_threshold(level),
        previous_level_xp=level_threshold(level - 1),
        level_up_reward=level_up_reward(level),
    )


# ── Authenticated endpoints ──


@router.get("/users/me/badges", response_model=UserBadgesResponse)
async def get_my_badges(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Every catalog badge with the user's unlock state and progress."""
    catalog = await list_badge_definitions(db)
    unlocks = {ub.badge_type_id: ub for ub in await list_user_badges(db, user.id)}
    stats = await get_stats(db, user.id)

    entries = []
    for b in catalog:
        unlock = unlocks.get(b.id)
        progress = b.requirement_value if unlock else badge_progress(b, stats, len(unlocks))
        percent = min(progress / b.requirement_value * 100, 100.0) if b.requirement_value > 0 else 0.0
        entries.append(UserBadgeEntry(
            badge=_badge_response(b),
            unlocked=unlock is not None,
            unlocked_at=unlock.unlocked_at if unlock else None,
            progress=progress,
            progress_percent=percent,
        ))

    return UserBadgesResponse(
        badges=entries,
        total_available=len(catalog),
        total_unlocked=len(unlocks),
    )


@router.get("/users/me/stats", response_model=UserStatsResponse)
async def get_my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Order, streak and poll statistics with level progress."""
    stats = await ensure_stats(db, user.id)
    await db.commit()
    progress = level_progress(stats.total_xp, stats.level)
    return UserStatsResponse(
        total_xp=stats.total_xp,
        level=stats.level,
        total_orders=stats.total_orders,
        total_spent=stats.total_spent,
        current_streak=stats.current_streak,
        longest_streak=stats.longest_streak,
        last_order_date=stats.last_order_date,
        polls_voted=stats.polls_voted,
        progress=LevelProgressResponse(
            level=progress.level,
            total_xp=progress.total_xp,
            xp_into_level=progress.xp_into_level,
            xp_for_level=progress.xp_for_level,
            next_level_xp=progress.next_level_xp,
            percent=progress.percent,
        ),
    )


@router.post("/users/me/xp/convert", response_model=XPConversionResponse)
async def convert_xp(
    body: XPConversionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Convert XP into loyalty points (10 XP = 1 point, minimum 100 XP)."""
    try:
        points = await convert_xp_to_loyalty_points(db, user.id, body.xp_amount)
        await db.commit()
    except ConversionError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e

    stats = await get_stats(db, user.id)
    await db.refresh(user)
    logger.info("xp_converted", user_id=str(user.id), xp=body.xp_amount, points=points)
    return XPConversionResponse(
        xp_converted=body.xp_amount,
        points_credited=points,
        total_xp=stats.total_xp if stats else 0,
        loyalty_points=user.loyalty_points,
    )
