"""Weekly dish polls: voting, counts and administration."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import Dish, Poll, PollVote, UserBadge
from folies.gamification.stats_service import record_poll_vote

logger = structlog.get_logger()


class PollClosedError(ValueError):
    """Raised when voting on a poll that is closed or outside its dates."""


@dataclass
class VoteResult:
    poll_id: uuid.UUID
    dish_id: uuid.UUID
    is_first_vote: bool
    vote_counts: dict[uuid.UUID, int]
    total_votes: int
    new_badges: list[UserBadge] = field(default_factory=list)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_open(poll: Poll, now: datetime) -> bool:
    return poll.status == "active" and as_utc(poll.start_date) <= now <= as_utc(poll.end_date)


def time_left_label(end_date: datetime, now: datetime | None = None) -> str:
    """Remaining time as shown on the poll card ("2 jours restants", "5h restantes"...)."""
    if now is None:
        now = datetime.now(timezone.utc)
    remaining = (as_utc(end_date) - now).total_seconds()
    if remaining <= 0:
        return "Terminé"

    hours = int(remaining // 3600)
    days = hours // 24
    if days > 0:
        plural = "s" if days > 1 else ""
        return f"{days} jour{plural} restant{plural}"
    if hours > 0:
        return f"{hours}h restantes"
    return f"{int(remaining // 60)}min restantes"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_poll(db: AsyncSession, poll_id: uuid.UUID) -> Poll:
    result = await db.execute(select(Poll).where(Poll.id == poll_id))
    poll = result.scalar_one_or_none()
    if poll is None:
        msg = "Sondage introuvable"
        raise LookupError(msg)
    return poll


async def get_active_poll(db: AsyncSession, now: datetime | None = None) -> Poll | None:
    """Most recently created poll that is active and within its dates."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Poll)
        .where(
            Poll.status == "active",
            Poll.start_date <= now,
            Poll.end_date >= now,
        )
        .order_by(Poll.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_poll_votes(db: AsyncSession, poll_id: uuid.UUID) -> dict[uuid.UUID, int]:
    """Vote count per dish; dishes without votes are absent."""
    result = await db.execute(
        select(PollVote.dish_id, func.count(PollVote.id))
        .where(PollVote.poll_id == poll_id)
        .group_by(PollVote.dish_id)
    )
    return {dish_id: count for dish_id, count in result.all()}


def candidate_counts(poll: Poll, counts: dict[uuid.UUID, int]) -> dict[uuid.UUID, int]:
    """Counts for the three candidates in poll order, zero-filled."""
    return {dish_id: counts.get(dish_id, 0) for dish_id in poll.candidate_ids}


async def get_user_vote(db: AsyncSession, poll_id: uuid.UUID, user_id: uuid.UUID) -> PollVote | None:
    result = await db.execute(
        select(PollVote).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------


async def vote(
    db: AsyncSession,
    user_id: uuid.UUID,
    poll_id: uuid.UUID,
    dish_id: uuid.UUID,
    redis: object | None = None,
    now: datetime | None = None,
) -> VoteResult:
    """Record (or change) the user's vote.

    Only a user's first vote on a poll counts toward ``polls_voted``;
    changing the vote later replaces the row without touching stats.

    Raises:
        LookupError: unknown poll.
        PollClosedError: poll closed or outside its dates.
        ValueError: dish is not one of the poll's candidates.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    poll = await get_poll(db, poll_id)
    if not is_open(poll, now):
        msg = "Ce sondage est terminé"
        raise PollClosedError(msg)
    if dish_id not in poll.candidate_ids:
        msg = "Ce plat ne fait pas partie du sondage"
        raise ValueError(msg)

    previous = await get_user_vote(db, poll_id, user_id)
    is_first_vote = previous is None
    if previous is not None:
        await db.execute(
            delete(PollVote).where(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
        )

    db.add(PollVote(poll_id=poll_id, user_id=user_id, dish_id=dish_id, created_at=now))
    await db.flush()

    new_badges: list[UserBadge] = []
    if is_first_vote:
        new_badges = await record_poll_vote(db, user_id, redis=redis)

    counts = candidate_counts(poll, await get_poll_votes(db, poll_id))
    logger.info(
        "poll_vote_recorded",
        user_id=str(user_id),
        poll_id=str(poll_id),
        dish_id=str(dish_id),
        first_vote=is_first_vote,
    )
    return VoteResult(
        poll_id=poll_id,
        dish_id=dish_id,
        is_first_vote=is_first_vote,
        vote_counts=counts,
        total_votes=sum(counts.values()),
        new_badges=new_badges,
    )


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


async def create_poll(
    db: AsyncSession,
    title: str,
    dish_ids: list[uuid.UUID],
    end_date: datetime,
    created_by: uuid.UUID | None = None,
    start_date: datetime | None = None,
) -> Poll:
    """Open a new poll on three distinct dishes.

    Raises:
        ValueError: empty title, not three distinct dishes, end before start.
        LookupError: a dish does not exist.
    """
    title = title.strip()
    if not title:
        msg = "Le titre est obligatoire"
        raise ValueError(msg)
    if len(dish_ids) != 3 or len(set(dish_ids)) != 3:
        msg = "Veuillez sélectionner 3 plats différents"
        raise ValueError(msg)

    now = datetime.now(timezone.utc)
    start = as_utc(start_date) if start_date else now
    end = as_utc(end_date)
    if end <= start:
        msg = "La date de fin doit être postérieure à la date de début"
        raise ValueError(msg)

    result = await db.execute(select(Dish).where(Dish.id.in_(dish_ids)))
    dishes = {d.id: d for d in result.scalars().all()}
    if len(dishes) != 3:
        msg = "Plat introuvable"
        raise LookupError(msg)

    poll = Poll(
        title=title,
        dish_1_id=dish_ids[0],
        dish_2_id=dish_ids[1],
        dish_3_id=dish_ids[2],
        status="active",
        start_date=start,
        end_date=end,
        created_by=created_by,
        created_at=now,
    )
    poll.dish_1 = dishes[dish_ids[0]]
    poll.dish_2 = dishes[dish_ids[1]]
    poll.dish_3 = dishes[dish_ids[2]]
    db.add(poll)
    await db.flush()
    logger.info("poll_created", poll_id=str(poll.id), created_by=str(created_by) if created_by else None)
    return poll


async def close_poll(db: AsyncSession, poll_id: uuid.UUID) -> Poll:
    """Close a poll; votes are kept for the results."""
    poll = await get_poll(db, poll_id)
    poll.status = "closed"
    await db.flush()
    return poll


async def delete_poll(db: AsyncSession, poll_id: uuid.UUID) -> None:
    """Delete a poll and its votes."""
    poll = await get_poll(db, poll_id)
    await db.execute(delete(PollVote).where(PollVote.poll_id == poll_id))
    await db.delete(poll)
    await db.flush()


async def list_polls_with_counts(db: AsyncSession) -> list[tuple[Poll, dict[uuid.UUID, int]]]:
    """All polls, newest first, with zero-filled candidate counts."""
    result = await db.execute(select(Poll).order_by(Poll.created_at.desc()))
    polls = list(result.scalars().all())
    if not polls:
        return []

    counts_result = await db.execute(
        select(PollVote.poll_id, PollVote.dish_id, func.count(PollVote.id))
        .where(PollVote.poll_id.in_([p.id for p in polls]))
        .group_by(PollVote.poll_id, PollVote.dish_id)
    )
    by_poll: dict[uuid.UUID, dict[uuid.UUID, int]] = {}
    for poll_id, dish_id, count in counts_result.all():
        by_poll.setdefault(poll_id, {})[dish_id] = count

    return [(p, candidate_counts(p, by_poll.get(p.id, {}))) for p in polls]


def leading_dish(counts: dict[uuid.UUID, int]) -> uuid.UUID | None:
    """Dish with the most votes; ties go to the earlier candidate. None without votes."""
    if not counts or max(counts.values()) == 0:
        return None
    return max(counts, key=lambda dish_id: counts[dish_id])
