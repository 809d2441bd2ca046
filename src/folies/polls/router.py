"""Weekly poll endpoints, plus poll administration."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.dependencies import get_current_user, require_admin
from folies.database import get_session
from folies.db.models import Poll, User
from folies.gamification.schemas import unlocked_badge_response
from folies.polls.schemas import (
    ActivePollResponse,
    AdminPollListResponse,
    AdminPollResponse,
    PollCreateRequest,
    PollDishResponse,
    PollResponse,
    VoteRequest,
    VoteResponse,
)
from folies.polls.service import (
    candidate_counts,
    close_poll,
    create_poll,
    delete_poll,
    get_active_poll,
    get_poll_votes,
    get_user_vote,
    leading_dish,
    list_polls_with_counts,
    time_left_label,
    vote,
)
from folies.redis_client import get_redis_dep

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Polls"])


def _poll_fields(poll: Poll, counts: dict[uuid.UUID, int]) -> dict:
    dishes = [poll.dish_1, poll.dish_2, poll.dish_3]
    return {
        "id": poll.id,
        "title": poll.title,
        "status": poll.status,
        "start_date": poll.start_date,
        "end_date": poll.end_date,
        "time_left": time_left_label(poll.end_date),
        "dishes": [
            PollDishResponse(id=d.id, name=d.name, image_url=d.image_url, votes=counts.get(d.id, 0))
            for d in dishes
        ],
        "total_votes": sum(counts.values()),
    }


@router.get("/polls/active", response_model=ActivePollResponse)
async def get_active_poll_endpoint(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ActivePollResponse:
    """The current weekly poll with live counts and the caller's vote, if any."""
    poll = await get_active_poll(db)
    if poll is None:
        return ActivePollResponse(poll=None)
    counts = candidate_counts(poll, await get_poll_votes(db, poll.id))
    user_vote = await get_user_vote(db, poll.id, user.id)
    return ActivePollResponse(
        poll=PollResponse(**_poll_fields(poll, counts), user_vote=user_vote.dish_id if user_vote else None)
    )


@router.post("/polls/{poll_id}/vote", response_model=VoteResponse)
async def vote_endpoint(
    poll_id: uuid.UUID,
    body: VoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
) -> VoteResponse:
    """Vote for (or switch to) one of the poll's three dishes."""
    try:
        result = await vote(db, user.id, poll_id, body.dish_id, redis=redis)
        await db.commit()
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IntegrityError as e:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Vote déjà en cours d'enregistrement") from e

    return VoteResponse(
        poll_id=result.poll_id,
        dish_id=result.dish_id,
        is_first_vote=result.is_first_vote,
        vote_counts={str(k): v for k, v in result.vote_counts.items()},
        total_votes=result.total_votes,
        new_badges=[unlocked_badge_response(ub) for ub in result.new_badges],
    )


# ── Administration ──


@router.get("/admin/polls", response_model=AdminPollListResponse)
async def list_polls_endpoint(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminPollListResponse:
    """Every poll, newest first, with results."""
    rows = await list_polls_with_counts(db)
    return AdminPollListResponse(
        polls=[
            AdminPollResponse(**_poll_fields(poll, counts), winner_dish_id=leading_dish(counts))
            for poll, counts in rows
        ]
    )


@router.post("/admin/polls", response_model=AdminPollResponse, status_code=201)
async def create_poll_endpoint(
    body: PollCreateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminPollResponse:
    """Open a new poll on three distinct dishes."""
    try:
        poll = await create_poll(
            db,
            body.title,
            body.dish_ids,
            body.end_date,
            created_by=admin.id,
            start_date=body.start_date,
        )
        await db.commit()
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    return AdminPollResponse(**_poll_fields(poll, candidate_counts(poll, {})))


@router.post("/admin/polls/{poll_id}/close", response_model=AdminPollResponse)
async def close_poll_endpoint(
    poll_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> AdminPollResponse:
    """Close a poll and report its result."""
    try:
        poll = await close_poll(db, poll_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    counts = candidate_counts(poll, await get_poll_votes(db, poll_id))
    logger.info("poll_closed", poll_id=str(poll_id))
    return AdminPollResponse(**_poll_fields(poll, counts), winner_dish_id=leading_dish(counts))


@router.delete("/admin/polls/{poll_id}", status_code=204)
async def delete_poll_endpoint(
    poll_id: uuid.UUID,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete a poll and its votes."""
    try:
        await delete_poll(db, poll_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    logger.info("poll_deleted", poll_id=str(poll_id))
