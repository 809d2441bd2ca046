"""Poll voting and administration."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from folies.db.models import PollVote
from folies.gamification.stats_service import get_stats
from folies.polls.service import (
    PollClosedError,
    close_poll,
    create_poll,
    delete_poll,
    get_active_poll,
    list_polls_with_counts,
    vote,
)
from tests.conftest import make_dish, make_poll, make_user


async def _three_dishes(db):
    return [
        await make_dish(db, name="Curry vert", price="9.50"),
        await make_dish(db, name="Lasagnes", price="8.90"),
        await make_dish(db, name="Buddha bowl", price="10.50"),
    ]


class TestVote:
    """One vote per user and poll; only the first one counts in stats."""

    @pytest.mark.asyncio
    async def test_first_vote(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes)

        result = await vote(seeded_db, user.id, poll.id, dishes[1].id)

        assert result.is_first_vote is True
        assert result.vote_counts == {dishes[0].id: 0, dishes[1].id: 1, dishes[2].id: 0}
        assert result.total_votes == 1
        assert [ub.badge.name for ub in result.new_badges] == ["Première Voix"]
        stats = await get_stats(seeded_db, user.id)
        assert stats.polls_voted == 1

    @pytest.mark.asyncio
    async def test_changing_vote_replaces_it(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes)

        await vote(seeded_db, user.id, poll.id, dishes[0].id)
        result = await vote(seeded_db, user.id, poll.id, dishes[2].id)

        assert result.is_first_vote is False
        assert result.vote_counts[dishes[0].id] == 0
        assert result.vote_counts[dishes[2].id] == 1
        assert result.new_badges == []
        rows = await seeded_db.scalar(
            select(func.count(PollVote.id)).where(PollVote.poll_id == poll.id, PollVote.user_id == user.id)
        )
        assert rows == 1
        stats = await get_stats(seeded_db, user.id)
        assert stats.polls_voted == 1

    @pytest.mark.asyncio
    async def test_votes_from_several_users(self, seeded_db):
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes)
        for i in range(3):
            user = await make_user(seeded_db, email=f"user{i}@folies.fr")
            result = await vote(seeded_db, user.id, poll.id, dishes[0].id if i < 2 else dishes[1].id)

        assert result.vote_counts[dishes[0].id] == 2
        assert result.vote_counts[dishes[1].id] == 1
        assert result.total_votes == 3

    @pytest.mark.asyncio
    async def test_closed_poll_rejected(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes, status="closed")
        with pytest.raises(PollClosedError):
            await vote(seeded_db, user.id, poll.id, dishes[0].id)

    @pytest.mark.asyncio
    async def test_ended_poll_rejected(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes, starts_in=timedelta(days=-8), ends_in=timedelta(days=-1))
        with pytest.raises(PollClosedError):
            await vote(seeded_db, user.id, poll.id, dishes[0].id)

    @pytest.mark.asyncio
    async def test_dish_outside_poll_rejected(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes)
        outsider = await make_dish(seeded_db, name="Quiche")
        with pytest.raises(ValueError, match="ne fait pas partie"):
            await vote(seeded_db, user.id, poll.id, outsider.id)

    @pytest.mark.asyncio
    async def test_unknown_poll(self, seeded_db):
        user = await make_user(seeded_db)
        with pytest.raises(LookupError):
            await vote(seeded_db, user.id, uuid.uuid4(), uuid.uuid4())


class TestActivePoll:
    @pytest.mark.asyncio
    async def test_most_recent_open_poll(self, db_session):
        dishes = await _three_dishes(db_session)
        await make_poll(db_session, dishes, status="closed")
        open_poll = await make_poll(db_session, dishes)

        active = await get_active_poll(db_session)
        assert active is not None
        assert active.id == open_poll.id

    @pytest.mark.asyncio
    async def test_none_when_nothing_open(self, db_session):
        dishes = await _three_dishes(db_session)
        await make_poll(db_session, dishes, starts_in=timedelta(days=1), ends_in=timedelta(days=8))
        assert await get_active_poll(db_session) is None


class TestAdministration:
    @pytest.mark.asyncio
    async def test_create_poll(self, db_session):
        admin = await make_user(db_session, is_admin=True)
        dishes = await _three_dishes(db_session)
        end = datetime.now(timezone.utc) + timedelta(days=7)

        poll = await create_poll(db_session, "  Plat de la semaine  ", [d.id for d in dishes], end, created_by=admin.id)

        assert poll.title == "Plat de la semaine"
        assert poll.status == "active"
        assert poll.candidate_ids == [d.id for d in dishes]

    @pytest.mark.asyncio
    async def test_duplicate_dishes_rejected(self, db_session):
        dishes = await _three_dishes(db_session)
        end = datetime.now(timezone.utc) + timedelta(days=7)
        with pytest.raises(ValueError, match="3 plats différents"):
            await create_poll(db_session, "Sondage", [dishes[0].id, dishes[0].id, dishes[1].id], end)

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, db_session):
        dishes = await _three_dishes(db_session)
        end = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(ValueError, match="date de fin"):
            await create_poll(db_session, "Sondage", [d.id for d in dishes], end)

    @pytest.mark.asyncio
    async def test_unknown_dish_rejected(self, db_session):
        dishes = await _three_dishes(db_session)
        end = datetime.now(timezone.utc) + timedelta(days=7)
        with pytest.raises(LookupError):
            await create_poll(db_session, "Sondage", [dishes[0].id, dishes[1].id, uuid.uuid4()], end)

    @pytest.mark.asyncio
    async def test_close_and_delete(self, seeded_db):
        user = await make_user(seeded_db)
        dishes = await _three_dishes(seeded_db)
        poll = await make_poll(seeded_db, dishes)
        await vote(seeded_db, user.id, poll.id, dishes[2].id)

        closed = await close_poll(seeded_db, poll.id)
        assert closed.status == "closed"
        [(listed, counts)] = await list_polls_with_counts(seeded_db)
        assert listed.id == poll.id
        assert counts[dishes[2].id] == 1

        await delete_poll(seeded_db, poll.id)
        assert await list_polls_with_counts(seeded_db) == []
        remaining = await seeded_db.scalar(select(func.count(PollVote.id)))
        assert remaining == 0
