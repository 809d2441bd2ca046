"""Badge evaluation against a seeded catalog."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from folies.db.models import Notification, UserBadge
from folies.gamification.badge_service import evaluate_badges, list_user_badges
from folies.gamification.stats_service import ensure_stats, get_stats, record_order, record_poll_vote
from tests.conftest import make_user


class TestFirstOrder:
    """A first order unlocks the first orders badge and grants its XP."""

    @pytest.mark.asyncio
    async def test_first_order_unlocks_premiere_bouchee(self, seeded_db):
        user = await make_user(seeded_db)

        new_badges = await record_order(seeded_db, user.id, Decimal("8.00"), today=date(2026, 3, 10))

        assert [ub.badge.name for ub in new_badges] == ["Première Bouchée"]
        stats = await get_stats(seeded_db, user.id)
        assert stats.total_orders == 1
        assert stats.total_spent == Decimal("8.00")
        assert stats.current_streak == 1
        assert stats.total_xp == 50

    @pytest.mark.asyncio
    async def test_unlock_creates_user_notification(self, seeded_db):
        user = await make_user(seeded_db)
        await record_order(seeded_db, user.id, Decimal("8.00"))
        await seeded_db.flush()

        result = await seeded_db.execute(
            select(Notification).where(Notification.user_id == user.id, Notification.type == "badge")
        )
        notifications = result.scalars().all()
        assert len(notifications) == 1
        assert "Première Bouchée" in notifications[0].title

    @pytest.mark.asyncio
    async def test_reevaluation_is_idempotent(self, seeded_db):
        user = await make_user(seeded_db)
        await record_order(seeded_db, user.id, Decimal("8.00"))

        assert await evaluate_badges(seeded_db, user.id) == []
        count = await seeded_db.scalar(
            select(func.count(UserBadge.id)).where(UserBadge.user_id == user.id)
        )
        assert count == 1
        stats = await get_stats(seeded_db, user.id)
        assert stats.total_xp == 50


class TestStreakBadges:
    @pytest.mark.asyncio
    async def test_three_consecutive_days(self, seeded_db):
        user = await make_user(seeded_db)
        start = date(2026, 3, 10)
        unlocked = []
        for offset in range(3):
            badges = await record_order(seeded_db, user.id, Decimal("5.00"), today=start + timedelta(days=offset))
            unlocked.extend(ub.badge.name for ub in badges)

        assert "Bon Rythme" in unlocked
        stats = await get_stats(seeded_db, user.id)
        assert stats.current_streak == 3
        assert stats.longest_streak == 3

    @pytest.mark.asyncio
    async def test_longest_streak_survives_reset(self, seeded_db):
        user = await make_user(seeded_db)
        start = date(2026, 3, 10)
        for offset in (0, 1, 2, 10):
            await record_order(seeded_db, user.id, Decimal("5.00"), today=start + timedelta(days=offset))

        stats = await get_stats(seeded_db, user.id)
        assert stats.current_streak == 1
        assert stats.longest_streak == 3


class TestVotingBadges:
    @pytest.mark.asyncio
    async def test_first_vote_unlocks_premiere_voix(self, seeded_db):
        user = await make_user(seeded_db)
        new_badges = await record_poll_vote(seeded_db, user.id)
        assert [ub.badge.name for ub in new_badges] == ["Première Voix"]


class TestCollectionneur:
    """The collector badge counts unlocks made before the current pass."""

    @pytest.mark.asyncio
    async def test_not_unlocked_in_same_pass(self, seeded_db):
        user = await make_user(seeded_db)
        stats = await ensure_stats(seeded_db, user.id)
        stats.total_orders = 100
        stats.total_spent = Decimal("500")
        stats.longest_streak = 30
        stats.polls_voted = 20
        await seeded_db.flush()

        first_pass = await evaluate_badges(seeded_db, user.id)
        names = {ub.badge.name for ub in first_pass}
        assert len(first_pass) == 13
        assert "Collectionneur" not in names

        second_pass = await evaluate_badges(seeded_db, user.id)
        assert [ub.badge.name for ub in second_pass] == ["Collectionneur"]

    @pytest.mark.asyncio
    async def test_manual_special_badges_never_auto_unlock(self, seeded_db):
        user = await make_user(seeded_db)
        stats = await ensure_stats(seeded_db, user.id)
        stats.total_orders = 1000
        stats.polls_voted = 1000
        await seeded_db.flush()

        await evaluate_badges(seeded_db, user.id)
        await evaluate_badges(seeded_db, user.id)

        names = {ub.badge.name for ub in await list_user_badges(seeded_db, user.id)}
        assert not names & {"Lève-tôt", "Ambassadeur", "Pionnier"}


class TestNoStats:
    @pytest.mark.asyncio
    async def test_user_without_stats_gets_nothing(self, seeded_db):
        user = await make_user(seeded_db)
        assert await evaluate_badges(seeded_db, user.id) == []
