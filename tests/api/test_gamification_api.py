"""Badge catalog, stats, levels and XP conversion endpoints."""

from __future__ import annotations

import pytest

from folies.gamification.stats_service import ensure_stats
from tests.conftest import auth_headers, make_dish, make_fridge, make_user, stock_dish


async def _with_xp(db, xp: int, points: int = 0):
    user = await make_user(db, loyalty_points=points)
    stats = await ensure_stats(db, user.id)
    stats.total_xp = xp
    await db.commit()
    return user


class TestCatalog:
    @pytest.mark.asyncio
    async def test_list_badges(self, client, seeded_db):
        response = await client.get("/api/v1/badges")
        assert response.status_code == 200
        badges = response.json()["badges"]
        assert len(badges) == 17
        assert badges[0]["name"] == "Première Bouchée"
        assert {b["category"] for b in badges} == {"orders", "spending", "streak", "voting", "special"}


class TestLevels:
    @pytest.mark.asyncio
    async def test_level_info(self, client):
        response = await client.get("/api/v1/levels/3")
        assert response.status_code == 200
        assert response.json() == {
            "level": 3,
            "xp_required": 900,
            "previous_level_xp": 400,
            "level_up_reward": 150,
        }

    @pytest.mark.asyncio
    async def test_level_zero_rejected(self, client):
        response = await client.get("/api/v1/levels/0")
        assert response.status_code == 422


class TestMyStats:
    @pytest.mark.asyncio
    async def test_fresh_user_gets_zeroed_stats(self, client, seeded_db):
        user = await make_user(seeded_db)
        response = await client.get("/api/v1/users/me/stats", headers=auth_headers(user))
        assert response.status_code == 200
        data = response.json()
        assert data["total_xp"] == 0
        assert data["level"] == 1
        assert data["total_orders"] == 0
        assert data["progress"]["next_level_xp"] == 100
        assert data["progress"]["percent"] == 0


class TestMyBadges:
    @pytest.mark.asyncio
    async def test_progress_after_first_order(self, client, seeded_db):
        user = await make_user(seeded_db)
        fridge = await make_fridge(seeded_db)
        dish = await make_dish(seeded_db)
        await stock_dish(seeded_db, fridge, dish)
        headers = auth_headers(user)
        await client.post(
            "/api/v1/checkout", json={"fridge_id": str(fridge.id), "dish_id": str(dish.id)}, headers=headers
        )

        response = await client.get("/api/v1/users/me/badges", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_available"] == 17
        assert data["total_unlocked"] == 1
        by_name = {entry["badge"]["name"]: entry for entry in data["badges"]}
        assert by_name["Première Bouchée"]["unlocked"] is True
        assert by_name["Première Bouchée"]["progress_percent"] == 100.0
        assert by_name["Habitué"]["unlocked"] is False
        assert by_name["Habitué"]["progress"] == 1
        assert by_name["Habitué"]["progress_percent"] == pytest.approx(10.0)


class TestConvertXP:
    @pytest.mark.asyncio
    async def test_conversion(self, client, seeded_db):
        user = await _with_xp(seeded_db, 250, points=4)
        response = await client.post(
            "/api/v1/users/me/xp/convert", json={"xp_amount": 200}, headers=auth_headers(user)
        )
        assert response.status_code == 200
        assert response.json() == {
            "xp_converted": 200,
            "points_credited": 20,
            "total_xp": 50,
            "loyalty_points": 24,
        }

    @pytest.mark.asyncio
    async def test_below_minimum_is_400(self, client, seeded_db):
        user = await _with_xp(seeded_db, 250)
        response = await client.post(
            "/api/v1/users/me/xp/convert", json={"xp_amount": 99}, headers=auth_headers(user)
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_more_than_balance_is_400(self, client, seeded_db):
        user = await _with_xp(seeded_db, 150)
        response = await client.post(
            "/api/v1/users/me/xp/convert", json={"xp_amount": 200}, headers=auth_headers(user)
        )
        assert response.status_code == 400
        stats = await client.get("/api/v1/users/me/stats", headers=auth_headers(user))
        assert stats.json()["total_xp"] == 150

    @pytest.mark.asyncio
    async def test_non_positive_amount_is_422(self, client, seeded_db):
        user = await make_user(seeded_db)
        response = await client.post(
            "/api/v1/users/me/xp/convert", json={"xp_amount": 0}, headers=auth_headers(user)
        )
        assert response.status_code == 422
