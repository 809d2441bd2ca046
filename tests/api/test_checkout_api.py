"""Checkout, quick unlock and order history endpoints."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from folies.config import get_settings
from folies.db.models import FridgeInventory, Order, User
from tests.conftest import auth_headers, make_dish, make_fridge, make_user, stock_dish


async def _setup(db, points: int = 50, stock: int = 5):
    user = await make_user(db, loyalty_points=points)
    fridge = await make_fridge(db)
    dish = await make_dish(db, price="10.00")
    inventory = await stock_dish(db, fridge, dish, stock=stock, promotion_price="8.00")
    return user, fridge, dish, inventory


class TestCheckoutEndpoint:
    """POST /api/v1/checkout"""

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        response = await client.post(
            "/api/v1/checkout", json={"fridge_id": str(uuid.uuid4()), "dish_id": str(uuid.uuid4())}
        )
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_pay_with_points(self, client, seeded_db):
        user, fridge, dish, inventory = await _setup(seeded_db)

        response = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(fridge.id), "dish_id": str(dish.id), "use_points": True},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["order"]["total_amount"]) == Decimal("3.00")
        assert data["order"]["dish"]["name"] == dish.name
        assert data["order"]["fridge"]["id"] == str(fridge.id)
        assert len(data["order"]["unlock_code"]) == 6
        assert data["quote"]["points_used"] == 50
        assert Decimal(data["quote"]["points_discount"]) == Decimal("5.00")
        assert data["loyalty_points"] == 0
        assert data["replayed"] is False
        assert [b["name"] for b in data["new_badges"]] == ["Première Bouchée"]

        points = await seeded_db.scalar(select(User.loyalty_points).where(User.id == user.id))
        stock = await seeded_db.scalar(select(FridgeInventory.stock).where(FridgeInventory.id == inventory.id))
        assert points == 0
        assert stock == 4

    @pytest.mark.asyncio
    async def test_idempotency_key_replays(self, client, seeded_db):
        user, fridge, dish, _ = await _setup(seeded_db)
        body = {"fridge_id": str(fridge.id), "dish_id": str(dish.id), "use_points": True}
        headers = {**auth_headers(user), "Idempotency-Key": "tap-42"}

        first = await client.post("/api/v1/checkout", json=body, headers=headers)
        second = await client.post("/api/v1/checkout", json=body, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["order"]["id"] == first.json()["order"]["id"]
        assert await seeded_db.scalar(select(func.count(Order.id))) == 1

    @pytest.mark.asyncio
    async def test_quick_pay_key_reused_on_checkout_is_409(self, client, seeded_db):
        user, fridge, dish, inventory = await _setup(seeded_db)
        user_id, inventory_id = user.id, inventory.id
        headers = {**auth_headers(user), "Idempotency-Key": "tap-43"}

        unlocked = await client.post("/api/v1/quick-pay", json={"fridge_id": str(fridge.id)}, headers=headers)
        response = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(fridge.id), "dish_id": str(dish.id), "use_points": True},
            headers=headers,
        )

        assert unlocked.status_code == 200
        assert response.status_code == 409
        assert "idempotence" in response.json()["detail"]
        points = await seeded_db.scalar(select(User.loyalty_points).where(User.id == user_id))
        stock = await seeded_db.scalar(select(FridgeInventory.stock).where(FridgeInventory.id == inventory_id))
        assert points == 50
        assert stock == 5
        assert await seeded_db.scalar(select(func.count(Order.id))) == 1

    @pytest.mark.asyncio
    async def test_out_of_stock_is_400(self, client, seeded_db):
        user, fridge, dish, _ = await _setup(seeded_db, stock=0)
        response = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(fridge.id), "dish_id": str(dish.id)},
            headers=auth_headers(user),
        )
        assert response.status_code == 400
        assert "rupture" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_unknown_fridge_is_404(self, client, seeded_db):
        user = await make_user(seeded_db)
        response = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(uuid.uuid4()), "dish_id": str(uuid.uuid4())},
            headers=auth_headers(user),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_payment_timeout_is_504(self, client, seeded_db, monkeypatch):
        user, fridge, dish, _ = await _setup(seeded_db)
        settings = get_settings()
        monkeypatch.setattr(settings, "payment_authorization_delay_seconds", 1.0)
        monkeypatch.setattr(settings, "checkout_timeout_seconds", 0.01)

        response = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(fridge.id), "dish_id": str(dish.id), "use_points": True},
            headers=auth_headers(user),
        )

        assert response.status_code == 504
        points = await seeded_db.scalar(select(User.loyalty_points).where(User.id == user.id))
        assert points == 50
        assert await seeded_db.scalar(select(func.count(Order.id))) == 0

    @pytest.mark.asyncio
    async def test_invalid_body_is_422(self, client, seeded_db):
        user = await make_user(seeded_db)
        response = await client.post("/api/v1/checkout", json={"fridge_id": "nope"}, headers=auth_headers(user))
        assert response.status_code == 422
        assert response.json()["detail"] == "Données invalides"


class TestQuickPayEndpoint:
    @pytest.mark.asyncio
    async def test_unlock_without_dish(self, client, seeded_db):
        user = await make_user(seeded_db)
        fridge = await make_fridge(seeded_db)

        response = await client.post(
            "/api/v1/quick-pay", json={"fridge_id": str(fridge.id)}, headers=auth_headers(user)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["order"]["dish"] is None
        assert data["order"]["is_collected"] is False
        assert data["order"]["quantity"] == 0
        assert data["quote"] is None

    @pytest.mark.asyncio
    async def test_fridge_in_maintenance_is_400(self, client, seeded_db):
        user = await make_user(seeded_db)
        fridge = await make_fridge(seeded_db, status="maintenance")
        response = await client.post(
            "/api/v1/quick-pay", json={"fridge_id": str(fridge.id)}, headers=auth_headers(user)
        )
        assert response.status_code == 400


class TestOrders:
    @pytest.mark.asyncio
    async def test_history_and_detail(self, client, seeded_db):
        user, fridge, dish, _ = await _setup(seeded_db)
        headers = auth_headers(user)
        created = await client.post(
            "/api/v1/checkout", json={"fridge_id": str(fridge.id), "dish_id": str(dish.id)}, headers=headers
        )
        order_id = created.json()["order"]["id"]

        listing = await client.get("/api/v1/orders", headers=headers)
        assert listing.status_code == 200
        assert [o["id"] for o in listing.json()["orders"]] == [order_id]

        detail = await client.get(f"/api/v1/orders/{order_id}", headers=headers)
        assert detail.status_code == 200
        assert detail.json()["unlock_code"] == created.json()["order"]["unlock_code"]

    @pytest.mark.asyncio
    async def test_other_users_order_is_404(self, client, seeded_db):
        user, fridge, dish, _ = await _setup(seeded_db)
        other = await make_user(seeded_db, email="autre@folies.fr")
        created = await client.post(
            "/api/v1/checkout",
            json={"fridge_id": str(fridge.id), "dish_id": str(dish.id)},
            headers=auth_headers(user),
        )
        order_id = created.json()["order"]["id"]

        response = await client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(other))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client, seeded_db):
        user = await make_user(seeded_db)
        response = await client.get("/api/v1/orders?limit=0", headers=auth_headers(user))
        assert response.status_code == 422
