"""Shared test fixtures.

Each test gets its own SQLite database (aiosqlite) built from the ORM
metadata; the app's session, Redis and PayGreen dependencies are
overridden so no external service is needed.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

os.environ.setdefault("FOLIES_PAYMENT_AUTHORIZATION_DELAY_SECONDS", "0")
os.environ.setdefault("FOLIES_SEED_BADGES_ON_STARTUP", "false")
os.environ.setdefault("FOLIES_LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from folies.auth.jwt import create_access_token
from folies.config import get_settings
from folies.database import get_session
from folies.db import models  # noqa: F401
from folies.db.base import Base
from folies.db.models import Dish, Fridge, FridgeInventory, Poll, User
from folies.gamification.seed import seed_badges
from folies.main import create_app
from folies.redis_client import get_redis_dep

get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema in a throwaway SQLite file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'folies_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """Session with the badge catalog seeded."""
    await seed_badges(db_session)
    return db_session


@pytest.fixture
def app(session_factory):
    """App with the database dependency pointed at the test database."""
    application = create_app()

    async def _test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def _no_redis() -> None:
        return None

    application.dependency_overrides[get_session] = _test_session
    application.dependency_overrides[get_redis_dep] = _no_redis
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app (no lifespan: DB and Redis are overridden)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


async def make_user(
    db: AsyncSession,
    email: str = "client@folies.fr",
    loyalty_points: int = 0,
    is_admin: bool = False,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        loyalty_points=loyalty_points,
        loyalty_tier="bronze",
        is_admin=is_admin,
        default_payment_method="nfc",
    )
    db.add(user)
    await db.commit()
    return user


async def make_fridge(db: AsyncSession, code: str = "PARIS01", status: str = "active") -> Fridge:
    fridge = Fridge(code=code, name=f"Frigo {code}", location="Hall A", address="1 rue des Folies", status=status)
    db.add(fridge)
    await db.commit()
    return fridge


async def make_dish(db: AsyncSession, name: str = "Poke saumon", price: str = "10.00") -> Dish:
    dish = Dish(name=name, description="", price=Decimal(price), category="lunch")
    db.add(dish)
    await db.commit()
    return dish


async def stock_dish(
    db: AsyncSession,
    fridge: Fridge,
    dish: Dish,
    stock: int = 5,
    promotion_price: str | None = None,
    display_order: int = 0,
) -> FridgeInventory:
    row = FridgeInventory(
        fridge_id=fridge.id,
        dish_id=dish.id,
        stock=stock,
        promotion_price=Decimal(promotion_price) if promotion_price else None,
        display_order=display_order,
    )
    db.add(row)
    await db.commit()
    return row


async def make_poll(
    db: AsyncSession,
    dishes: list[Dish],
    status: str = "active",
    starts_in: timedelta = timedelta(days=-1),
    ends_in: timedelta = timedelta(days=6),
) -> Poll:
    now = datetime.now(timezone.utc)
    poll = Poll(
        title="Plat de la semaine",
        dish_1_id=dishes[0].id,
        dish_2_id=dishes[1].id,
        dish_3_id=dishes[2].id,
        status=status,
        start_date=now + starts_in,
        end_date=now + ends_in,
        created_at=now,
    )
    db.add(poll)
    await db.commit()
    return poll


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
