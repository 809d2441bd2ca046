"""Checkout and unlock flows.

Every write of a flow (loyalty debit, order insert, stock, stats, badges)
happens in the caller's session; the router commits once at the end and
rolls back on any error, so a failed checkout leaves no partial state.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from folies.checkout.pricing import PriceQuote, quote
from folies.checkout.unlock_codes import generate_unlock_code
from folies.config import get_settings
from folies.db.models import Fridge, FridgeInventory, Order, User, UserBadge
from folies.gamification.stats_service import record_order
from folies.users.service import debit_loyalty_points, get_user_by_id

logger = structlog.get_logger()


class PaymentTimeoutError(TimeoutError):
    """Raised when payment authorization does not complete in time."""


class IdempotencyKeyReusedError(Exception):
    """Raised when an idempotency key already belongs to a different order request."""


@dataclass
class CheckoutResult:
    order: Order
    loyalty_points: int
    quote: PriceQuote | None = None
    new_badges: list[UserBadge] = field(default_factory=list)
    replayed: bool = False


async def authorize_payment(ref_prefix: str) -> str:
    """Stand-in for the NFC payment authorization. Returns the payment reference."""
    settings = get_settings()
    try:
        await asyncio.wait_for(
            asyncio.sleep(settings.payment_authorization_delay_seconds),
            timeout=settings.checkout_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        msg = "Le paiement a expiré, veuillez réessayer"
        raise PaymentTimeoutError(msg) from e
    return f"{ref_prefix}-{int(time.time() * 1000)}"


async def find_order_by_idempotency_key(
    db: AsyncSession, user_id: uuid.UUID, idempotency_key: str
) -> Order | None:
    result = await db.execute(
        select(Order).where(
            Order.user_id == user_id,
            Order.idempotency_key == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def find_replayable_order(
    db: AsyncSession,
    user_id: uuid.UUID,
    idempotency_key: str,
    fridge_id: uuid.UUID,
    dish_id: uuid.UUID | None,
) -> Order | None:
    """The order stored under ``idempotency_key``, if it was made for the same fridge and dish.

    Raises:
        IdempotencyKeyReusedError: the key was used for a different request.
    """
    existing = await find_order_by_idempotency_key(db, user_id, idempotency_key)
    if existing is None:
        return None
    if existing.fridge_id != fridge_id or existing.dish_id != dish_id:
        msg = "Cette clé d'idempotence a déjà servi pour une autre commande"
        raise IdempotencyKeyReusedError(msg)
    return existing

async def load_active_fridge(db: AsyncSession, fridge_id: uuid.UUID) -> Fridge:
    result = await db.execute(select(Fridge).where(Fridge.id == fridge_id))
    fridge = result.scalar_one_or_none()
    if fridge is None:
        msg = "Frigo introuvable"
        raise LookupError(msg)
    if fridge.status != "active":
        msg = "Ce frigo n'est pas disponible"
        raise ValueError(msg)
    return fridge


async def _load_inventory(db: AsyncSession, fridge_id: uuid.UUID, dish_id: uuid.UUID) -> FridgeInventory:
    result = await db.execute(
        select(FridgeInventory).where(
            FridgeInventory.fridge_id == fridge_id,
            FridgeInventory.dish_id == dish_id,
        )
    )
    inventory = result.scalar_one_or_none()
    if inventory is None:
        msg = "Ce plat n'est pas proposé dans ce frigo"
        raise LookupError(msg)
    if inventory.stock <= 0:
        msg = "Ce plat est en rupture de stock"
        raise ValueError(msg)
    return inventory


async def _require_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)
    return user


async def create_unlock_order(
    db: AsyncSession,
    user_id: uuid.UUID,
    fridge: Fridge,
    payment_method: str,
    payment_ref: str | None,
    unlock_code: str,
    idempotency_key: str | None = None,
) -> Order:
    """Insert a zero-amount unlock order; collection is detected by the fridge later."""
    now = datetime.now(timezone.utc)
    order = Order(
        user_id=user_id,
        fridge_id=fridge.id,
        dish_id=None,
        quantity=0,
        unit_price=Decimal("0"),
        total_amount=Decimal("0"),
        payment_method=payment_method,
        payment_status="completed",
        payment_ref=payment_ref,
        unlock_code=unlock_code,
        unlock_expires_at=now + timedelta(minutes=get_settings().unlock_code_ttl_minutes),
        is_collected=False,
        collected_at=None,
        points_awarded=0,
        idempotency_key=idempotency_key,
        created_at=now,
        updated_at=now,
    )
    order.fridge = fridge
    order.dish = None
    db.add(order)
    await db.flush()
    return order


async def checkout(
    db: AsyncSession,
    user_id: uuid.UUID,
    fridge_id: uuid.UUID,
    dish_id: uuid.UUID,
    use_points: bool = False,
    idempotency_key: str | None = None,
    redis: object | None = None,
    today: date | None = None,
) -> CheckoutResult:
    """Pay for one dish and unlock the fridge.

    Raises:
        LookupError: unknown user, fridge, or dish not stocked in the fridge.
        ValueError: fridge unavailable, dish out of stock, insufficient points.
        PaymentTimeoutError: payment authorization timed out.
        IdempotencyKeyReusedError: ``idempotency_key`` already names a different order.
    """
    user = await _require_user(db, user_id)

    if idempotency_key:
        existing = await find_replayable_order(db, user_id, idempotency_key, fridge_id, dish_id)
        if existing is not None:
            logger.info("checkout_replayed", user_id=str(user_id), order_id=str(existing.id))
            return CheckoutResult(order=existing, loyalty_points=user.loyalty_points, replayed=True)

    fridge = await load_active_fridge(db, fridge_id)
    inventory = await _load_inventory(db, fridge_id, dish_id)
    dish = inventory.dish

    price_quote = quote(dish.price, inventory.promotion_price, user.loyalty_points, use_points)

    payment_ref = await authorize_payment("NFC")
    unlock_code = await generate_unlock_code(db)

    if price_quote.points_used > 0:
        await debit_loyalty_points(db, user_id, price_quote.points_used)

    now = datetime.now(timezone.utc)
    order = Order(
        user_id=user_id,
        fridge_id=fridge.id,
        dish_id=dish.id,
        quantity=1,
        unit_price=price_quote.base_price,
        total_amount=price_quote.final_price,
        payment_method="nfc",
        payment_status="completed",
        payment_ref=payment_ref,
        unlock_code=unlock_code,
        unlock_expires_at=now + timedelta(minutes=get_settings().unlock_code_ttl_minutes),
        is_collected=True,
        collected_at=now,
        points_awarded=price_quote.points_awarded,
        idempotency_key=idempotency_key,
        created_at=now,
        updated_at=now,
    )
    order.fridge = fridge
    order.dish = dish
    db.add(order)

    await db.execute(
        update(FridgeInventory)
        .where(FridgeInventory.id == inventory.id, FridgeInventory.stock > 0)
        .values(stock=FridgeInventory.stock - 1, updated_at=now)
    )
    await db.flush()

    new_badges = await record_order(db, user_id, price_quote.final_price, today=today, redis=redis)

    user = await _require_user(db, user_id)
    logger.info(
        "checkout_completed",
        user_id=str(user_id),
        order_id=str(order.id),
        fridge_id=str(fridge_id),
        final_price=str(price_quote.final_price),
        points_used=price_quote.points_used,
        badges_unlocked=len(new_badges),
    )
    return CheckoutResult(
        order=order,
        loyalty_points=user.loyalty_points,
        quote=price_quote,
        new_badges=new_badges,
    )


async def quick_pay(
    db: AsyncSession,
    user_id: uuid.UUID,
    fridge_id: uuid.UUID,
    idempotency_key: str | None = None,
) -> CheckoutResult:
    """Unlock the fridge without choosing a dish (Scan&Pay)."""
    user = await _require_user(db, user_id)

    if idempotency_key:
        existing = await find_replayable_order(db, user_id, idempotency_key, fridge_id, None)
        if existing is not None:
            return CheckoutResult(order=existing, loyalty_points=user.loyalty_points, replayed=True)

    fridge = await load_active_fridge(db, fridge_id)
    payment_ref = await authorize_payment("QUICK")
    unlock_code = await generate_unlock_code(db)
    order = await create_unlock_order(
        db,
        user_id,
        fridge,
        payment_method="nfc",
        payment_ref=payment_ref,
        unlock_code=unlock_code,
        idempotency_key=idempotency_key,
    )
    logger.info("quick_unlock_completed", user_id=str(user_id), order_id=str(order.id), fridge_id=str(fridge_id))
    return CheckoutResult(order=order, loyalty_points=user.loyalty_points)


async def get_order(db: AsyncSession, user_id: uuid.UUID, order_id: uuid.UUID) -> Order:
    """Fetch one of the user's orders with dish and fridge attached."""
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.user_id == user_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        msg = "Commande introuvable"
        raise LookupError(msg)
    return order


async def list_recent_orders(db: AsyncSession, user_id: uuid.UUID, limit: int = 10) -> list[Order]:
    """The user's most recent orders."""
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
