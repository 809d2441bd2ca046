"""Checkout API: pay for a dish, quick unlock, order history."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.dependencies import get_current_user
from folies.checkout.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    OrderResponse,
    PriceQuoteResponse,
    QuickPayRequest,
)
from folies.checkout.service import (
    CheckoutResult,
    IdempotencyKeyReusedError,
    PaymentTimeoutError,
    checkout,
    find_replayable_order,
    get_order,
    list_recent_orders,
    quick_pay,
)
from folies.database import get_session
from folies.db.models import User
from folies.gamification.schemas import unlocked_badge_response
from folies.redis_client import get_redis_dep

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Checkout"])


def _checkout_response(result: CheckoutResult) -> CheckoutResponse:
    quote = None
    if result.quote is not None:
        quote = PriceQuoteResponse(
            base_price=result.quote.base_price,
            max_points_usable=result.quote.max_points_usable,
            points_used=result.quote.points_used,
            points_discount=result.quote.points_discount,
            final_price=result.quote.final_price,
            points_awarded=result.quote.points_awarded,
        )
    return CheckoutResponse(
        order=OrderResponse.model_validate(result.order),
        quote=quote,
        new_badges=[unlocked_badge_response(ub) for ub in result.new_badges],
        loyalty_points=result.loyalty_points,
        replayed=result.replayed,
    )


async def _replay_after_conflict(
    db: AsyncSession,
    user: User,
    idempotency_key: str | None,
    fridge_id: uuid.UUID,
    dish_id: uuid.UUID | None,
) -> CheckoutResponse:
    """A concurrent request with the same key won the insert: answer with its order."""
    await db.refresh(user)
    logger.warning("checkout_conflict", user_id=str(user.id), idempotency_key=idempotency_key)
    if idempotency_key:
        try:
            existing = await find_replayable_order(db, user.id, idempotency_key, fridge_id, dish_id)
        except IdempotencyKeyReusedError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        if existing is not None:
            return _checkout_response(
                CheckoutResult(order=existing, loyalty_points=user.loyalty_points, replayed=True)
            )
    raise HTTPException(status_code=409, detail="Conflit, veuillez réessayer")


@router.post("/checkout", response_model=CheckoutResponse)
async def checkout_endpoint(
    body: CheckoutRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=128),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object | None = Depends(get_redis_dep),
) -> CheckoutResponse:
    """Pay for a dish (optionally with loyalty points) and unlock the fridge."""
    try:
        result = await checkout(
            db,
            user.id,
            body.fridge_id,
            body.dish_id,
            use_points=body.use_points,
            idempotency_key=idempotency_key,
            redis=redis,
        )
        await db.commit()
    except IdempotencyKeyReusedError as e:
        await db.rollback()
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PaymentTimeoutError as e:
        await db.rollback()
        raise HTTPException(status_code=504, detail=str(e)) from e
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IntegrityError:
        await db.rollback()
        return await _replay_after_conflict(db, user, idempotency_key, body.fridge_id, body.dish_id)
    return _checkout_response(result)


@router.post("/quick-pay", response_model=CheckoutResponse)
async def quick_pay_endpoint(
    body: QuickPayRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=128),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CheckoutResponse:
    """Unlock the fridge without choosing a dish; items taken are billed by the fridge."""
    try:
        result = await quick_pay(db, user.id, body.fridge_id, idempotency_key=idempotency_key)
        await db.commit()
    except IdempotencyKeyReusedError as e:
        await db.rollback()
        raise HTTPException(status_code=409, detail=str(e)) from e
    except PaymentTimeoutError as e:
        await db.rollback()
        raise HTTPException(status_code=504, detail=str(e)) from e
    except LookupError as e:
        await db.rollback()
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        await db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e
    except IntegrityError:
        await db.rollback()
        return await _replay_after_conflict(db, user, idempotency_key, body.fridge_id, None)
    return _checkout_response(result)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    limit: int = Query(10, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> OrderListResponse:
    """Most recent orders of the current user."""
    orders = await list_recent_orders(db, user.id, limit=limit)
    return OrderListResponse(orders=[OrderResponse.model_validate(o) for o in orders])


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order_endpoint(
    order_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> OrderResponse:
    """Order confirmation with the unlock code."""
    try:
        order = await get_order(db, user.id, order_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return OrderResponse.model_validate(order)
