"""User profile router: all /api/v1/users/me endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from folies.auth.dependencies import get_current_user
from folies.database import get_session
from folies.db.models import User
from folies.users.schemas import (
    MealVoucherCardCreateRequest,
    MealVoucherCardListResponse,
    MealVoucherCardResponse,
    PaymentMethodRequest,
    ProfileUpdateRequest,
    UserResponse,
)
from folies.users.service import (
    add_meal_voucher_card,
    delete_meal_voucher_card,
    list_meal_voucher_cards,
    remove_paygreen_card,
    set_default_meal_voucher_card,
    set_default_payment_method,
    update_profile,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    """Own profile with loyalty balance and payment preferences."""
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update phone and notification preferences."""
    try:
        user = await update_profile(
            db,
            user,
            phone=body.phone,
            notification_preferences=body.notification_preferences,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return UserResponse.model_validate(user)


# ---------------------------------------------------------------------------
# Payment preferences
# ---------------------------------------------------------------------------


@router.put("/me/payment-method", response_model=UserResponse)
async def update_payment_method(
    body: PaymentMethodRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Choose NFC or the registered PayGreen card."""
    try:
        user = await set_default_payment_method(db, user, body.method)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    logger.info("payment_method_changed", user_id=str(user.id), method=body.method)
    return UserResponse.model_validate(user)


@router.delete("/me/paygreen-card", response_model=UserResponse)
async def delete_paygreen_card(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Forget the registered card; NFC becomes the default again."""
    user = await remove_paygreen_card(db, user)
    await db.commit()
    return UserResponse.model_validate(user)


# ---------------------------------------------------------------------------
# Meal voucher cards
# ---------------------------------------------------------------------------


@router.get("/me/meal-vouchers", response_model=MealVoucherCardListResponse)
async def list_cards(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MealVoucherCardListResponse:
    cards = await list_meal_voucher_cards(db, user.id)
    return MealVoucherCardListResponse(cards=[MealVoucherCardResponse.model_validate(c) for c in cards])


@router.post("/me/meal-vouchers", response_model=MealVoucherCardResponse, status_code=201)
async def add_card(
    body: MealVoucherCardCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MealVoucherCardResponse:
    """Add a meal voucher card; only its last four digits are kept."""
    try:
        card = await add_meal_voucher_card(db, user.id, body.card_name, body.card_type, body.card_number)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MealVoucherCardResponse.model_validate(card)


@router.post("/me/meal-vouchers/{card_id}/default", response_model=MealVoucherCardResponse)
async def make_default_card(
    card_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MealVoucherCardResponse:
    try:
        card = await set_default_meal_voucher_card(db, user.id, card_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
    return MealVoucherCardResponse.model_validate(card)


@router.delete("/me/meal-vouchers/{card_id}", status_code=204)
async def delete_card(
    card_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    try:
        await delete_meal_voucher_card(db, user.id, card_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    await db.commit()
