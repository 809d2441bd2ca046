"""User profile business logic: loyalty balance, payment preferences, meal vouchers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select, update

from folies.db.models import DEFAULT_PAYMENT_METHODS, MealVoucherCard, User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

MEAL_VOUCHER_TYPES = ("swile", "conecs", "edenred", "sodexo", "up", "autre")


class InsufficientPointsError(ValueError):
    """Raised when a loyalty debit would take the balance below zero."""


class CardValidationError(ValueError):
    """Raised when meal voucher card input is incomplete or malformed."""


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    """Fetch a user profile by id."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def ensure_profile(db: AsyncSession, user_id: uuid.UUID, email: str) -> tuple[User, bool]:
    """
    Get the user's profile or create it with an empty loyalty balance.

    Returns:
        Tuple of (user, created) where created is True if a new profile was made.
    """
    user = await get_user_by_id(db, user_id)
    if user is not None:
        return user, False

    user = User(
        id=user_id,
        email=email,
        loyalty_points=0,
        loyalty_tier="bronze",
        is_admin=False,
        default_payment_method="nfc",
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.flush()
    logger.info("profile_created", user_id=str(user_id))
    return user, True


# ---------------------------------------------------------------------------
# Loyalty balance
# ---------------------------------------------------------------------------


async def credit_loyalty_points(db: AsyncSession, user_id: uuid.UUID, points: int) -> int:
    """
    Atomically add loyalty points. Returns the new balance.

    Raises:
        LookupError: If the profile does not exist.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(loyalty_points=User.loyalty_points + points)
    )
    if result.rowcount == 0:  # type: ignore[attr-defined]
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)
    user = await get_user_by_id(db, user_id)
    return user.loyalty_points if user else 0


async def debit_loyalty_points(db: AsyncSession, user_id: uuid.UUID, points: int) -> int:
    """
    Atomically remove loyalty points, never going below zero. Returns the new balance.

    Raises:
        InsufficientPointsError: If the balance at write time is below ``points``.
        LookupError: If the profile does not exist.
    """
    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.loyalty_points >= points)
        .values(loyalty_points=User.loyalty_points - points)
    )
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)
    if result.rowcount == 0:  # type: ignore[attr-defined]
        msg = "Points de fidélité insuffisants"
        raise InsufficientPointsError(msg)
    return user.loyalty_points


# ---------------------------------------------------------------------------
# Payment preferences
# ---------------------------------------------------------------------------


async def set_default_payment_method(db: AsyncSession, user: User, method: str) -> User:
    """
    Choose NFC or the registered PayGreen card as the default payment method.

    Raises:
        ValueError: Unknown method, or PayGreen selected without a registered card.
    """
    if method not in DEFAULT_PAYMENT_METHODS:
        msg = f"Unknown payment method: {method}"
        raise ValueError(msg)
    if method == "paygreen" and not user.paygreen_card_id:
        msg = "Aucune carte PayGreen enregistrée"
        raise ValueError(msg)
    user.default_payment_method = method
    await db.flush()
    return user


async def register_paygreen_card(
    db: AsyncSession,
    user_id: uuid.UUID,
    instrument_id: str,
    last4: str,
    card_type: str,
) -> User:
    """
    Store the provider card reference and make it the default payment method.

    Raises:
        LookupError: If the profile does not exist.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)
    user.paygreen_card_id = instrument_id
    user.paygreen_card_last4 = last4
    user.paygreen_card_type = card_type
    user.default_payment_method = "paygreen"
    await db.flush()
    logger.info("paygreen_card_registered", user_id=str(user_id), last4=last4, card_type=card_type)
    return user


async def remove_paygreen_card(db: AsyncSession, user: User) -> User:
    """Forget the registered card and fall back to NFC."""
    user.paygreen_card_id = None
    user.paygreen_card_last4 = None
    user.paygreen_card_type = None
    user.default_payment_method = "nfc"
    await db.flush()
    return user


# ---------------------------------------------------------------------------
# Meal voucher cards
# ---------------------------------------------------------------------------


async def list_meal_voucher_cards(db: AsyncSession, user_id: uuid.UUID) -> list[MealVoucherCard]:
    """Cards on file, default first, then newest first."""
    result = await db.execute(
        select(MealVoucherCard)
        .where(MealVoucherCard.user_id == user_id)
        .order_by(MealVoucherCard.is_default.desc(), MealVoucherCard.created_at.desc())
    )
    return list(result.scalars().all())


async def add_meal_voucher_card(
    db: AsyncSession,
    user_id: uuid.UUID,
    card_name: str,
    card_type: str,
    card_number: str,
) -> MealVoucherCard:
    """
    Add a meal voucher card. The first card on file becomes the default.

    Raises:
        CardValidationError: Missing name/number, number shorter than 4, unknown type.
    """
    card_name = card_name.strip()
    card_number = card_number.strip()
    if not card_name or not card_number:
        msg = "Veuillez remplir tous les champs"
        raise CardValidationError(msg)
    if len(card_number) < 4:
        msg = "Veuillez entrer au moins 4 chiffres"
        raise CardValidationError(msg)
    if card_type not in MEAL_VOUCHER_TYPES:
        msg = f"Type de carte inconnu : {card_type}"
        raise CardValidationError(msg)

    existing = await list_meal_voucher_cards(db, user_id)
    now = datetime.now(timezone.utc)
    card = MealVoucherCard(
        user_id=user_id,
        card_name=card_name,
        card_type=card_type,
        card_number=card_number[-4:],
        is_default=not existing,
        created_at=now,
        updated_at=now,
    )
    db.add(card)
    await db.flush()
    return card


async def _get_owned_card(db: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID) -> MealVoucherCard:
    result = await db.execute(
        select(MealVoucherCard).where(
            MealVoucherCard.id == card_id,
            MealVoucherCard.user_id == user_id,
        )
    )
    card = result.scalar_one_or_none()
    if card is None:
        msg = "Carte introuvable"
        raise LookupError(msg)
    return card


async def set_default_meal_voucher_card(
    db: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID
) -> MealVoucherCard:
    """Make ``card_id`` the only default card of the user."""
    card = await _get_owned_card(db, user_id, card_id)
    now = datetime.now(timezone.utc)
    await db.execute(
        update(MealVoucherCard)
        .where(MealVoucherCard.user_id == user_id)
        .values(is_default=False, updated_at=now)
    )
    card.is_default = True
    card.updated_at = now
    await db.flush()
    return card


async def delete_meal_voucher_card(db: AsyncSession, user_id: uuid.UUID, card_id: uuid.UUID) -> None:
    """Remove a card on file."""
    card = await _get_owned_card(db, user_id, card_id)
    await db.delete(card)
    await db.flush()


NOTIFICATION_PREFERENCE_KEYS = ("restock", "promotions", "games")


async def update_profile(
    db: AsyncSession,
    user: User,
    phone: str | None = None,
    notification_preferences: dict[str, bool] | None = None,
) -> User:
    """Update contact phone and notification preferences (merged key by key).

    Raises:
        ValueError: unknown notification preference.
    """
    if phone is not None:
        user.phone = phone.strip() or None
    if notification_preferences is not None:
        unknown = set(notification_preferences) - set(NOTIFICATION_PREFERENCE_KEYS)
        if unknown:
            msg = f"Préférence inconnue : {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        user.notification_preferences = {**(user.notification_preferences or {}), **notification_preferences}
    user.last_active = datetime.now(timezone.utc)
    await db.flush()
    return user
