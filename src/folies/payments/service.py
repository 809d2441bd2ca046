"""Card provider flows: card registration and card-paid fridge unlock."""

from __future__ import annotations

import time
import uuid
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from folies.checkout.service import create_unlock_order, load_active_fridge
from folies.checkout.unlock_codes import generate_unlock_code
from folies.config import get_settings
from folies.db.models import Order
from folies.payments.paygreen import PayGreenClient
from folies.users.service import get_user_by_id, register_paygreen_card

logger = structlog.get_logger()

REGISTER_CARD_ACTION = "register_card"
SUCCESS_STATUS = "SUCCESSED"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


async def start_card_registration(db: AsyncSession, client: PayGreenClient, user_id: uuid.UUID) -> str:
    """Open a hosted card registration page for the user. Returns its URL.

    Raises:
        LookupError: unknown user.
        PayGreenAPIError / PayGreenUnavailableError: provider failure.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)

    callback_url = f"{get_settings().public_base_url.rstrip('/')}/functions/v1/paygreen-card-callback"
    url = await client.create_card_print(
        order_id=f"CARD_REG_{user_id}_{_epoch_ms()}",
        return_url=callback_url,
        notify_url=callback_url,
        buyer_email=user.email,
        metadata={"user_id": str(user_id), "action": REGISTER_CARD_ACTION},
    )
    logger.info("paygreen_card_registration_started", user_id=str(user_id))
    return url


def is_card_registration_success(payload: dict[str, Any]) -> bool:
    metadata = payload.get("metadata") or {}
    return metadata.get("action") == REGISTER_CARD_ACTION and payload.get("status") == SUCCESS_STATUS


async def handle_card_callback(db: AsyncSession, user_id: uuid.UUID, payload: dict[str, Any]) -> bool:
    """Apply a provider notification. Returns True when a card was registered.

    Notifications other than a successful registration are acknowledged
    without any change.
    """
    if not is_card_registration_success(payload):
        logger.info("paygreen_callback_ignored", user_id=str(user_id), status=payload.get("status"))
        return False

    data = payload.get("data") or {}
    card = data.get("card") or payload.get("card") or {}
    instrument_id = data.get("instrumentId") or payload.get("instrumentId")
    if not instrument_id:
        msg = "Missing instrumentId"
        raise ValueError(msg)

    await register_paygreen_card(
        db,
        user_id,
        instrument_id=str(instrument_id),
        last4=str(card.get("last4") or "0000")[-4:],
        card_type=str(card.get("brand") or "restaurant"),
    )
    return True


async def unlock_with_card(
    db: AsyncSession,
    client: PayGreenClient,
    user_id: uuid.UUID,
    fridge_id: uuid.UUID,
    card_id: str,
) -> Order:
    """Authorize a zero-amount transaction on the card and record the unlock order.

    Raises:
        LookupError: unknown user or fridge.
        ValueError: fridge unavailable.
        PayGreenAPIError / PayGreenUnavailableError: provider failure; nothing is written.
    """
    if await get_user_by_id(db, user_id) is None:
        msg = "Utilisateur non trouvé"
        raise LookupError(msg)
    fridge = await load_active_fridge(db, fridge_id)

    unlock_code = await generate_unlock_code(db)
    transaction_id = await client.create_cash_transaction(
        instrument_id=card_id,
        order_id=f"UNLOCK_{user_id}_{_epoch_ms()}",
        amount=0,
        metadata={
            "user_id": str(user_id),
            "fridge_id": str(fridge_id),
            "unlock_code": unlock_code,
            "action": "unlock",
        },
    )

    order = await create_unlock_order(
        db,
        user_id,
        fridge,
        payment_method="paygreen",
        payment_ref=transaction_id or None,
        unlock_code=unlock_code,
    )
    logger.info("paygreen_unlock_completed", user_id=str(user_id), order_id=str(order.id))
    return order
