"""Card provider proxy endpoints under /functions/v1.

These answer the web app and the provider's hosted pages, so errors use
the ``{"error": ...}`` body those callers read, not the API's ``detail``.
OPTIONS preflights are answered by ProviderCORSMiddleware.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from folies.config import get_settings
from folies.database import get_session
from folies.payments.paygreen import (
    PayGreenAPIError,
    PayGreenClient,
    PayGreenUnavailableError,
    get_paygreen_client,
)
from folies.payments.service import handle_card_callback, start_card_registration, unlock_with_card

logger = structlog.get_logger()

router = APIRouter(prefix="/functions/v1", tags=["PayGreen"])


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:  # noqa: ANN401
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _parse_uuid(value: Any) -> uuid.UUID | None:  # noqa: ANN401
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


@router.post("/paygreen-register-card")
async def register_card(
    request: Request,
    db: AsyncSession = Depends(get_session),
    client: PayGreenClient = Depends(get_paygreen_client),
) -> JSONResponse:
    """Return the hosted card registration URL for a user."""
    body = await _json_body(request)
    if body is None:
        return _error(400, "Invalid JSON in request body")
    if not body.get("user_id"):
        return _error(400, "user_id is required")
    user_id = _parse_uuid(body["user_id"])
    if user_id is None:
        return _error(400, "user_id is invalid")

    if not client.configured:
        return _error(
            500,
            "PayGreen n'est pas encore configuré. Veuillez ajouter les clés API PayGreen à la configuration.",
            config_needed=True,
        )

    try:
        redirect_url = await start_card_registration(db, client, user_id)
    except LookupError as e:
        return _error(404, str(e))
    except PayGreenAPIError as e:
        return _error(e.status_code, "Erreur lors de la communication avec PayGreen", details=e.details)
    except PayGreenUnavailableError as e:
        return _error(503, "Impossible de contacter l'API PayGreen", details=str(e))

    return JSONResponse({"success": True, "redirect_url": redirect_url})


@router.post("/paygreen-card-callback")
async def card_callback(
    request: Request,
    db: AsyncSession = Depends(get_session),
):
    """Provider notification: store the card on a successful registration."""
    payload = await _json_body(request)
    if payload is None:
        return _error(400, "Invalid JSON in request body")

    metadata = payload.get("metadata") or {}
    if not metadata.get("user_id"):
        return _error(400, "Missing user_id in metadata")
    user_id = _parse_uuid(metadata["user_id"])
    if user_id is None:
        return _error(400, "Invalid user_id in metadata")

    try:
        registered = await handle_card_callback(db, user_id, payload)
        await db.commit()
    except LookupError as e:
        await db.rollback()
        return _error(404, str(e))
    except ValueError as e:
        await db.rollback()
        return _error(400, str(e))

    if not registered:
        return JSONResponse({"success": True, "message": "Callback received"})

    redirect_url = f"{get_settings().frontend_base_url.rstrip('/')}/profile?card_registered=true"
    return HTMLResponse(
        f'<html><head><meta http-equiv="refresh" content="0; url={redirect_url}"></head>'
        "<body>Carte enregistrée avec succès. Redirection...</body></html>"
    )


@router.post("/paygreen-unlock")
async def card_unlock(
    request: Request,
    db: AsyncSession = Depends(get_session),
    client: PayGreenClient = Depends(get_paygreen_client),
) -> JSONResponse:
    """Unlock a fridge with a zero-amount authorization on the registered card."""
    body = await _json_body(request) or {}
    user_id = _parse_uuid(body.get("user_id")) if body.get("user_id") else None
    fridge_id = _parse_uuid(body.get("fridge_id")) if body.get("fridge_id") else None
    card_id = body.get("card_id")
    if user_id is None or fridge_id is None or not card_id:
        return _error(400, "Missing required parameters")

    if not client.configured:
        return _error(500, "PayGreen configuration missing")

    try:
        order = await unlock_with_card(db, client, user_id, fridge_id, str(card_id))
        await db.commit()
    except LookupError as e:
        await db.rollback()
        return _error(404, str(e))
    except PayGreenAPIError as e:
        await db.rollback()
        return _error(e.status_code, "Erreur lors du paiement PayGreen", details=e.details)
    except PayGreenUnavailableError as e:
        await db.rollback()
        return _error(503, "Impossible de contacter l'API PayGreen", details=str(e))
    except ValueError as e:
        await db.rollback()
        return _error(400, str(e))

    return JSONResponse({"success": True, "order_id": str(order.id), "unlock_code": order.unlock_code})
