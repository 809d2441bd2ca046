"""Catalog reads: fridges, menus and promotions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from folies.db.models import Fridge, FridgeInventory, Promotion


async def list_active_fridges(db: AsyncSession) -> list[Fridge]:
    result = await db.execute(
        select(Fridge).where(Fridge.status == "active").order_by(Fridge.name)
    )
    return list(result.scalars().all())


async def get_fridge(db: AsyncSession, fridge_id: uuid.UUID) -> Fridge:
    """Raises LookupError for an unknown fridge."""
    result = await db.execute(select(Fridge).where(Fridge.id == fridge_id))
    fridge = result.scalar_one_or_none()
    if fridge is None:
        msg = "Frigo introuvable"
        raise LookupError(msg)
    return fridge


async def find_fridge_by_code(db: AsyncSession, code: str) -> Fridge:
    """Resolve the code printed on a fridge door (case-insensitive) to an active fridge."""
    result = await db.execute(
        select(Fridge).where(
            Fridge.code == code.strip().upper(),
            Fridge.status == "active",
        )
    )
    fridge = result.scalar_one_or_none()
    if fridge is None:
        msg = "Code frigo introuvable ou inactif. Vérifiez le code affiché sur la porte."
        raise LookupError(msg)
    return fridge


async def list_fridge_menu(db: AsyncSession, fridge_id: uuid.UUID) -> list[FridgeInventory]:
    """In-stock dishes of a fridge in display order, dish attached."""
    result = await db.execute(
        select(FridgeInventory)
        .where(FridgeInventory.fridge_id == fridge_id, FridgeInventory.stock > 0)
        .order_by(FridgeInventory.display_order)
    )
    return list(result.scalars().all())


def applies_to_fridge(promotion: Promotion, fridge_id: uuid.UUID | None) -> bool:
    """Promotions without a fridge list apply everywhere."""
    if not promotion.fridge_ids or fridge_id is None:
        return True
    return str(fridge_id) in {str(f) for f in promotion.fridge_ids}


async def list_active_promotions(
    db: AsyncSession,
    fridge_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> list[Promotion]:
    """Active, not yet ended promotions, newest first, optionally for one fridge."""
    if now is None:
        now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Promotion)
        .where(Promotion.is_active.is_(True), Promotion.end_date >= now)
        .order_by(Promotion.created_at.desc())
    )
    return [p for p in result.scalars().all() if applies_to_fridge(p, fridge_id)]
