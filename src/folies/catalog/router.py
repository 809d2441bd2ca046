"""Catalog endpoints: fridges, menus, promotions."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from folies.catalog.schemas import (
    DishResponse,
    FridgeListResponse,
    FridgeResponse,
    MenuItemResponse,
    MenuResponse,
    PromotionListResponse,
    PromotionResponse,
)
from folies.catalog.service import (
    find_fridge_by_code,
    get_fridge,
    list_active_fridges,
    list_active_promotions,
    list_fridge_menu,
)
from folies.database import get_session

router = APIRouter(prefix="/api/v1", tags=["Catalog"])


@router.get("/fridges", response_model=FridgeListResponse)
async def list_fridges(db: AsyncSession = Depends(get_session)):
    """Active fridges by name."""
    fridges = await list_active_fridges(db)
    return FridgeListResponse(fridges=[FridgeResponse.model_validate(f) for f in fridges])


@router.get("/fridges/by-code/{code}", response_model=FridgeResponse)
async def get_fridge_by_code(code: str, db: AsyncSession = Depends(get_session)):
    """Onboarding: resolve the code on the fridge door."""
    try:
        fridge = await find_fridge_by_code(db, code)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return FridgeResponse.model_validate(fridge)


@router.get("/fridges/{fridge_id}", response_model=FridgeResponse)
async def get_fridge_endpoint(fridge_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    try:
        fridge = await get_fridge(db, fridge_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return FridgeResponse.model_validate(fridge)


@router.get("/fridges/{fridge_id}/menu", response_model=MenuResponse)
async def get_fridge_menu(fridge_id: uuid.UUID, db: AsyncSession = Depends(get_session)):
    """Dishes currently in stock in a fridge."""
    try:
        await get_fridge(db, fridge_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    items = await list_fridge_menu(db, fridge_id)
    return MenuResponse(
        fridge_id=fridge_id,
        items=[
            MenuItemResponse(
                dish=DishResponse.model_validate(item.dish),
                stock=item.stock,
                promotion_price=item.promotion_price,
                is_new=item.is_new,
                display_order=item.display_order,
            )
            for item in items
        ],
    )


@router.get("/promotions", response_model=PromotionListResponse)
async def list_promotions(
    fridge_id: uuid.UUID | None = Query(None),
    db: AsyncSession = Depends(get_session),
):
    """Current promotions, optionally restricted to those valid in one fridge."""
    promotions = await list_active_promotions(db, fridge_id=fridge_id)
    return PromotionListResponse(promotions=[PromotionResponse.model_validate(p) for p in promotions])
