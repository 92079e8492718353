from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.errors import http_error
from app.core.db import get_session
from app.schemas.product import EffectiveStockOut, EffectiveStockRequest, LowStockOut, StockMovementOut
from app.services.catalog import list_low_stock, list_stock_movements
from app.services.orders import effective_stock_for_order
from app.services.reservations import effective_stock
from app.services.stock_ledger import resolve_variant


router = APIRouter()


@router.post("/effective", response_model=EffectiveStockOut)
async def effective_stock_endpoint(
    data: EffectiveStockRequest,
    session: AsyncSession = Depends(get_session),
) -> EffectiveStockOut:
    try:
        variant = await resolve_variant(
            session, product_id=data.product_id, color=data.selected_color, size=data.selected_size
        )
        if data.order_id is not None:
            quantity = await effective_stock_for_order(
                session,
                order_id=data.order_id,
                product_id=data.product_id,
                color=data.selected_color,
                size=data.selected_size,
            )
        else:
            quantity = await effective_stock(
                session,
                product_id=data.product_id,
                color=data.selected_color,
                size=data.selected_size,
                draft_items=data.draft_items,
            )
    except ValueError as e:
        raise http_error(e) from e

    return EffectiveStockOut(
        product_id=data.product_id,
        variant_id=variant.id,
        selected_color=variant.color_name,
        selected_size=variant.size,
        ledger_quantity=variant.quantity,
        effective_quantity=quantity,
    )


@router.get("/low", response_model=list[LowStockOut])
async def low_stock_endpoint(
    threshold: int | None = Query(default=None, ge=0),
    limit: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> list[LowStockOut]:
    rows = await list_low_stock(session, threshold=threshold, limit=limit)
    return [LowStockOut.model_validate(r) for r in rows]


@router.get("/movements", response_model=list[StockMovementOut])
async def stock_movements_endpoint(
    product_id: uuid.UUID | None = None,
    entity_id: uuid.UUID | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> list[StockMovementOut]:
    rows = await list_stock_movements(session, product_id=product_id, entity_id=entity_id, limit=limit, offset=offset)
    return [StockMovementOut.model_validate(r) for r in rows]
