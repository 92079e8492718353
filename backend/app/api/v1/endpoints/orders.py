from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.errors import http_error
from app.core.db import get_session, run_in_transaction
from app.core.enums import OrderStatus
from app.core.security import require_basic_auth
from app.schemas.order import (
    OrderCreate,
    OrderItemsUpdate,
    OrderListOut,
    OrderOut,
    OrderScheduleUpdate,
    OrderStatusChange,
    SaleConversionRequest,
)
from app.schemas.sale import SaleConversionOut, SaleOut
from app.services.order_lifecycle import transition_order_status
from app.services.orders import (
    create_order,
    delete_order,
    get_order,
    list_orders,
    update_order_items,
    update_order_schedule,
)
from app.services.sale_conversion import convert_order_to_sale
from app.services.sales import get_sale


router = APIRouter()


@router.post("", response_model=OrderOut)
async def create_order_endpoint(
    data: OrderCreate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> OrderOut:
    try:
        order = await run_in_transaction(session, lambda s: create_order(s, actor=actor, data=data))
        order = await get_order(session, order.id)
    except ValueError as e:
        raise http_error(e) from e
    return OrderOut.model_validate(order)


@router.get("", response_model=OrderListOut)
async def list_orders_endpoint(
    status: OrderStatus | None = None,
    customer_id: uuid.UUID | None = None,
    q: str | None = Query(default=None, max_length=64),
    limit: int = Query(default=30, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> OrderListOut:
    rows, total = await list_orders(
        session, status=status, customer_id=customer_id, search=q, limit=limit, offset=offset
    )
    return OrderListOut(items=[OrderOut.model_validate(r) for r in rows], total=total, limit=limit, offset=offset)


@router.get("/{order_id}", response_model=OrderOut)
async def get_order_endpoint(order_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> OrderOut:
    try:
        order = await get_order(session, order_id)
    except ValueError as e:
        raise http_error(e) from e
    return OrderOut.model_validate(order)


@router.put("/{order_id}/items", response_model=OrderOut)
async def update_order_items_endpoint(
    order_id: uuid.UUID,
    data: OrderItemsUpdate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> OrderOut:
    try:
        await run_in_transaction(
            session, lambda s: update_order_items(s, actor=actor, order_id=order_id, items=data.items)
        )
        order = await get_order(session, order_id)
    except ValueError as e:
        raise http_error(e) from e
    return OrderOut.model_validate(order)


@router.post("/{order_id}/status", response_model=OrderOut)
async def change_order_status_endpoint(
    order_id: uuid.UUID,
    data: OrderStatusChange,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> OrderOut:
    try:
        await run_in_transaction(
            session,
            lambda s: transition_order_status(
                s,
                actor=actor,
                order_id=order_id,
                new_status=data.new_status,
                source=data.source,
                details=data.details,
            ),
        )
        order = await get_order(session, order_id)
    except ValueError as e:
        raise http_error(e) from e
    return OrderOut.model_validate(order)


@router.patch("/{order_id}/schedule", response_model=OrderOut)
async def update_order_schedule_endpoint(
    order_id: uuid.UUID,
    data: OrderScheduleUpdate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> OrderOut:
    try:
        await run_in_transaction(
            session, lambda s: update_order_schedule(s, actor=actor, order_id=order_id, data=data)
        )
        order = await get_order(session, order_id)
    except ValueError as e:
        raise http_error(e) from e
    return OrderOut.model_validate(order)


@router.delete("/{order_id}", status_code=204)
async def delete_order_endpoint(
    order_id: uuid.UUID,
    force: bool = False,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> Response:
    try:
        await run_in_transaction(session, lambda s: delete_order(s, actor=actor, order_id=order_id, force=force))
    except ValueError as e:
        raise http_error(e) from e
    return Response(status_code=204)


@router.post("/{order_id}/convert-to-sale", response_model=SaleConversionOut)
async def convert_order_to_sale_endpoint(
    order_id: uuid.UUID,
    data: SaleConversionRequest,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> SaleConversionOut:
    try:
        _, sale = await run_in_transaction(
            session, lambda s: convert_order_to_sale(s, actor=actor, order_id=order_id, data=data)
        )
        order = await get_order(session, order_id)
        sale = await get_sale(session, sale.id)
    except ValueError as e:
        raise http_error(e) from e
    return SaleConversionOut(order=OrderOut.model_validate(order), sale=SaleOut.model_validate(sale))
