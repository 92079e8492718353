from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.errors import http_error
from app.core.db import get_session, run_in_transaction
from app.core.enums import PaymentMethod, PaymentStatus
from app.core.security import require_basic_auth
from app.schemas.sale import SaleCreate, SaleOut, SalePaymentUpdate
from app.services.sales import create_sale, get_sale, list_sales, update_sale_payment


router = APIRouter()


class SaleListOut(BaseModel):
    items: list[SaleOut]
    total: int
    limit: int
    offset: int


@router.post("", response_model=SaleOut)
async def create_sale_endpoint(
    data: SaleCreate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> SaleOut:
    try:
        sale = await run_in_transaction(session, lambda s: create_sale(s, actor=actor, data=data))
        sale = await get_sale(session, sale.id)
    except ValueError as e:
        raise http_error(e) from e
    return SaleOut.model_validate(sale)


@router.get("", response_model=SaleListOut)
async def list_sales_endpoint(
    customer_id: uuid.UUID | None = None,
    payment_status: PaymentStatus | None = None,
    payment_method: PaymentMethod | None = None,
    limit: int = Query(default=30, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
) -> SaleListOut:
    rows, total = await list_sales(
        session,
        customer_id=customer_id,
        payment_status=payment_status,
        payment_method=payment_method,
        limit=limit,
        offset=offset,
    )
    return SaleListOut(items=[SaleOut.model_validate(r) for r in rows], total=total, limit=limit, offset=offset)


@router.get("/{sale_id}", response_model=SaleOut)
async def get_sale_endpoint(sale_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> SaleOut:
    try:
        sale = await get_sale(session, sale_id)
    except ValueError as e:
        raise http_error(e) from e
    return SaleOut.model_validate(sale)


@router.patch("/{sale_id}/payment", response_model=SaleOut)
async def update_sale_payment_endpoint(
    sale_id: uuid.UUID,
    data: SalePaymentUpdate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> SaleOut:
    try:
        await run_in_transaction(session, lambda s: update_sale_payment(s, actor=actor, sale_id=sale_id, data=data))
        sale = await get_sale(session, sale_id)
    except ValueError as e:
        raise http_error(e) from e
    return SaleOut.model_validate(sale)
