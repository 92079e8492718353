from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.errors import http_error
from app.core.db import get_session, run_in_transaction
from app.core.security import require_basic_auth
from app.schemas.product import ProductCreate, ProductOut, RestockIn
from app.services.catalog import create_product, get_product
from app.services.stock_ledger import restock


router = APIRouter()


@router.post("", response_model=ProductOut)
async def create_product_endpoint(
    data: ProductCreate,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> ProductOut:
    try:
        product = await run_in_transaction(session, lambda s: create_product(s, actor=actor, data=data))
        product = await get_product(session, product.id)
    except ValueError as e:
        raise http_error(e) from e
    return ProductOut.model_validate(product)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product_endpoint(product_id: uuid.UUID, session: AsyncSession = Depends(get_session)) -> ProductOut:
    try:
        product = await get_product(session, product_id)
    except ValueError as e:
        raise http_error(e) from e
    return ProductOut.model_validate(product)


@router.post("/{product_id}/restock", response_model=ProductOut)
async def restock_endpoint(
    product_id: uuid.UUID,
    data: RestockIn,
    session: AsyncSession = Depends(get_session),
    actor: str = Depends(require_basic_auth),
) -> ProductOut:
    try:
        await run_in_transaction(
            session,
            lambda s: restock(
                s,
                actor=actor,
                product_id=product_id,
                color=data.selected_color,
                size=data.selected_size,
                quantity=data.quantity,
            ),
        )
        product = await get_product(session, product_id)
    except ValueError as e:
        raise http_error(e) from e
    return ProductOut.model_validate(product)
