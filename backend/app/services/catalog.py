from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.core.enums import StockMovementReason
from app.core.errors import ProductNotFound
from app.models.product import Product, ProductVariant
from app.models.stock_movement import StockMovement
from app.schemas.product import ProductCreate
from app.services.audit import audit_log
from app.services.stock_ledger import canonical_color, canonical_size, variant_key


async def create_product(session: AsyncSession, *, actor: str, data: ProductCreate) -> Product:
    """
    Thin catalog entry point used to seed variants.

    Initial quantities are booked as RESTOCK movements so the movement log
    accounts for every physical unit from the start.
    """
    settings = get_settings()
    variants: list[ProductVariant] = []
    seen: set[tuple[str, str]] = set()

    if not data.variants:
        variants.append(
            ProductVariant(color_name=settings.default_color, size=settings.default_size, quantity=data.stock)
        )
    else:
        for v in data.variants:
            color = canonical_color(v.color_name)
            for s in v.size_stock:
                size = canonical_size(s.size)
                key = variant_key(color, size)
                if key in seen:
                    raise ValueError(f"Duplicate variant: {color}/{size}")
                seen.add(key)
                variants.append(ProductVariant(color_name=color, size=size, quantity=s.quantity))

    product = Product(
        name=data.name.strip(),
        price_cents=data.price_cents,
        cost_price_cents=data.cost_price_cents,
        stock=sum(v.quantity for v in variants),
        active=True,
        variants=variants,
    )
    session.add(product)
    await session.flush()

    for v in variants:
        if v.quantity:
            session.add(
                StockMovement(
                    product_id=product.id,
                    variant_id=v.id,
                    delta=v.quantity,
                    quantity_after=v.quantity,
                    reason=StockMovementReason.RESTOCK,
                    entity_type="product",
                    entity_id=product.id,
                    actor=actor,
                )
            )

    await audit_log(
        session,
        actor=actor,
        entity_type="product",
        entity_id=product.id,
        action="create",
        after={"name": product.name, "stock": product.stock, "variants": len(variants)},
    )
    return product


async def get_product(session: AsyncSession, product_id: uuid.UUID) -> Product:
    product = (
        await session.execute(
            select(Product)
            .where(Product.id == product_id)
            .options(selectinload(Product.variants))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if product is None:
        raise ProductNotFound(product_id)
    return product


async def list_low_stock(session: AsyncSession, *, threshold: int | None = None, limit: int = 10) -> list[Product]:
    if threshold is None:
        threshold = get_settings().low_stock_threshold
    rows = (
        await session.execute(
            select(Product)
            .where(Product.active.is_(True), Product.stock <= threshold)
            .order_by(Product.stock.asc(), Product.name.asc())
            .limit(limit)
        )
    ).scalars().all()
    return list(rows)


async def list_stock_movements(
    session: AsyncSession,
    *,
    product_id: uuid.UUID | None = None,
    entity_id: uuid.UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[StockMovement]:
    stmt = select(StockMovement)
    if product_id is not None:
        stmt = stmt.where(StockMovement.product_id == product_id)
    if entity_id is not None:
        stmt = stmt.where(StockMovement.entity_id == entity_id)
    stmt = stmt.order_by(StockMovement.created_at.desc(), StockMovement.id).limit(limit).offset(offset)
    return list((await session.execute(stmt)).scalars().all())
