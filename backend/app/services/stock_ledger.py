from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.enums import StockMovementReason
from app.core.errors import InsufficientStock, ProductNotFound, VariantNotFound
from app.models.product import Product, ProductVariant
from app.models.stock_movement import StockMovement


logger = logging.getLogger(__name__)

_DEFAULT_COLOR_ALIASES = {"", "padrão", "padrao"}
_DEFAULT_SIZE_ALIASES = {"", "u", "un", "unico", "único"}


def canonical_color(color: str | None) -> str:
    default = get_settings().default_color
    label = (color or "").strip()
    if label.casefold() in _DEFAULT_COLOR_ALIASES or label.casefold() == default.casefold():
        return default
    return label


def canonical_size(size: str | None) -> str:
    default = get_settings().default_size
    label = (size or "").strip()
    if label.casefold() in _DEFAULT_SIZE_ALIASES or label.casefold() == default.casefold():
        return default
    return label


def variant_key(color: str | None, size: str | None) -> tuple[str, str]:
    """Case/whitespace-insensitive identity of a (color, size) pair within one product."""
    return canonical_color(color).casefold(), canonical_size(size).casefold()


def describe_variant(product: Product, variant: ProductVariant) -> str:
    return f"{product.name} ({variant.label})"


async def resolve_variant(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
    lock: bool = False,
) -> ProductVariant:
    """
    Map a (product, color, size) triple onto its variant row.

    There is no fuzzy fallback: a triple that does not match exactly one variant
    is `VariantNotFound`, never "the first variant".
    """
    product_stmt = select(Product).where(Product.id == product_id)
    variant_stmt = select(ProductVariant).where(ProductVariant.product_id == product_id)
    if lock:
        product_stmt = product_stmt.with_for_update().execution_options(populate_existing=True)
        variant_stmt = variant_stmt.with_for_update().execution_options(populate_existing=True)

    product = (await session.execute(product_stmt)).scalar_one_or_none()
    if product is None:
        raise VariantNotFound(product_id, color, size)

    wanted = variant_key(color, size)
    for variant in (await session.execute(variant_stmt)).scalars().all():
        if variant_key(variant.color_name, variant.size) == wanted:
            return variant
    raise VariantNotFound(product_id, color, size)


async def lock_variants(
    session: AsyncSession,
    variant_ids: Iterable[uuid.UUID],
) -> dict[uuid.UUID, tuple[Product, ProductVariant]]:
    """
    Lock the given variants and their products for the rest of the transaction.

    Products are locked before variants and both in primary-key order, so two
    transactions touching overlapping variants always queue instead of deadlocking.
    """
    ids = sorted(set(variant_ids), key=str)
    if not ids:
        return {}

    product_ids = (
        await session.execute(select(ProductVariant.product_id).where(ProductVariant.id.in_(ids)))
    ).scalars().all()
    products = (
        await session.execute(
            select(Product)
            .where(Product.id.in_(set(product_ids)))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()
    variants = (
        await session.execute(
            select(ProductVariant)
            .where(ProductVariant.id.in_(ids))
            .order_by(ProductVariant.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().all()

    product_by_id = {p.id: p for p in products}
    out: dict[uuid.UUID, tuple[Product, ProductVariant]] = {}
    for variant in variants:
        out[variant.id] = (product_by_id[variant.product_id], variant)

    missing = [vid for vid in ids if vid not in out]
    if missing:
        raise VariantNotFound(None, None, None, variant_id=missing[0])
    return out


async def get_quantity(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
) -> int:
    variant = await resolve_variant(session, product_id=product_id, color=color, size=size)
    return int(variant.quantity)


async def adjust_variant(
    session: AsyncSession,
    *,
    actor: str,
    product: Product,
    variant: ProductVariant,
    delta: int,
    reason: StockMovementReason,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
) -> int:
    """
    Apply `delta` to a variant that the caller has already locked.

    Keeps `product.stock` in step and records a `StockMovement`. A result below
    zero raises `InsufficientStock` before anything is written.
    """
    if variant.product_id != product.id:
        raise ValueError(f"Variant {variant.id} does not belong to product {product.id}")
    if delta == 0:
        return int(variant.quantity)

    current = int(variant.quantity)
    new_quantity = current + delta
    if new_quantity < 0:
        raise InsufficientStock(
            variant=describe_variant(product, variant),
            variant_id=variant.id,
            requested=-delta,
            available=current,
        )

    variant.quantity = new_quantity
    product.stock = int(product.stock) + delta
    session.add(
        StockMovement(
            product_id=product.id,
            variant_id=variant.id,
            delta=delta,
            quantity_after=new_quantity,
            reason=reason,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
        )
    )
    await session.flush()

    logger.debug(
        "Stock %s %+d -> %d (%s)",
        describe_variant(product, variant),
        delta,
        new_quantity,
        reason.value,
        extra={"variant_id": str(variant.id), "entity_type": entity_type, "entity_id": str(entity_id)},
    )
    return new_quantity


async def adjust(
    session: AsyncSession,
    *,
    actor: str,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
    delta: int,
    reason: StockMovementReason,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
) -> int:
    variant = await resolve_variant(session, product_id=product_id, color=color, size=size, lock=True)
    locked = await lock_variants(session, [variant.id])
    product, variant = locked[variant.id]
    return await adjust_variant(
        session,
        actor=actor,
        product=product,
        variant=variant,
        delta=delta,
        reason=reason,
        entity_type=entity_type,
        entity_id=entity_id,
    )


async def restock(
    session: AsyncSession,
    *,
    actor: str,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
    quantity: int,
) -> int:
    if quantity <= 0:
        raise ValueError("Restock quantity must be > 0")
    if await session.get(Product, product_id) is None:
        raise ProductNotFound(product_id)
    new_quantity = await adjust(
        session,
        actor=actor,
        product_id=product_id,
        color=color,
        size=size,
        delta=quantity,
        reason=StockMovementReason.RESTOCK,
        entity_type="product",
        entity_id=product_id,
    )
    logger.info("Restocked %s unit(s) of product %s", quantity, product_id)
    return new_quantity
