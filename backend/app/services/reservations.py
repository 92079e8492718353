from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import StockMovementReason
from app.core.errors import InsufficientStock
from app.services.stock_ledger import adjust_variant, describe_variant, lock_variants, resolve_variant, variant_key


logger = logging.getLogger(__name__)


class StockLine(Protocol):
    variant_id: uuid.UUID
    quantity: int


class DraftLine(Protocol):
    product_id: uuid.UUID
    selected_color: str | None
    selected_size: str | None
    quantity: int


@dataclass(frozen=True)
class StockAdjustment:
    variant_id: uuid.UUID
    delta: int
    quantity_after: int


def _totals_by_variant(items: Iterable[StockLine]) -> dict[uuid.UUID, int]:
    totals: dict[uuid.UUID, int] = defaultdict(int)
    for item in items:
        if item.quantity <= 0:
            raise ValueError(f"Item quantity must be > 0 (variant={item.variant_id})")
        totals[item.variant_id] += int(item.quantity)
    return dict(totals)


async def _apply(
    session: AsyncSession,
    *,
    actor: str,
    items: Iterable[StockLine],
    sign: int,
    reason: StockMovementReason,
    entity_type: str | None,
    entity_id: uuid.UUID | None,
) -> list[StockAdjustment]:
    totals = _totals_by_variant(items)
    if not totals:
        return []

    locked = await lock_variants(session, totals.keys())
    ordered_ids = sorted(totals, key=str)

    # Check every variant before touching any, so a shortage never leaves a partial hold behind.
    if sign < 0:
        for variant_id in ordered_ids:
            product, variant = locked[variant_id]
            if int(variant.quantity) < totals[variant_id]:
                raise InsufficientStock(
                    variant=describe_variant(product, variant),
                    variant_id=variant.id,
                    requested=totals[variant_id],
                    available=int(variant.quantity),
                )

    adjustments: list[StockAdjustment] = []
    for variant_id in ordered_ids:
        product, variant = locked[variant_id]
        delta = sign * totals[variant_id]
        quantity_after = await adjust_variant(
            session,
            actor=actor,
            product=product,
            variant=variant,
            delta=delta,
            reason=reason,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        adjustments.append(StockAdjustment(variant_id=variant_id, delta=delta, quantity_after=quantity_after))
    return adjustments


async def reserve_items(
    session: AsyncSession,
    *,
    actor: str,
    items: Iterable[StockLine],
    entity_type: str = "order",
    entity_id: uuid.UUID | None = None,
) -> list[StockAdjustment]:
    """
    Hold stock for a whole item list, all or nothing.

    Quantities of repeated variants are summed, so `InsufficientStock.requested`
    is the total the list needs from that variant.
    """
    adjustments = await _apply(
        session,
        actor=actor,
        items=items,
        sign=-1,
        reason=StockMovementReason.RESERVE,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    if adjustments:
        logger.info(
            "Reserved %s unit(s) across %s variant(s)",
            -sum(a.delta for a in adjustments),
            len(adjustments),
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
    return adjustments


async def release_items(
    session: AsyncSession,
    *,
    actor: str,
    items: Iterable[StockLine],
    entity_type: str = "order",
    entity_id: uuid.UUID | None = None,
) -> list[StockAdjustment]:
    """
    Give held stock back to the ledger.

    Only pass the stored item list of an order that currently holds its
    reservation; see `order_lifecycle.release_order_reservation`.
    """
    adjustments = await _apply(
        session,
        actor=actor,
        items=items,
        sign=1,
        reason=StockMovementReason.RELEASE,
        entity_type=entity_type,
        entity_id=entity_id,
    )
    if adjustments:
        logger.info(
            "Released %s unit(s) across %s variant(s)",
            sum(a.delta for a in adjustments),
            len(adjustments),
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
    return adjustments


async def consume_items(
    session: AsyncSession,
    *,
    actor: str,
    items: Iterable[StockLine],
    entity_type: str = "sale",
    entity_id: uuid.UUID | None = None,
) -> list[StockAdjustment]:
    return await _apply(
        session,
        actor=actor,
        items=items,
        sign=-1,
        reason=StockMovementReason.SALE,
        entity_type=entity_type,
        entity_id=entity_id,
    )


async def effective_stock(
    session: AsyncSession,
    *,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
    draft_items: Sequence[DraftLine] = (),
) -> int:
    """
    Units a draft may use for one variant: what is on the shelf plus what the
    draft itself already holds.

    Unlocked read; slight staleness is fine for an availability hint.
    """
    variant = await resolve_variant(session, product_id=product_id, color=color, size=size)
    wanted = variant_key(color, size)
    held = 0
    for item in draft_items:
        item_variant_id = getattr(item, "variant_id", None)
        if item_variant_id is not None:
            if item_variant_id == variant.id:
                held += int(item.quantity)
            continue
        if item.product_id == product_id and variant_key(item.selected_color, item.selected_size) == wanted:
            held += int(item.quantity)
    return int(variant.quantity) + held
