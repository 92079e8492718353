from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import DocumentType, OrderStatus
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.sale import Sale
from app.schemas.order import OrderCreate, OrderItemIn, OrderScheduleUpdate
from app.services.audit import audit_log, items_snapshot
from app.services.documents import next_document_number
from app.services.money import line_total_cents
from app.services.order_lifecycle import (
    append_status_event,
    apply_order_reservation,
    holds_stock,
    load_order,
    release_order_reservation,
)
from app.services.reservations import effective_stock
from app.services.stock_ledger import resolve_variant


logger = logging.getLogger(__name__)


async def build_items(session: AsyncSession, items: Sequence[OrderItemIn]) -> list[OrderItem]:
    """Resolve requested items onto variant rows and snapshot price and cost."""
    out: list[OrderItem] = []
    for position, req in enumerate(items, start=1):
        variant = await resolve_variant(
            session,
            product_id=req.product_id,
            color=req.selected_color,
            size=req.selected_size,
        )
        product = await session.get(Product, variant.product_id)
        if product is None:
            raise ValueError(f"Product not found: {variant.product_id}")
        out.append(
            OrderItem(
                position=position,
                product_id=product.id,
                variant_id=variant.id,
                selected_color=variant.color_name,
                selected_size=variant.size,
                quantity=req.quantity,
                price_cents=req.price_cents if req.price_cents is not None else product.price_cents,
                cost_price_cents=product.cost_price_cents,
            )
        )
    return out


def _items_total_cents(items: Sequence[OrderItem]) -> int:
    return sum(line_total_cents(price_cents=i.price_cents, quantity=i.quantity) for i in items)


async def create_order(session: AsyncSession, *, actor: str, data: OrderCreate) -> Order:
    items = await build_items(session, data.items)
    order_number = await next_document_number(session, doc_type=DocumentType.MALINHA)

    order = Order(
        order_number=order_number,
        customer_id=data.customer_id,
        status=data.status,
        delivery_date=data.delivery_date,
        pickup_date=data.pickup_date,
        notes=data.notes,
        total_value_cents=_items_total_cents(items),
        converted_to_sale=False,
        items=items,
        status_history=[],
    )
    session.add(order)
    await session.flush()

    if holds_stock(order.status):
        await apply_order_reservation(session, actor=actor, order=order)
    append_status_event(order, status=order.status, source="created")

    await audit_log(
        session,
        actor=actor,
        entity_type="order",
        entity_id=order.id,
        action="create",
        after={
            "order_number": order.order_number,
            "status": order.status,
            "customer_id": order.customer_id,
            "items": items_snapshot(order.items),
            "total_value_cents": order.total_value_cents,
        },
    )
    logger.info("Order %s created with %s item(s)", order.order_number, len(items), extra={"order_id": str(order.id)})
    return order


async def update_order_items(
    session: AsyncSession,
    *,
    actor: str,
    order_id: uuid.UUID,
    items: Sequence[OrderItemIn],
) -> Order:
    """
    Replace the item list of an order.

    For a stock-holding order the old reservation is released and the new one
    applied in the caller's transaction. If the new set cannot be reserved the
    error propagates and rolling the transaction back restores the old hold.
    """
    order = await load_order(session, order_id, lock=True)
    if order.converted_to_sale:
        raise ValueError(f"Order {order.order_number} was converted into a sale; its items are final")

    new_items = await build_items(session, items)
    before = {
        "status": order.status,
        "items": items_snapshot(order.items),
        "total_value_cents": order.total_value_cents,
    }

    holding = holds_stock(order.status)
    if holding:
        await release_order_reservation(session, actor=actor, order=order)

    order.items = new_items
    order.total_value_cents = _items_total_cents(new_items)
    await session.flush()

    if holding:
        await apply_order_reservation(session, actor=actor, order=order)

    await audit_log(
        session,
        actor=actor,
        entity_type="order",
        entity_id=order.id,
        action="update_items",
        before=before,
        after={
            "status": order.status,
            "items": items_snapshot(order.items),
            "total_value_cents": order.total_value_cents,
        },
    )
    return order


async def update_order_schedule(
    session: AsyncSession,
    *,
    actor: str,
    order_id: uuid.UUID,
    data: OrderScheduleUpdate,
) -> Order:
    order = await load_order(session, order_id, lock=True)
    before = {"delivery_date": order.delivery_date, "pickup_date": order.pickup_date, "notes": order.notes}

    fields = data.model_dump(exclude_unset=True)
    for key in ("delivery_date", "pickup_date", "notes"):
        if key in fields:
            setattr(order, key, fields[key])

    await audit_log(
        session,
        actor=actor,
        entity_type="order",
        entity_id=order.id,
        action="update_schedule",
        before=before,
        after={"delivery_date": order.delivery_date, "pickup_date": order.pickup_date, "notes": order.notes},
    )
    return order


async def delete_order(session: AsyncSession, *, actor: str, order_id: uuid.UUID, force: bool = False) -> None:
    """
    Delete an order, giving back whatever it holds.

    Finished orders (completed/cancelled) hold nothing but are part of the sales
    history, so deleting them needs `force=True`.
    """
    order = await load_order(session, order_id, lock=True)
    if holds_stock(order.status):
        await release_order_reservation(session, actor=actor, order=order)
    elif not force:
        raise ValueError(f"Order {order.order_number} is {order.status.value}; deleting it requires force")

    before = {
        "order_number": order.order_number,
        "status": order.status,
        "items": items_snapshot(order.items),
        "converted_to_sale": order.converted_to_sale,
    }

    # The sale stays; it only loses the link back to its bag.
    await session.execute(update(Sale).where(Sale.malinha_id == order.id).values(malinha_id=None))
    await session.delete(order)
    await session.flush()

    await audit_log(session, actor=actor, entity_type="order", entity_id=order_id, action="delete", before=before)
    logger.info("Order %s deleted", before["order_number"], extra={"order_id": str(order_id)})


async def get_order(session: AsyncSession, order_id: uuid.UUID) -> Order:
    return await load_order(session, order_id)


async def list_orders(
    session: AsyncSession,
    *,
    status: OrderStatus | None = None,
    customer_id: uuid.UUID | None = None,
    search: str | None = None,
    limit: int = 30,
    offset: int = 0,
) -> tuple[list[Order], int]:
    stmt = select(Order)
    if status is not None:
        stmt = stmt.where(Order.status == status)
    if customer_id is not None:
        stmt = stmt.where(Order.customer_id == customer_id)
    if search:
        stmt = stmt.where(Order.order_number.ilike(f"%{search.strip()}%"))

    total = (await session.scalar(select(func.count()).select_from(stmt.subquery()))) or 0
    rows = (
        await session.execute(
            stmt.order_by(Order.created_at.desc(), Order.order_number.desc())
            .limit(limit)
            .offset(offset)
            .options(selectinload(Order.items), selectinload(Order.status_history))
        )
    ).scalars().all()
    return list(rows), int(total)


async def effective_stock_for_order(
    session: AsyncSession,
    *,
    order_id: uuid.UUID,
    product_id: uuid.UUID,
    color: str | None,
    size: str | None,
) -> int:
    order = await load_order(session, order_id)
    draft = order.items if holds_stock(order.status) else []
    return await effective_stock(session, product_id=product_id, color=color, size=size, draft_items=draft)
