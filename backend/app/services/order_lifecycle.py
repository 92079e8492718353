from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import get_settings
from app.core.enums import OrderStatus, StatusPolicy
from app.core.errors import InvalidStatusTransition, OrderNotFound, ReservationStateError
from app.models.order import Order, OrderStatusEvent
from app.services.audit import audit_log
from app.services.reservations import StockAdjustment, release_items, reserve_items


logger = logging.getLogger(__name__)

# Statuses in which the order's items are held out of the ledger.
HOLDING_STATUSES: frozenset[OrderStatus] = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.PICKUP_SCHEDULED,
        OrderStatus.RETURNED,
    }
)
RELEASED_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Only consulted under StatusPolicy.STRICT; the permissive policy allows any jump.
STRICT_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.PICKUP_SCHEDULED,
        OrderStatus.RETURNED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.SHIPPED: {
        OrderStatus.PENDING,
        OrderStatus.DELIVERED,
        OrderStatus.PICKUP_SCHEDULED,
        OrderStatus.RETURNED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: {
        OrderStatus.PICKUP_SCHEDULED,
        OrderStatus.RETURNED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PICKUP_SCHEDULED: {
        OrderStatus.DELIVERED,
        OrderStatus.RETURNED,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.RETURNED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: {OrderStatus.PENDING},
}


def holds_stock(status: OrderStatus) -> bool:
    return status in HOLDING_STATUSES


def validate_transition(
    current: OrderStatus,
    target: OrderStatus,
    *,
    policy: StatusPolicy | None = None,
) -> None:
    if current == target:
        return
    policy = policy or get_settings().order_status_policy
    if policy == StatusPolicy.PERMISSIVE:
        return
    if target not in STRICT_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(current, target)


async def load_order(session: AsyncSession, order_id: uuid.UUID, *, lock: bool = False) -> Order:
    stmt = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items), selectinload(Order.status_history))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    order = (await session.execute(stmt)).scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def append_status_event(order: Order, *, status: OrderStatus, source: str, details: str | None = None) -> None:
    order.status_history.append(
        OrderStatusEvent(
            sequence=len(order.status_history) + 1,
            status=status,
            source=source,
            details=details,
        )
    )


async def apply_order_reservation(session: AsyncSession, *, actor: str, order: Order) -> list[StockAdjustment]:
    return await reserve_items(session, actor=actor, items=order.items, entity_type="order", entity_id=order.id)


async def release_order_reservation(session: AsyncSession, *, actor: str, order: Order) -> list[StockAdjustment]:
    """Release exactly what the order's stored item list holds; refuses orders that hold nothing."""
    if not holds_stock(order.status):
        raise ReservationStateError(order.id, order.status)
    return await release_items(session, actor=actor, items=order.items, entity_type="order", entity_id=order.id)


async def transition_order_status(
    session: AsyncSession,
    *,
    actor: str,
    order_id: uuid.UUID,
    new_status: OrderStatus,
    source: str = "admin-panel",
    details: str | None = None,
    policy: StatusPolicy | None = None,
) -> Order:
    order = await load_order(session, order_id, lock=True)
    if new_status == order.status:
        # Re-entering the current status (e.g. completed -> completed) never touches the ledger.
        return order

    validate_transition(order.status, new_status, policy=policy)
    if order.converted_to_sale and holds_stock(new_status):
        raise InvalidStatusTransition(order.status, new_status, "order was already converted into a sale")

    old_status = order.status
    was_holding = holds_stock(old_status)
    will_hold = holds_stock(new_status)

    if was_holding and not will_hold:
        await release_order_reservation(session, actor=actor, order=order)
    elif not was_holding and will_hold:
        # InsufficientStock propagates and the order keeps its previous status.
        await apply_order_reservation(session, actor=actor, order=order)

    order.status = new_status
    append_status_event(order, status=new_status, source=source, details=details)

    await audit_log(
        session,
        actor=actor,
        entity_type="order",
        entity_id=order.id,
        action="status_change",
        before={"status": old_status},
        after={"status": new_status, "source": source},
    )
    logger.info(
        "Order %s status %s -> %s",
        order.order_number,
        old_status.value,
        new_status.value,
        extra={"order_id": str(order.id), "source": source},
    )
    return order
