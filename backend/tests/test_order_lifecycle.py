from __future__ import annotations

import uuid

import pytest
from sqlalchemy import func, select

from app.core.enums import OrderStatus, StatusPolicy
from app.core.errors import InsufficientStock, InvalidStatusTransition, ReservationStateError
from app.models.audit_log import AuditLog
from app.models.stock_movement import StockMovement
from app.schemas.order import OrderCreate, OrderItemIn
from app.services.order_lifecycle import (
    HOLDING_STATUSES,
    RELEASED_STATUSES,
    holds_stock,
    load_order,
    release_order_reservation,
    transition_order_status,
    validate_transition,
)
from app.services.orders import create_order
from app.services.stock_ledger import get_quantity, restock


async def _movement_count(session) -> int:
    return int(await session.scalar(select(func.count()).select_from(StockMovement)) or 0)


async def _create_pending_order(session, product_id: uuid.UUID, *, quantity: int = 2) -> uuid.UUID:
    async with session.begin():
        order = await create_order(
            session,
            actor="tester",
            data=OrderCreate(
                customer_id=uuid.uuid4(),
                items=[OrderItemIn(product_id=product_id, selected_color="Rosa", selected_size="P", quantity=quantity)],
            ),
        )
        return order.id


def test_status_partition() -> None:
    assert HOLDING_STATUSES.isdisjoint(RELEASED_STATUSES)
    assert HOLDING_STATUSES | RELEASED_STATUSES == set(OrderStatus)
    assert holds_stock(OrderStatus.PICKUP_SCHEDULED)
    assert not holds_stock(OrderStatus.CANCELLED)


def test_permissive_policy_allows_any_jump_and_strict_uses_table() -> None:
    validate_transition(OrderStatus.COMPLETED, OrderStatus.PENDING, policy=StatusPolicy.PERMISSIVE)
    validate_transition(OrderStatus.CANCELLED, OrderStatus.PENDING, policy=StatusPolicy.STRICT)
    with pytest.raises(InvalidStatusTransition) as exc_info:
        validate_transition(OrderStatus.COMPLETED, OrderStatus.PENDING, policy=StatusPolicy.STRICT)
    assert exc_info.value.to_dict()["from"] == "completed"
    assert exc_info.value.to_dict()["to"] == "pending"


@pytest.mark.asyncio
async def test_release_and_reacquire_through_status_changes(db_session, make_product) -> None:
    product = await make_product(sizes={("Rosa", "P"): 3})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid)
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 1
    await db_session.rollback()

    # Holding -> holding only writes history.
    async with db_session.begin():
        await transition_order_status(
            db_session, actor="tester", order_id=order_id, new_status=OrderStatus.SHIPPED, source="driver-app"
        )
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 1
    await db_session.rollback()

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.CANCELLED)
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 3
    await db_session.rollback()

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.PENDING)
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 1

    order = await load_order(db_session, order_id)
    assert order.status == OrderStatus.PENDING
    assert [(e.sequence, e.status, e.source) for e in order.status_history] == [
        (1, OrderStatus.PENDING, "created"),
        (2, OrderStatus.SHIPPED, "driver-app"),
        (3, OrderStatus.CANCELLED, "admin-panel"),
        (4, OrderStatus.PENDING, "admin-panel"),
    ]
    status_audits = (
        await db_session.execute(
            select(AuditLog).where(AuditLog.entity_id == order_id, AuditLog.action == "status_change")
        )
    ).scalars().all()
    assert len(status_audits) == 3
    await db_session.rollback()


@pytest.mark.asyncio
async def test_repeated_terminal_transition_is_a_no_op(db_session, make_product) -> None:
    product = await make_product(sizes={("Rosa", "P"): 3})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid)

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.COMPLETED)
    movements_after_first = await _movement_count(db_session)
    await db_session.rollback()

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.COMPLETED)

    assert await _movement_count(db_session) == movements_after_first
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 3
    order = await load_order(db_session, order_id)
    assert len(order.status_history) == 2
    await db_session.rollback()


@pytest.mark.asyncio
async def test_reactivation_without_stock_keeps_prior_status(db_session, make_product) -> None:
    product = await make_product(sizes={("Rosa", "P"): 2})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid, quantity=2)

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.CANCELLED)
    # Someone else takes the units while the bag is cancelled.
    await _create_pending_order(db_session, pid, quantity=2)

    with pytest.raises(InsufficientStock) as exc_info:
        async with db_session.begin():
            await transition_order_status(
                db_session, actor="tester", order_id=order_id, new_status=OrderStatus.DELIVERED
            )
    assert exc_info.value.available == 0

    order = await load_order(db_session, order_id)
    assert order.status == OrderStatus.CANCELLED
    assert len(order.status_history) == 2
    await db_session.rollback()

    async with db_session.begin():
        await restock(db_session, actor="tester", product_id=pid, color="Rosa", size="P", quantity=2)
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.DELIVERED)
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 0
    await db_session.rollback()


@pytest.mark.asyncio
async def test_strict_policy_blocks_reopening_completed_orders(db_session, make_product) -> None:
    product = await make_product(sizes={("Rosa", "P"): 2})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid)

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.COMPLETED)

    with pytest.raises(InvalidStatusTransition):
        async with db_session.begin():
            await transition_order_status(
                db_session,
                actor="tester",
                order_id=order_id,
                new_status=OrderStatus.PENDING,
                policy=StatusPolicy.STRICT,
            )
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 2
    await db_session.rollback()


@pytest.mark.asyncio
async def test_strict_policy_from_environment(db_session, make_product, monkeypatch) -> None:
    from app.core.config import get_settings

    product = await make_product(sizes={("Rosa", "P"): 2})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid)

    monkeypatch.setenv("ORDER_STATUS_POLICY", "STRICT")
    get_settings.cache_clear()

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.RETURNED)
    with pytest.raises(InvalidStatusTransition):
        async with db_session.begin():
            await transition_order_status(
                db_session, actor="tester", order_id=order_id, new_status=OrderStatus.SHIPPED
            )


@pytest.mark.asyncio
async def test_release_refuses_orders_without_a_hold(db_session, make_product) -> None:
    product = await make_product(sizes={("Rosa", "P"): 2})
    pid = product.id
    order_id = await _create_pending_order(db_session, pid)

    async with db_session.begin():
        await transition_order_status(db_session, actor="tester", order_id=order_id, new_status=OrderStatus.CANCELLED)

    with pytest.raises(ReservationStateError):
        async with db_session.begin():
            order = await load_order(db_session, order_id, lock=True)
            await release_order_reservation(db_session, actor="tester", order=order)
    assert await get_quantity(db_session, product_id=pid, color="Rosa", size="P") == 2
    await db_session.rollback()
