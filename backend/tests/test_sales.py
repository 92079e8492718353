from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError

from app.core.enums import PaymentMethod, PaymentStatus
from app.core.errors import InsufficientStock, SaleNotFound
from app.schemas.sale import SaleCreate, SaleItemIn, SalePaymentUpdate
from app.services.sales import create_sale, get_sale, list_sales, update_sale_payment
from app.services.stock_ledger import get_quantity


@pytest.mark.asyncio
async def test_direct_sale_consumes_stock_and_computes_totals(db_session, make_product) -> None:
    dress = await make_product("Vestido", price_cents=20_000, cost_price_cents=8_000, sizes={("Preto", "M"): 3})
    belt = await make_product("Cinto", price_cents=4_990, cost_price_cents=1_500, stock=5)
    dress_id, belt_id = dress.id, belt.id

    async with db_session.begin():
        sale = await create_sale(
            db_session,
            actor="tester",
            data=SaleCreate(
                payment_method=PaymentMethod.CREDIT,
                discount_cents=990,
                fee_bp=250,
                items=[
                    SaleItemIn(product_id=dress_id, selected_color="preto", selected_size="M", quantity=2),
                    SaleItemIn(product_id=belt_id, quantity=1),
                ],
            ),
        )
        sale_id = sale.id

    sale = await get_sale(db_session, sale_id)
    assert sale.sale_number == "VND-000001"
    assert sale.malinha_id is None
    assert sale.subtotal_cents == 44_990
    assert sale.total_value_cents == 44_000
    assert sale.fee_cents == 1_100
    assert sale.net_cents == 42_900
    assert sale.cost_total_cents == 17_500
    assert sale.payment_status == PaymentStatus.PENDING
    assert [i.position for i in sale.items] == [1, 2]

    assert await get_quantity(db_session, product_id=dress_id, color="Preto", size="M") == 1
    assert await get_quantity(db_session, product_id=belt_id, color=None, size=None) == 4
    await db_session.rollback()


@pytest.mark.asyncio
async def test_sale_is_all_or_nothing(db_session, make_product) -> None:
    dress = await make_product("Vestido", sizes={("Preto", "M"): 3})
    belt = await make_product("Cinto", stock=1)
    dress_id, belt_id = dress.id, belt.id

    with pytest.raises(InsufficientStock):
        async with db_session.begin():
            await create_sale(
                db_session,
                actor="tester",
                data=SaleCreate(
                    payment_method=PaymentMethod.PIX,
                    items=[
                        SaleItemIn(product_id=dress_id, selected_color="Preto", selected_size="M", quantity=1),
                        SaleItemIn(product_id=belt_id, quantity=2),
                    ],
                ),
            )

    assert await get_quantity(db_session, product_id=dress_id, color="Preto", size="M") == 3
    assert await get_quantity(db_session, product_id=belt_id, color=None, size=None) == 1
    rows, total = await list_sales(db_session)
    assert (rows, total) == ([], 0)
    await db_session.rollback()


@pytest.mark.asyncio
async def test_discount_cannot_exceed_subtotal(db_session, make_product) -> None:
    belt = await make_product("Cinto", price_cents=1_000, stock=1)
    belt_id = belt.id

    with pytest.raises(ValueError, match="discount"):
        async with db_session.begin():
            await create_sale(
                db_session,
                actor="tester",
                data=SaleCreate(
                    payment_method=PaymentMethod.CASH,
                    discount_cents=1_001,
                    items=[SaleItemIn(product_id=belt_id, quantity=1)],
                ),
            )


def test_sale_payloads_are_validated() -> None:
    with pytest.raises(ValidationError):
        SaleCreate(payment_method=PaymentMethod.PIX, items=[])
    with pytest.raises(ValidationError):
        SalePaymentUpdate()


@pytest.mark.asyncio
async def test_payment_update_has_no_stock_effect(db_session, make_product) -> None:
    belt = await make_product("Cinto", stock=2)
    belt_id = belt.id
    customer_id = uuid.uuid4()

    async with db_session.begin():
        sale = await create_sale(
            db_session,
            actor="tester",
            data=SaleCreate(
                customer_id=customer_id,
                payment_method=PaymentMethod.STORE_CREDIT,
                items=[SaleItemIn(product_id=belt_id, quantity=1)],
            ),
        )
        sale_id = sale.id

    async with db_session.begin():
        await update_sale_payment(
            db_session,
            actor="tester",
            sale_id=sale_id,
            data=SalePaymentUpdate(payment_status=PaymentStatus.PAID, payment_method=PaymentMethod.PIX),
        )

    sale = await get_sale(db_session, sale_id)
    assert sale.payment_status == PaymentStatus.PAID
    assert sale.payment_method == PaymentMethod.PIX
    assert await get_quantity(db_session, product_id=belt_id, color=None, size=None) == 1

    rows, total = await list_sales(db_session, customer_id=customer_id, payment_status=PaymentStatus.PAID)
    assert total == 1
    assert rows[0].id == sale_id
    rows, total = await list_sales(db_session, payment_method=PaymentMethod.CASH)
    assert total == 0
    await db_session.rollback()

    with pytest.raises(SaleNotFound):
        await get_sale(db_session, uuid.uuid4())
