from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.enums import DocumentType, PaymentMethod, PaymentStatus
from app.core.errors import SaleNotFound
from app.models.product import Product
from app.models.sale import Sale, SaleItem
from app.schemas.sale import SaleCreate, SalePaymentUpdate
from app.services.audit import audit_log, items_snapshot
from app.services.documents import next_document_number
from app.services.money import fee_amount_cents, format_brl, line_total_cents
from app.services.reservations import consume_items
from app.services.stock_ledger import resolve_variant


logger = logging.getLogger(__name__)


async def _build_sale_items(session: AsyncSession, data: SaleCreate) -> list[SaleItem]:
    out: list[SaleItem] = []
    for position, req in enumerate(data.items, start=1):
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
            SaleItem(
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


async def record_sale(
    session: AsyncSession,
    *,
    actor: str,
    items: Sequence[SaleItem],
    payment_method: PaymentMethod,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    customer_id: uuid.UUID | None = None,
    discount_cents: int = 0,
    fee_bp: int = 0,
    notes: str | None = None,
    malinha_id: uuid.UUID | None = None,
) -> Sale:
    """
    Persist a sale and permanently take its units off the ledger.

    `items` must already be resolved onto variants with price and cost
    snapshots. Consumption is all or nothing: a shortage on any line raises
    `InsufficientStock` before any variant is touched, and the caller's
    rollback discards the sale rows.
    """
    if not items:
        raise ValueError("A sale needs at least one item")

    subtotal = sum(line_total_cents(price_cents=i.price_cents, quantity=i.quantity) for i in items)
    if discount_cents > subtotal:
        raise ValueError("discount_cents cannot exceed the subtotal")
    total = subtotal - discount_cents
    fee = fee_amount_cents(total_cents=total, fee_bp=fee_bp)
    cost_total = sum(i.cost_price_cents * i.quantity for i in items)

    sale = Sale(
        sale_number=await next_document_number(session, doc_type=DocumentType.SALE),
        customer_id=customer_id,
        malinha_id=malinha_id,
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        total_value_cents=total,
        fee_bp=fee_bp,
        fee_cents=fee,
        net_cents=total - fee,
        cost_total_cents=cost_total,
        payment_method=payment_method,
        payment_status=payment_status,
        notes=notes,
        items=list(items),
    )
    session.add(sale)
    await session.flush()

    await consume_items(session, actor=actor, items=sale.items, entity_type="sale", entity_id=sale.id)

    await audit_log(
        session,
        actor=actor,
        entity_type="sale",
        entity_id=sale.id,
        action="create",
        after={
            "sale_number": sale.sale_number,
            "malinha_id": sale.malinha_id,
            "items": items_snapshot(sale.items),
            "total_value_cents": sale.total_value_cents,
            "payment_method": sale.payment_method,
            "payment_status": sale.payment_status,
        },
    )
    logger.info(
        "Sale %s recorded: %s (net %s)",
        sale.sale_number,
        format_brl(sale.total_value_cents),
        format_brl(sale.net_cents),
        extra={"sale_id": str(sale.id), "malinha_id": str(malinha_id) if malinha_id else None},
    )
    return sale


async def create_sale(session: AsyncSession, *, actor: str, data: SaleCreate) -> Sale:
    items = await _build_sale_items(session, data)
    return await record_sale(
        session,
        actor=actor,
        items=items,
        customer_id=data.customer_id,
        payment_method=data.payment_method,
        payment_status=data.payment_status,
        discount_cents=data.discount_cents,
        fee_bp=data.fee_bp,
        notes=data.notes,
    )


async def get_sale(session: AsyncSession, sale_id: uuid.UUID, *, lock: bool = False) -> Sale:
    stmt = (
        select(Sale)
        .where(Sale.id == sale_id)
        .options(selectinload(Sale.items))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    sale = (await session.execute(stmt)).scalar_one_or_none()
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


async def update_sale_payment(
    session: AsyncSession,
    *,
    actor: str,
    sale_id: uuid.UUID,
    data: SalePaymentUpdate,
) -> Sale:
    # Payment bookkeeping only; the stock effect of a sale is final.
    sale = await get_sale(session, sale_id, lock=True)
    before = {"payment_status": sale.payment_status, "payment_method": sale.payment_method}

    if data.payment_status is not None:
        sale.payment_status = data.payment_status
    if data.payment_method is not None:
        sale.payment_method = data.payment_method

    await audit_log(
        session,
        actor=actor,
        entity_type="sale",
        entity_id=sale.id,
        action="update_payment",
        before=before,
        after={"payment_status": sale.payment_status, "payment_method": sale.payment_method},
    )
    return sale


async def list_sales(
    session: AsyncSession,
    *,
    customer_id: uuid.UUID | None = None,
    payment_status: PaymentStatus | None = None,
    payment_method: PaymentMethod | None = None,
    limit: int = 30,
    offset: int = 0,
) -> tuple[list[Sale], int]:
    stmt = select(Sale)
    if customer_id is not None:
        stmt = stmt.where(Sale.customer_id == customer_id)
    if payment_status is not None:
        stmt = stmt.where(Sale.payment_status == payment_status)
    if payment_method is not None:
        stmt = stmt.where(Sale.payment_method == payment_method)

    total = (await session.scalar(select(func.count()).select_from(stmt.subquery()))) or 0
    rows = (
        await session.execute(
            stmt.order_by(Sale.created_at.desc(), Sale.sale_number.desc())
            .limit(limit)
            .offset(offset)
            .options(selectinload(Sale.items))
        )
    ).scalars().all()
    return list(rows), int(total)
