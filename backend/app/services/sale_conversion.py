from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import OrderStatus
from app.core.errors import CustomerNotAssociated, InvalidStatusTransition
from app.models.order import Order
from app.models.sale import Sale, SaleItem
from app.schemas.order import SaleConversionRequest
from app.services.audit import audit_log
from app.services.order_lifecycle import holds_stock, load_order, transition_order_status
from app.services.sales import record_sale


logger = logging.getLogger(__name__)

CONVERSION_SOURCE = "sale_conversion"


async def convert_order_to_sale(
    session: AsyncSession,
    *,
    actor: str,
    order_id: uuid.UUID,
    data: SaleConversionRequest,
) -> tuple[Order, Sale]:
    """
    Close a malinha by selling the items the customer kept.

    The order is completed first, which gives all of its held units back to the
    ledger; the sale then consumes the kept units. Running it the other way
    round would let the sale fail on units the order itself is holding. Both
    steps share the caller's transaction.
    """
    order = await load_order(session, order_id, lock=True)

    if order.converted_to_sale:
        raise InvalidStatusTransition(order.status, OrderStatus.COMPLETED, "order was already converted into a sale")
    if not holds_stock(order.status):
        raise InvalidStatusTransition(order.status, OrderStatus.COMPLETED, "order no longer holds its items")
    if order.customer_id is None:
        raise CustomerNotAssociated(order.id)

    kept_ids = set(data.kept_item_ids)
    by_id = {item.id: item for item in order.items}
    unknown = kept_ids - by_id.keys()
    if unknown:
        raise ValueError(f"Items do not belong to order {order.order_number}: {sorted(str(i) for i in unknown)}")

    sale_items = [
        SaleItem(
            position=position,
            product_id=item.product_id,
            variant_id=item.variant_id,
            selected_color=item.selected_color,
            selected_size=item.selected_size,
            quantity=item.quantity,
            price_cents=item.price_cents,
            cost_price_cents=item.cost_price_cents,
        )
        for position, item in enumerate((i for i in order.items if i.id in kept_ids), start=1)
    ]
    customer_id = order.customer_id

    order = await transition_order_status(
        session,
        actor=actor,
        order_id=order_id,
        new_status=OrderStatus.COMPLETED,
        source=CONVERSION_SOURCE,
        details=f"{len(sale_items)} of {len(by_id)} item(s) kept",
    )

    sale = await record_sale(
        session,
        actor=actor,
        items=sale_items,
        customer_id=customer_id,
        payment_method=data.payment_method,
        payment_status=data.payment_status,
        discount_cents=data.discount_cents,
        fee_bp=data.fee_bp,
        notes=data.notes,
        malinha_id=order.id,
    )

    for item in order.items:
        item.is_kept = item.id in kept_ids
    order.converted_to_sale = True
    await session.flush()

    await audit_log(
        session,
        actor=actor,
        entity_type="order",
        entity_id=order.id,
        action="convert_to_sale",
        after={"sale_id": sale.id, "sale_number": sale.sale_number, "kept_item_ids": sorted(str(i) for i in kept_ids)},
    )
    logger.info(
        "Order %s converted into sale %s",
        order.order_number,
        sale.sale_number,
        extra={"order_id": str(order.id), "sale_id": str(sale.id)},
    )
    return order, sale
