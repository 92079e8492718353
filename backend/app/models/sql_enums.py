from __future__ import annotations

from enum import Enum as PyEnum

from sqlalchemy import Enum

from app.core.enums import (
    DocumentType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    StockMovementReason,
)


def _pg_enum(enum_cls: type[PyEnum], name: str) -> Enum:
    # Persist the enum *values* (e.g. "pickup_scheduled"), not the member names.
    return Enum(enum_cls, name=name, values_callable=lambda cls: [m.value for m in cls])


order_status_enum = _pg_enum(OrderStatus, "order_status")
payment_method_enum = _pg_enum(PaymentMethod, "payment_method")
payment_status_enum = _pg_enum(PaymentStatus, "payment_status")
stock_movement_reason_enum = _pg_enum(StockMovementReason, "stock_movement_reason")
document_type_enum = _pg_enum(DocumentType, "document_type")
