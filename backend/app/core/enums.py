from __future__ import annotations

from enum import StrEnum


class OrderStatus(StrEnum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    PICKUP_SCHEDULED = "pickup_scheduled"
    RETURNED = "returned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class StatusPolicy(StrEnum):
    PERMISSIVE = "permissive"
    STRICT = "strict"


class PaymentMethod(StrEnum):
    PIX = "pix"
    CASH = "dinheiro"
    DEBIT = "debito"
    CREDIT = "credito"
    CREDIT_INSTALLMENTS = "credito_parcelado"
    STORE_CREDIT = "fiado"
    STORE_CREDIT_INSTALLMENTS = "fiado_parcelado"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class StockMovementReason(StrEnum):
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"
    SALE = "SALE"
    RESTOCK = "RESTOCK"


class DocumentType(StrEnum):
    MALINHA = "MALINHA"
    SALE = "SALE"
