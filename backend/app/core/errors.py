from __future__ import annotations

import uuid
from typing import Any


class StockError(ValueError):
    """
    Base class for domain failures of the stock engine.

    Subclasses `ValueError` so routers can keep translating service errors the
    same way; `status_code` tells them which HTTP status to use.
    """

    status_code = 409

    @property
    def code(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": str(self)}


class ProductNotFound(StockError):
    status_code = 404

    def __init__(self, product_id: uuid.UUID) -> None:
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class VariantNotFound(StockError):
    status_code = 404

    def __init__(
        self,
        product_id: uuid.UUID | None,
        color: str | None,
        size: str | None,
        *,
        variant_id: uuid.UUID | None = None,
    ) -> None:
        self.product_id = product_id
        self.color = color
        self.size = size
        self.variant_id = variant_id
        if variant_id is not None:
            msg = f"Variant not found: {variant_id}"
        else:
            msg = f"Variant not found: product={product_id} color={color!r} size={size!r}"
        super().__init__(msg)


class OrderNotFound(StockError):
    status_code = 404

    def __init__(self, order_id: uuid.UUID) -> None:
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class SaleNotFound(StockError):
    status_code = 404

    def __init__(self, sale_id: uuid.UUID) -> None:
        self.sale_id = sale_id
        super().__init__(f"Sale not found: {sale_id}")


class InsufficientStock(StockError):
    def __init__(self, *, variant: str, variant_id: uuid.UUID | None, requested: int, available: int) -> None:
        self.variant = variant
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient stock for {variant}. Requested: {requested}, Available: {available}")

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update(
            {
                "variant": self.variant,
                "variant_id": str(self.variant_id) if self.variant_id else None,
                "requested": self.requested,
                "available": self.available,
            }
        )
        return out


class InvalidStatusTransition(StockError):
    def __init__(self, from_status: str, to_status: str, reason: str | None = None) -> None:
        self.from_status = from_status
        self.to_status = to_status
        msg = f"Invalid status transition: {from_status} -> {to_status}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update({"from": str(self.from_status), "to": str(self.to_status)})
        return out


class CustomerNotAssociated(StockError):
    def __init__(self, order_id: uuid.UUID) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} has no customer; a customer is required to convert it into a sale")


class ReservationStateError(StockError):
    def __init__(self, order_id: uuid.UUID, status: str) -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} does not hold a reservation (status={status})")


class TransactionConflict(StockError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Concurrent update conflict after {attempts} attempt(s); please retry")
