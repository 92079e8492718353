from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.enums import PaymentMethod, PaymentStatus
from app.schemas.order import OrderItemIn, OrderOut


class SaleItemIn(OrderItemIn):
    pass


class SaleCreate(BaseModel):
    customer_id: UUID | None = None
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    discount_cents: int = Field(default=0, ge=0)
    fee_bp: int = Field(default=0, ge=0, le=10_000)
    notes: str | None = None
    items: list[SaleItemIn] = Field(min_length=1)


class SalePaymentUpdate(BaseModel):
    payment_status: PaymentStatus | None = None
    payment_method: PaymentMethod | None = None

    @model_validator(mode="after")
    def _require_change(self) -> "SalePaymentUpdate":
        if self.payment_status is None and self.payment_method is None:
            raise ValueError("Provide payment_status and/or payment_method")
        return self


class SaleItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    variant_id: UUID
    selected_color: str
    selected_size: str
    quantity: int
    price_cents: int
    cost_price_cents: int


class SaleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sale_number: str
    customer_id: UUID | None
    malinha_id: UUID | None
    subtotal_cents: int
    discount_cents: int
    total_value_cents: int
    fee_bp: int
    fee_cents: int
    net_cents: int
    cost_total_cents: int
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime
    items: list[SaleItemOut]


class SaleConversionOut(BaseModel):
    order: OrderOut
    sale: SaleOut
