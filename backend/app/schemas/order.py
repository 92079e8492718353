from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import OrderStatus, PaymentMethod, PaymentStatus


class OrderItemIn(BaseModel):
    product_id: UUID
    selected_color: str | None = Field(default=None, max_length=80)
    selected_size: str | None = Field(default=None, max_length=40)
    quantity: int = Field(default=1, gt=0)
    # Defaults to the product's current price when omitted.
    price_cents: int | None = Field(default=None, ge=0)


class OrderCreate(BaseModel):
    customer_id: UUID | None = None
    status: OrderStatus = OrderStatus.PENDING
    delivery_date: date | None = None
    pickup_date: date | None = None
    notes: str | None = None
    items: list[OrderItemIn] = Field(default_factory=list)


class OrderItemsUpdate(BaseModel):
    items: list[OrderItemIn]


class OrderStatusChange(BaseModel):
    new_status: OrderStatus
    source: str = Field(default="admin-panel", min_length=1, max_length=64)
    details: str | None = Field(default=None, max_length=500)


class OrderScheduleUpdate(BaseModel):
    delivery_date: date | None = None
    pickup_date: date | None = None
    notes: str | None = None

    @field_validator("notes", mode="before")
    @classmethod
    def _blank_notes_to_none(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip() or None
        return v


class SaleConversionRequest(BaseModel):
    kept_item_ids: list[UUID] = Field(min_length=1)
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.PENDING
    discount_cents: int = Field(default=0, ge=0)
    fee_bp: int = Field(default=0, ge=0, le=10_000)
    notes: str | None = None


class OrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    variant_id: UUID
    selected_color: str
    selected_size: str
    quantity: int
    price_cents: int
    cost_price_cents: int
    is_kept: bool | None


class OrderStatusEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    status: OrderStatus
    source: str
    details: str | None
    created_at: datetime


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_id: UUID | None
    status: OrderStatus
    total_value_cents: int
    delivery_date: date | None
    pickup_date: date | None
    notes: str | None
    converted_to_sale: bool
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemOut]
    status_history: list[OrderStatusEventOut]


class OrderListOut(BaseModel):
    items: list[OrderOut]
    total: int
    limit: int
    offset: int
