from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.enums import StockMovementReason
from app.schemas.order import OrderItemIn


class SizeStockIn(BaseModel):
    size: str | None = Field(default=None, max_length=40)
    quantity: int = Field(default=0, ge=0)


class VariantIn(BaseModel):
    color_name: str | None = Field(default=None, max_length=80)
    size_stock: list[SizeStockIn] = Field(min_length=1)


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    price_cents: int = Field(ge=0)
    cost_price_cents: int = Field(default=0, ge=0)
    # Empty list = simple good with one implicit default variant holding `stock`.
    variants: list[VariantIn] = Field(default_factory=list)
    stock: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _stock_only_for_simple_goods(self) -> "ProductCreate":
        if self.variants and self.stock:
            raise ValueError("Set stock per variant size, not on products with variants")
        return self


class RestockIn(BaseModel):
    selected_color: str | None = Field(default=None, max_length=80)
    selected_size: str | None = Field(default=None, max_length=40)
    quantity: int = Field(gt=0)


class ProductVariantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    color_name: str
    size: str
    quantity: int


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    price_cents: int
    cost_price_cents: int
    stock: int
    active: bool
    created_at: datetime
    updated_at: datetime
    variants: list[ProductVariantOut]


class LowStockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    stock: int
    price_cents: int
    cost_price_cents: int


class EffectiveStockRequest(BaseModel):
    product_id: UUID
    selected_color: str | None = None
    selected_size: str | None = None
    # Either the draft's current items or the id of the order being edited.
    draft_items: list[OrderItemIn] = Field(default_factory=list)
    order_id: UUID | None = None

    @model_validator(mode="after")
    def _one_source(self) -> "EffectiveStockRequest":
        if self.order_id is not None and self.draft_items:
            raise ValueError("Pass either draft_items or order_id, not both")
        return self


class EffectiveStockOut(BaseModel):
    product_id: UUID
    variant_id: UUID
    selected_color: str
    selected_size: str
    ledger_quantity: int
    effective_quantity: int


class StockMovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    product_id: UUID
    variant_id: UUID
    delta: int
    quantity_after: int
    reason: StockMovementReason
    entity_type: str | None
    entity_id: UUID | None
    actor: str
