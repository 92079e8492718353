"""initial stock schema

Revision ID: 4a1e0c7b2d10
Revises:
Create Date: 2026-10-17

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "4a1e0c7b2d10"
down_revision = None
branch_labels = None
depends_on = None


ORDER_STATUS = ("pending", "shipped", "delivered", "pickup_scheduled", "returned", "completed", "cancelled")
PAYMENT_METHOD = ("pix", "dinheiro", "debito", "credito", "credito_parcelado", "fiado", "fiado_parcelado")
PAYMENT_STATUS = ("pending", "paid", "cancelled")
STOCK_MOVEMENT_REASON = ("RESERVE", "RELEASE", "SALE", "RESTOCK")
DOCUMENT_TYPE = ("MALINHA", "SALE")


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    order_status = postgresql.ENUM(*ORDER_STATUS, name="order_status", create_type=False)
    payment_method = postgresql.ENUM(*PAYMENT_METHOD, name="payment_method", create_type=False)
    payment_status = postgresql.ENUM(*PAYMENT_STATUS, name="payment_status", create_type=False)
    movement_reason = postgresql.ENUM(*STOCK_MOVEMENT_REASON, name="stock_movement_reason", create_type=False)
    document_type = postgresql.ENUM(*DOCUMENT_TYPE, name="document_type", create_type=False)

    bind = op.get_bind()
    for enum in (order_status, payment_method, payment_status, movement_reason, document_type):
        enum.create(bind, checkfirst=True)

    op.create_table(
        "products",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
    )

    op.create_table(
        "product_variants",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("product_id", _uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("color_name", sa.String(length=80), nullable=False),
        sa.Column("size", sa.String(length=40), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint("product_id", "color_name", "size", name="uq_product_variant_identity"),
        sa.CheckConstraint("quantity >= 0", name="ck_product_variant_quantity_non_negative"),
    )
    op.create_index(op.f("ix_product_variants_product_id"), "product_variants", ["product_id"])

    op.create_table(
        "orders",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("customer_id", _uuid(), nullable=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("total_value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("pickup_date", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("converted_to_sale", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index(op.f("ix_orders_customer_id"), "orders", ["customer_id"])
    op.create_index(op.f("ix_orders_status"), "orders", ["status"])

    op.create_table(
        "order_items",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_id", _uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_id", _uuid(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", _uuid(), sa.ForeignKey("product_variants.id"), nullable=False),
        sa.Column("selected_color", sa.String(length=80), nullable=False),
        sa.Column("selected_size", sa.String(length=40), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_kept", sa.Boolean(), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )
    op.create_index(op.f("ix_order_items_order_id"), "order_items", ["order_id"])
    op.create_index(op.f("ix_order_items_variant_id"), "order_items", ["variant_id"])

    op.create_table(
        "order_status_events",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("order_id", _uuid(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("source", sa.String(length=64), nullable=False),
        sa.Column("details", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(op.f("ix_order_status_events_order_id"), "order_status_events", ["order_id"])

    op.create_table(
        "sales",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("sale_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("customer_id", _uuid(), nullable=True),
        sa.Column("malinha_id", _uuid(), sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_value_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fee_bp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_total_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f("ix_sales_customer_id"), "sales", ["customer_id"])
    op.create_index(op.f("ix_sales_malinha_id"), "sales", ["malinha_id"])

    op.create_table(
        "sale_items",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("sale_id", _uuid(), sa.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("product_id", _uuid(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("variant_id", _uuid(), sa.ForeignKey("product_variants.id"), nullable=False),
        sa.Column("selected_color", sa.String(length=80), nullable=False),
        sa.Column("selected_size", sa.String(length=40), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cost_price_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("quantity > 0", name="ck_sale_item_quantity_positive"),
    )
    op.create_index(op.f("ix_sale_items_sale_id"), "sale_items", ["sale_id"])

    op.create_table(
        "stock_movements",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("product_id", _uuid(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("variant_id", _uuid(), sa.ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("quantity_after", sa.Integer(), nullable=False),
        sa.Column("reason", movement_reason, nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", _uuid(), nullable=True),
        sa.Column("actor", sa.String(length=200), nullable=False),
    )
    op.create_index(op.f("ix_stock_movements_product_id"), "stock_movements", ["product_id"])
    op.create_index(op.f("ix_stock_movements_variant_id"), "stock_movements", ["variant_id"])
    op.create_index(op.f("ix_stock_movements_entity_id"), "stock_movements", ["entity_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("actor", sa.String(length=200), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", _uuid(), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])

    document_counters = op.create_table(
        "document_counters",
        sa.Column("doc_type", document_type, primary_key=True),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
    )
    op.bulk_insert(document_counters, [{"doc_type": t, "next_number": 1} for t in DOCUMENT_TYPE])


def downgrade() -> None:
    for table in (
        "document_counters",
        "audit_logs",
        "stock_movements",
        "sale_items",
        "sales",
        "order_status_events",
        "order_items",
        "orders",
        "product_variants",
        "products",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ("document_type", "stock_movement_reason", "payment_status", "payment_method", "order_status"):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
