from app.models.audit_log import AuditLog
from app.models.document_counter import DocumentCounter
from app.models.order import Order, OrderItem, OrderStatusEvent
from app.models.product import Product, ProductVariant
from app.models.sale import Sale, SaleItem
from app.models.stock_movement import StockMovement

__all__ = [
    "AuditLog",
    "DocumentCounter",
    "Order",
    "OrderItem",
    "OrderStatusEvent",
    "Product",
    "ProductVariant",
    "Sale",
    "SaleItem",
    "StockMovement",
]
