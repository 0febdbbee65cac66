"""Database models"""
from app.models.store import Store
from app.models.product import Product, ProductVariant
from app.models.classification_rule import ClassificationRule, batch_rules, main_stock_rules
from app.models.batch import Batch, BatchItem, BatchItemUnit, BatchFile
from app.models.order import Order, OrderItem, ReturnedItem
from app.models.stock import StockVariant, MainStock, MainStockQuantity
from app.models.order_event import OrderEvent

__all__ = [
    # Catalog
    "Store",
    "Product",
    "ProductVariant",
    "ClassificationRule",
    "batch_rules",
    "main_stock_rules",
    # Production
    "Batch",
    "BatchItem",
    "BatchItemUnit",
    "BatchFile",
    # Orders
    "Order",
    "OrderItem",
    "ReturnedItem",
    "OrderEvent",
    # Stock
    "StockVariant",
    "MainStock",
    "MainStockQuantity",
]
