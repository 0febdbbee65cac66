"""
Order models - customer orders ingested from the commerce platform
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.status_config import StatusCode
from app.db.base import Base


class Order(Base):
    """Customer order; status is derived from its items"""
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("external_id", "store_id", name="uq_orders_external_store"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False)  # gid://shopify/Order/123
    order_number = Column(String(50), nullable=True, index=True)

    # Customer
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    # Shipping address
    address1 = Column(String(255), nullable=True)
    address2 = Column(String(255), nullable=True)
    province = Column(String(100), nullable=True)

    total_price = Column(Numeric(18, 2), nullable=True)
    is_prepaid = Column(Boolean, default=False, nullable=False)

    status = Column(String(30), default=StatusCode.PENDING.value, nullable=False, index=True)

    # Shipping provider booking
    delivery_id = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    store = relationship("Store", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    returned_items = relationship("ReturnedItem", back_populates="order")
    events = relationship("OrderEvent", back_populates="order", order_by="OrderEvent.id")

    def __repr__(self):
        return f"<Order #{self.order_number} {self.status}>"


class OrderItem(Base):
    """Line item; status derived from its units unless it was never batched"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id"), nullable=True)
    external_line_item_id = Column(String(100), nullable=True)  # gid://shopify/LineItem/...

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(18, 2), nullable=True)
    status = Column(String(30), default=StatusCode.PENDING.value, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    variant = relationship("ProductVariant")
    batch_items = relationship("BatchItem", back_populates="order_item", order_by="BatchItem.id")
    returned_items = relationship("ReturnedItem", back_populates="order_item")

    @property
    def variant_title(self):
        return self.variant.title if self.variant else None

    def __repr__(self):
        return f"<OrderItem {self.id} x{self.quantity} {self.status}>"


class ReturnedItem(Base):
    """Returned quantity of one order line"""
    __tablename__ = "returned_items"

    id = Column(Integer, primary_key=True, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)

    # Set once the refund has been issued on the commerce platform
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    order = relationship("Order", back_populates="returned_items")
    order_item = relationship("OrderItem", back_populates="returned_items")

    def __repr__(self):
        return f"<ReturnedItem order_item={self.order_item_id} x{self.quantity}>"
