"""
Product and variant models

Rows are created by catalog sync; production only reads product_type and
variant title to resolve a classification rule.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class Product(Base):
    """A commerce platform product"""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("external_id", "store_id", name="uq_products_external_store"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False)  # gid://shopify/Product/123
    title = Column(String(255), nullable=False)
    product_type = Column(String(255), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    store = relationship("Store")
    variants = relationship("ProductVariant", back_populates="product", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Product {self.title} ({self.product_type})>"


class ProductVariant(Base):
    """A purchasable variant of a product (size, color...)"""
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("external_id", "product_id", name="uq_variants_external_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False)  # gid://shopify/ProductVariant/456
    title = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    product = relationship("Product", back_populates="variants")

    def __repr__(self):
        return f"<ProductVariant {self.title} sku={self.sku}>"
