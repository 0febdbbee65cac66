"""
Stock models

StockVariant       -> per (store, product type, variant title) counter used
                      when allocating stock-backed rules
MainStock          -> shared pool behind pure stock rules, consumed at
                      fulfillment and restocked on return
MainStockQuantity  -> per-SKU mirror of a main stock pushed to the platform
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base
from app.models.classification_rule import main_stock_rules


class StockVariant(Base):
    """Available stock for a product type / variant in one store"""
    __tablename__ = "stock_variants"
    __table_args__ = (
        UniqueConstraint("store_id", "product_type", "variant_title", name="uq_stock_variant_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    product_type = Column(String(255), nullable=False)
    variant_title = Column(String(255), nullable=True)
    sku = Column(String(100), nullable=True)
    current_stock = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<StockVariant {self.product_type}/{self.variant_title} {self.current_stock}>"


class MainStock(Base):
    """Shared inventory pool linked to pure stock rules"""
    __tablename__ = "main_stocks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    rules = relationship("ClassificationRule", secondary=main_stock_rules, back_populates="main_stocks")
    sku_quantities = relationship("MainStockQuantity", back_populates="main_stock", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<MainStock {self.name} qty={self.quantity}>"


class MainStockQuantity(Base):
    """One platform SKU exposing a main stock pool"""
    __tablename__ = "main_stock_quantities"
    __table_args__ = (
        UniqueConstraint("main_stock_id", "sku", name="uq_main_stock_sku"),
    )

    id = Column(Integer, primary_key=True, index=True)
    main_stock_id = Column(Integer, ForeignKey("main_stocks.id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(100), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    main_stock = relationship("MainStock", back_populates="sku_quantities")

    def __repr__(self):
        return f"<MainStockQuantity {self.sku} qty={self.quantity}>"
