"""
Classification rule model

A rule keys a production category by (store, product type, optional variant
title) and decides whether matching items are printed on demand, pulled
from stock, or both.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Table, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


# Many-to-many: a batch may serve several compatible rules
batch_rules = Table(
    "batch_rules",
    Base.metadata,
    Column("batch_id", Integer, ForeignKey("batches.id", ondelete="CASCADE"), primary_key=True),
    Column("rule_id", Integer, ForeignKey("product_type_rules.id", ondelete="CASCADE"), primary_key=True),
)

# Many-to-many: pure stock rules draw from shared main stocks
main_stock_rules = Table(
    "main_stock_rules",
    Base.metadata,
    Column("main_stock_id", Integer, ForeignKey("main_stocks.id", ondelete="CASCADE"), primary_key=True),
    Column("rule_id", Integer, ForeignKey("product_type_rules.id", ondelete="CASCADE"), primary_key=True),
)


class ClassificationRule(Base):
    """Production category for a (store, product type, variant) key"""
    __tablename__ = "product_type_rules"
    __table_args__ = (
        UniqueConstraint("store_id", "name", "variant_title", name="uq_rules_store_name_variant"),
    )

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)  # matches Product.product_type
    variant_title = Column(String(255), nullable=True)  # None = generic rule for every variant

    is_pod = Column(Boolean, default=True, nullable=False)
    requires_stock = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    store = relationship("Store", back_populates="rules")
    batches = relationship("Batch", secondary=batch_rules, back_populates="rules")
    main_stocks = relationship("MainStock", secondary=main_stock_rules, back_populates="rules")

    @property
    def is_pure_stock(self) -> bool:
        """Neither produced nor batched; fulfilled straight from main stock"""
        return not self.is_pod and not self.requires_stock

    def __repr__(self):
        variant = f" / {self.variant_title}" if self.variant_title else ""
        return f"<ClassificationRule {self.name}{variant}>"
