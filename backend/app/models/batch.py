"""
Batch models - capacity-bounded production lots

Batch          -> a lot of units produced together (one rule family)
BatchItem      -> the part of one order line placed into a batch
BatchItemUnit  -> one physical unit, the finest-grained status holder
BatchFile      -> a design file attached to a batch
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from app.core.status_config import StatusCode
from app.db.base import Base
from app.models.classification_rule import batch_rules


class Batch(Base):
    """Production lot with a hard capacity ceiling"""
    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("capacity >= 0", name="ck_batches_capacity_non_negative"),
        CheckConstraint("capacity <= max_capacity", name="ck_batches_capacity_within_max"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)

    # Units currently assigned (== sum of BatchItem.quantity)
    capacity = Column(Integer, default=0, nullable=False)
    max_capacity = Column(Integer, default=10, nullable=False)

    status = Column(String(30), default=StatusCode.PENDING.value, nullable=False, index=True)

    # A batch serves either stock-backed items or POD items, never both
    handles_stock = Column(Boolean, default=False, nullable=False)

    # Scan identifier, generated the first time the batch becomes BATCHED
    qr_code_token = Column(String(64), unique=True, nullable=True, index=True)
    qr_code_url = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    rules = relationship("ClassificationRule", secondary=batch_rules, back_populates="batches")
    items = relationship("BatchItem", back_populates="batch", order_by="BatchItem.id")
    files = relationship("BatchFile", back_populates="batch", cascade="all, delete-orphan")

    @property
    def spare_capacity(self) -> int:
        return self.max_capacity - self.capacity

    @property
    def is_full(self) -> bool:
        return self.capacity >= self.max_capacity

    def __repr__(self):
        return f"<Batch {self.name} {self.capacity}/{self.max_capacity} {self.status}>"


class BatchItem(Base):
    """Assignment of some or all of one OrderItem's quantity into one Batch"""
    __tablename__ = "batch_items"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)

    # Count of non-cancelled units
    quantity = Column(Integer, default=0, nullable=False)
    status = Column(String(30), default=StatusCode.WAITING_BATCH.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    batch = relationship("Batch", back_populates="items")
    order_item = relationship("OrderItem", back_populates="batch_items")
    units = relationship("BatchItemUnit", back_populates="batch_item", order_by="BatchItemUnit.id")

    def __repr__(self):
        return f"<BatchItem batch={self.batch_id} order_item={self.order_item_id} qty={self.quantity}>"


class BatchItemUnit(Base):
    """One physical unit; never deleted, only cancelled and replaced"""
    __tablename__ = "batch_item_units"

    id = Column(Integer, primary_key=True, index=True)
    batch_item_id = Column(Integer, ForeignKey("batch_items.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(30), default=StatusCode.WAITING_BATCH.value, nullable=False, index=True)

    qr_code_token = Column(String(64), unique=True, nullable=True, index=True)
    qr_code_url = Column(Text, nullable=True)

    # Traceability for replacement units
    replaces_unit_id = Column(Integer, ForeignKey("batch_item_units.id", ondelete="SET NULL"), nullable=True)
    replacement_reason = Column(String(20), nullable=True)  # REDESIGN | REPRINT

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    batch_item = relationship("BatchItem", back_populates="units")
    replaces = relationship("BatchItemUnit", remote_side=[id])

    def __repr__(self):
        return f"<BatchItemUnit {self.id} {self.status}>"


class BatchFile(Base):
    """Design file attached to a batch; only its presence drives status"""
    __tablename__ = "batch_files"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    storage_url = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    batch = relationship("Batch", back_populates="files")

    def __repr__(self):
        return f"<BatchFile {self.file_name}>"
