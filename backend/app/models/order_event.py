"""
Order Event Model

Tracks activity history for orders - derived status changes and failed
external sync calls. Failed syncs stay here for out-of-band reconciliation.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from app.db.base import Base


class OrderEvent(Base):
    """Order Event - Activity log entry for an order"""
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Event Type
    # status_change, sync_failed, sync_succeeded, replacement, returned
    event_type = Column(String(50), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # For status changes
    old_value = Column(String(100), nullable=True)
    new_value = Column(String(100), nullable=True)

    # Examples: action=fulfill_order, tracking_number=ABC123
    metadata_key = Column(String(100), nullable=True)
    metadata_value = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    order = relationship("Order", back_populates="events")

    def __repr__(self):
        return f"<OrderEvent {self.event_type} for order {self.order_id}>"
