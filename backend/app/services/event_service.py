"""
Event Service

Helpers for recording order timeline events: derived status changes,
replacements, returns and failed external sync calls.
"""
from typing import Optional
from sqlalchemy.orm import Session

from app.models.order_event import OrderEvent


def record_order_event(
    db: Session,
    order_id: int,
    event_type: str,
    title: str,
    description: Optional[str] = None,
    old_value: Optional[str] = None,
    new_value: Optional[str] = None,
    metadata_key: Optional[str] = None,
    metadata_value: Optional[str] = None,
) -> OrderEvent:
    """
    Record an event on an order's timeline.

    Args:
        db: Database session
        order_id: ID of the order
        event_type: Type of event (status_change, sync_failed, replacement, returned)
        title: Short description of the event
        description: Detailed description (optional)
        old_value: Previous value for status changes
        new_value: New value for status changes
        metadata_key: Additional context key
        metadata_value: Additional context value

    Returns:
        The created OrderEvent instance
    """
    event = OrderEvent(
        order_id=order_id,
        event_type=event_type,
        title=title,
        description=description,
        old_value=old_value,
        new_value=new_value,
        metadata_key=metadata_key,
        metadata_value=metadata_value[:255] if metadata_value else metadata_value,
    )
    db.add(event)
    # Don't commit - let the calling function handle the transaction
    return event


def record_status_change(db: Session, order_id: int, old_status: str, new_status: str) -> OrderEvent:
    """Record a derived order status change."""
    return record_order_event(
        db,
        order_id=order_id,
        event_type="status_change",
        title=f"Status changed from {old_status} to {new_status}",
        old_value=old_status,
        new_value=new_status,
    )


def record_sync_failure(db: Session, order_id: int, action: str, error: str) -> OrderEvent:
    """Record an external sync call that failed after commit."""
    return record_order_event(
        db,
        order_id=order_id,
        event_type="sync_failed",
        title=f"External sync failed: {action}",
        description=error,
        metadata_key="action",
        metadata_value=action,
    )
