"""
Cascade Propagator

Re-derives statuses bottom-up after any unit or item write, inside the
caller's transaction:

    Unit -> BatchItem -> Batch
    Unit -> OrderItem -> Order

Each level reads the already-updated level below it. External side effects
of a terminal order status are queued on the outbox, never called here.
"""
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from app.core.status_config import (
    ORDER_STATUS_PRIORITY,
    TERMINAL_ORDER_STATUSES,
    UNIT_STATUS_PRIORITY,
    StatusCode,
)
from app.exceptions import NotFoundError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchItem, BatchItemUnit
from app.models.order import Order, OrderItem
from app.services.event_service import record_status_change
from app.services.status_resolver import resolve
from app.services.sync_dispatcher import CANCEL_ORDER, CREATE_REFUNDS, FULFILL_ORDER, SyncOutbox

logger = get_logger(__name__)

_TERMINAL_ACTIONS = {
    StatusCode.FULFILLED: FULFILL_ORDER,
    StatusCode.CANCELLED: CANCEL_ORDER,
    StatusCode.RETURNED: CREATE_REFUNDS,
}


def _derive_from_units(units: Iterable[BatchItemUnit], current: str) -> str:
    units = list(units)
    if not units:
        return current
    active = [u.status for u in units if u.status != StatusCode.CANCELLED]
    if not active:
        return StatusCode.CANCELLED.value
    return resolve(active, UNIT_STATUS_PRIORITY).value


def recompute_batch_item(batch_item: BatchItem) -> str:
    """BatchItem status from its non-cancelled units."""
    batch_item.status = _derive_from_units(batch_item.units, batch_item.status)
    return batch_item.status


def recompute_batch(batch: Batch) -> str:
    """Promote the batch when all of its active items share one status."""
    statuses = {item.status for item in batch.items if item.status != StatusCode.CANCELLED}
    if len(statuses) == 1:
        new_status = statuses.pop()
        if new_status != batch.status:
            logger.info(
                f"Batch {batch.name} status {batch.status} -> {new_status}",
                extra={"batch_id": batch.id},
            )
            batch.status = new_status
    return batch.status


def recompute_order_item(order_item: OrderItem) -> str:
    """
    OrderItem status from the union of its batch items' units.

    An item with no batch items is a pure stock item; its status is set
    directly by the caller and left alone here.
    """
    if not order_item.batch_items:
        return order_item.status
    units = [unit for batch_item in order_item.batch_items for unit in batch_item.units]
    order_item.status = _derive_from_units(units, order_item.status)
    return order_item.status


def recompute_order(db: Session, order: Order, outbox: SyncOutbox) -> str:
    """
    Order status from its items, earliest stage first.

    Entering FULFILLED, CANCELLED or RETURNED queues exactly one external
    action for the order.
    """
    if not order.items:
        return order.status

    new_status = resolve([item.status for item in order.items], ORDER_STATUS_PRIORITY)
    old_status = order.status
    if new_status == old_status:
        return order.status

    order.status = new_status.value
    record_status_change(db, order.id, old_status, new_status.value)
    logger.info(
        f"Order #{order.order_number} status {old_status} -> {new_status.value}",
        extra={"order_id": order.id},
    )

    if new_status in TERMINAL_ORDER_STATUSES:
        outbox.enqueue(_TERMINAL_ACTIONS[new_status], order.id)
    return order.status


def propagate(db: Session, order_id: int, outbox: SyncOutbox) -> Order:
    """
    Re-derive every status in one order's tree.

    Raises:
        NotFoundError: If the order does not exist
    """
    db.flush()
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)

    touched_batches: Dict[int, Batch] = {}
    for order_item in order.items:
        for batch_item in order_item.batch_items:
            recompute_batch_item(batch_item)
            touched_batches[batch_item.batch_id] = batch_item.batch

    for batch_id in sorted(touched_batches):
        recompute_batch(touched_batches[batch_id])

    for order_item in order.items:
        recompute_order_item(order_item)

    recompute_order(db, order, outbox)
    db.flush()
    return order


def propagate_batch(db: Session, batch: Batch, outbox: SyncOutbox, order_ids: Optional[Iterable[int]] = None) -> None:
    """
    Cascade after a batch-wide unit write.

    Every item of the batch is recomputed first so the batch reads fresh
    children, then each affected order is propagated.
    """
    db.flush()
    for batch_item in batch.items:
        recompute_batch_item(batch_item)
    recompute_batch(batch)

    if order_ids is None:
        order_ids = {batch_item.order_item.order_id for batch_item in batch.items}
    for order_id in sorted(set(order_ids)):
        propagate(db, order_id, outbox)
