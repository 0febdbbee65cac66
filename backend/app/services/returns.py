"""
Returns

Marks fulfilled units RETURNED and records one ReturnedItem per order line.
Refunds are issued by the dispatcher once the whole order is RETURNED.
"""
from collections import OrderedDict
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.status_config import StatusCode
from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.batch import BatchItemUnit
from app.models.order import OrderItem, ReturnedItem
from app.services.cascade import propagate
from app.services.event_service import record_order_event
from app.services.sync_dispatcher import SyncOutbox
from app.services.unit_state_machine import apply_unit_transition

logger = get_logger(__name__)


def returned_quantity(db: Session, order_item_id: int) -> int:
    db.flush()
    total = (
        db.query(func.coalesce(func.sum(ReturnedItem.quantity), 0))
        .filter(ReturnedItem.order_item_id == order_item_id)
        .scalar()
    )
    return int(total or 0)


def create_returned_item(
    db: Session,
    order_item: OrderItem,
    quantity: int,
    reason: Optional[str] = None,
) -> ReturnedItem:
    """
    Record a returned quantity of one order line.

    Raises:
        ValidationError: quantity <= 0, or more returned than ordered
    """
    if quantity <= 0:
        raise ValidationError("Return quantity must be > 0", field="quantity", value=quantity)

    already = returned_quantity(db, order_item.id)
    if already + quantity > order_item.quantity:
        raise ValidationError(
            f"Return quantity ({already + quantity}) cannot exceed ordered quantity ({order_item.quantity})",
            field="quantity",
            value=quantity,
        )

    returned = ReturnedItem(
        order_item_id=order_item.id,
        order_id=order_item.order_id,
        store_id=order_item.order.store_id,
        quantity=quantity,
        reason=reason,
    )
    db.add(returned)
    # Don't commit - let the calling function handle the transaction
    return returned


def mark_units_returned(
    db: Session,
    outbox: SyncOutbox,
    unit_ids: List[int],
    reason: Optional[str] = None,
) -> List[ReturnedItem]:
    """
    Return fulfilled units.

    Units already RETURNED are skipped; units not yet fulfilled raise
    PreconditionError through the state machine guard.
    """
    if not unit_ids:
        raise ValidationError("No units given", field="unit_ids")

    units = (
        db.query(BatchItemUnit)
        .filter(BatchItemUnit.id.in_(unit_ids))
        .order_by(BatchItemUnit.id)
        .with_for_update()
        .all()
    )
    missing = set(unit_ids) - {u.id for u in units}
    if missing:
        raise NotFoundError("Unit", sorted(missing)[0])

    per_item = OrderedDict()
    for unit in units:
        result = apply_unit_transition(unit, StatusCode.RETURNED)
        if result.already_done:
            continue
        order_item = unit.batch_item.order_item
        per_item.setdefault(order_item.id, [order_item, 0])
        per_item[order_item.id][1] += 1

    returned_items = []
    order_ids = set()
    for order_item, count in per_item.values():
        returned_items.append(create_returned_item(db, order_item, count, reason))
        order_ids.add(order_item.order_id)
        record_order_event(
            db,
            order_id=order_item.order_id,
            event_type="returned",
            title=f"{count} unit(s) returned",
            description=reason,
            metadata_key="order_item_id",
            metadata_value=str(order_item.id),
        )

    for order_id in sorted(order_ids):
        propagate(db, order_id, outbox)

    logger.info(f"Returned {sum(c for _, c in per_item.values())} unit(s)", extra={"order_ids": sorted(order_ids)})
    return returned_items
