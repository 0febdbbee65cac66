"""
Manual overrides

Top-level writes an operator can make directly. Each one runs the same
cascade as scans do:

- set_batch_status: force a batch (and its active units) to a status
- attach_design_file: add a design file, then re-run auto-status
- set_order_item_status: write the status of a pure stock order item,
  moving main stock on fulfillment and return
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.settings import Settings
from app.core.status_config import StatusCode, parse_status
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchFile
from app.models.order import OrderItem
from app.services import stock_service
from app.services.auto_status import auto_promote
from app.services.batch_allocator import release_unit, rule_for_order_item
from app.services.cascade import propagate, propagate_batch
from app.services.returns import create_returned_item
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)


def _require_status(status: str) -> StatusCode:
    code = parse_status(status)
    if code is None:
        raise ValidationError(f"Unknown status '{status}'", field="status", value=status)
    return code


def _locked_batch(db: Session, batch_id: int) -> Batch:
    batch = db.query(Batch).filter(Batch.id == batch_id).with_for_update().first()
    if batch is None:
        raise NotFoundError("Batch", batch_id)
    return batch


def set_batch_status(db: Session, outbox: SyncOutbox, batch_id: int, status: str) -> Batch:
    """
    Force a batch to a status and push it down to every active unit.

    CANCELLED releases all active units so capacity drops to zero.
    """
    target = _require_status(status)
    if target == StatusCode.RETURNED:
        raise ValidationError("Batches cannot be returned; return units instead", field="status", value=status)

    batch = _locked_batch(db, batch_id)
    previous = batch.status
    order_ids = {batch_item.order_item.order_id for batch_item in batch.items}

    for batch_item in batch.items:
        for unit in batch_item.units:
            if unit.status == StatusCode.CANCELLED:
                continue
            if target == StatusCode.CANCELLED:
                release_unit(db, unit)
            else:
                unit.status = target.value

    batch.status = target.value
    logger.info(
        f"Batch {batch.name} manually set {previous} -> {target.value}",
        extra={"batch_id": batch.id},
    )
    propagate_batch(db, batch, outbox, order_ids=order_ids)
    # A batch with no active items keeps the forced status
    batch.status = target.value
    db.flush()
    return batch


def attach_design_file(
    db: Session,
    outbox: SyncOutbox,
    batch_id: int,
    file_name: str,
    mime_type: Optional[str] = None,
    size_bytes: Optional[int] = None,
    storage_url: Optional[str] = None,
    qr=None,
    settings: Optional[Settings] = None,
) -> BatchFile:
    if not file_name:
        raise ValidationError("File name is required", field="file_name")

    batch = _locked_batch(db, batch_id)
    batch_file = BatchFile(
        batch=batch,
        file_name=file_name,
        mime_type=mime_type,
        size_bytes=size_bytes,
        storage_url=storage_url,
    )
    db.add(batch_file)
    db.flush()
    logger.info(f"Design file '{file_name}' attached to batch {batch.name}", extra={"batch_id": batch.id})

    auto_promote(db, batch, outbox, qr, settings)
    return batch_file


def set_order_item_status(db: Session, outbox: SyncOutbox, order_item_id: int, status: str) -> OrderItem:
    """
    Write the status of an order item that was never batched.

    FULFILLED takes the item's quantity out of its rule's main stocks;
    RETURNED from FULFILLED/COMPLETED puts it back and records the return.

    Raises:
        PreconditionError: The item is batched (its status is derived), or
            RETURNED was requested before fulfillment
        InsufficientStockError: Main stock would go negative
    """
    target = _require_status(status)
    order_item = db.query(OrderItem).filter(OrderItem.id == order_item_id).with_for_update().first()
    if order_item is None:
        raise NotFoundError("OrderItem", order_item_id)
    if order_item.batch_items:
        raise PreconditionError(
            f"Order item {order_item_id} is batched; its status follows its units",
            current_state=order_item.status,
        )

    previous = order_item.status
    if previous == target:
        return order_item

    rule = rule_for_order_item(db, order_item)
    fulfilled_states = (StatusCode.FULFILLED, StatusCode.COMPLETED)

    if target == StatusCode.RETURNED:
        if previous not in fulfilled_states:
            raise PreconditionError(
                f"Order item {order_item_id} is {previous}, only fulfilled items can be returned",
                current_state=previous,
                allowed_states=[s.value for s in fulfilled_states],
            )
        if rule is not None:
            stock_service.adjust_main_stock(db, rule, order_item.quantity, "increment", outbox, order_item.order_id)
        create_returned_item(db, order_item, order_item.quantity)
    elif target == StatusCode.FULFILLED and previous not in fulfilled_states:
        if rule is not None:
            stock_service.adjust_main_stock(db, rule, order_item.quantity, "decrement", outbox, order_item.order_id)

    order_item.status = target.value
    logger.info(
        f"Order item {order_item.id} manually set {previous} -> {target.value}",
        extra={"order_item_id": order_item.id},
    )
    propagate(db, order_item.order_id, outbox)
    return order_item
