"""
Replacement Workflow

Pulls a defective unit out of production and re-queues a fresh unit for the
same order item, all inside the caller's transaction:

 1. cancel the unit (kept for traceability) and free its slot
 2. re-resolve the classification rule
 3. find an open batch (PENDING / WAITING_BATCH) with spare capacity, or
    create one the same way the allocator does
 4. find or create the BatchItem for the order item in that batch
 5. add one WAITING_BATCH unit with a fresh scan token
 6. cascade the order, then auto-status both batches
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.settings import Settings, get_settings
from app.core.status_config import OPEN_BATCH_STATUSES, ReplacementReason, StatusCode
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.logging_config import get_logger
from app.models.batch import BatchItem, BatchItemUnit
from app.services.auto_status import auto_promote
from app.services.batch_allocator import (
    add_units,
    create_batch,
    find_batch_with_capacity,
    release_unit,
    rule_for_order_item,
)
from app.services.cascade import propagate
from app.services.event_service import record_order_event
from app.services.qr_codes import assign_unit_qr
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)


@dataclass
class BatchRef:
    id: int
    name: str


@dataclass
class ReplacementResult:
    corrupted_unit_id: int
    new_unit_id: int
    new_unit_token: Optional[str]
    old_batch: BatchRef
    new_batch: BatchRef
    reason: str


def _parse_reason(reason: str) -> ReplacementReason:
    try:
        return ReplacementReason(str(reason).upper())
    except ValueError:
        raise ValidationError(
            f"Replacement reason must be one of {[r.value for r in ReplacementReason]}",
            field="reason",
            value=reason,
        )


def replace_unit(
    db: Session,
    outbox: SyncOutbox,
    unit_id: int,
    reason: str,
    qr=None,
    settings: Optional[Settings] = None,
) -> ReplacementResult:
    """
    Cancel a defective unit and queue its replacement.

    Raises:
        ValidationError: Unknown reason
        NotFoundError: Unit or its classification rule is missing
        PreconditionError: Unit was already cancelled
    """
    settings = settings or get_settings()
    replacement_reason = _parse_reason(reason)

    unit = db.query(BatchItemUnit).filter(BatchItemUnit.id == unit_id).with_for_update().first()
    if unit is None:
        raise NotFoundError("Unit", unit_id)
    if unit.status == StatusCode.CANCELLED:
        raise PreconditionError(
            f"Unit {unit_id} is already cancelled",
            current_state=unit.status,
        )

    old_batch_item = unit.batch_item
    order_item = old_batch_item.order_item

    rule = rule_for_order_item(db, order_item)
    if rule is None:
        raise NotFoundError("ClassificationRule", order_item.product.product_type)

    old_batch = release_unit(db, unit)

    target = find_batch_with_capacity(db, rule, bool(rule.requires_stock), statuses=OPEN_BATCH_STATUSES)
    if target is None:
        target = create_batch(db, rule, bool(rule.requires_stock), settings)

    batch_item = (
        db.query(BatchItem)
        .filter(BatchItem.batch_id == target.id, BatchItem.order_item_id == order_item.id)
        .first()
    )
    if batch_item is None:
        batch_item = BatchItem(
            batch=target,
            order_item=order_item,
            quantity=0,
            status=StatusCode.WAITING_BATCH.value,
        )
        db.add(batch_item)

    new_unit = add_units(db, target, batch_item, 1)[0]
    new_unit.replaces_unit_id = unit.id
    new_unit.replacement_reason = replacement_reason.value
    if qr is not None:
        assign_unit_qr(new_unit, qr, settings)
    db.flush()

    record_order_event(
        db,
        order_id=order_item.order_id,
        event_type="replacement",
        title=f"Unit {unit.id} replaced ({replacement_reason.value})",
        description=f"Moved from batch '{old_batch.name}' to '{target.name}'",
        metadata_key="new_unit_id",
        metadata_value=str(new_unit.id),
    )

    propagate(db, order_item.order_id, outbox)
    auto_promote(db, old_batch, outbox, qr, settings)
    if target.id != old_batch.id:
        auto_promote(db, target, outbox, qr, settings)

    logger.info(
        f"Replaced unit {unit.id} with {new_unit.id} ({replacement_reason.value})",
        extra={"old_batch_id": old_batch.id, "new_batch_id": target.id},
    )
    return ReplacementResult(
        corrupted_unit_id=unit.id,
        new_unit_id=new_unit.id,
        new_unit_token=new_unit.qr_code_token,
        old_batch=BatchRef(old_batch.id, old_batch.name),
        new_batch=BatchRef(target.id, target.name),
        reason=replacement_reason.value,
    )


def replacement_history(db: Session, unit_id: int) -> list:
    """Chain of units a unit replaced, newest first."""
    unit = db.get(BatchItemUnit, unit_id)
    if unit is None:
        raise NotFoundError("Unit", unit_id)
    chain = []
    while unit.replaces is not None:
        unit = unit.replaces
        chain.append(unit)
    return chain
