"""
Unit State Machine

Scan-driven and bulk transitions of BatchItemUnits. Scans check the unit's
current status against SCAN_TRANSITIONS; a duplicate or late scan of a
stage the unit already passed returns already_done instead of failing.
Every accepted transition runs the cascade in the same transaction.
"""
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.settings import Settings
from app.core.status_config import (
    SCAN_STAGES,
    SCAN_TRANSITIONS,
    StatusCode,
    get_allowed_scan_sources,
    is_already_done,
    parse_status,
)
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchItemUnit
from app.services.auto_status import auto_promote
from app.services.batch_allocator import release_unit
from app.services.cascade import propagate, propagate_batch
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)


@dataclass
class TransitionResult:
    """Outcome of a scan"""
    entity: str  # "unit" or "batch"
    entity_id: int
    previous_status: str
    status: str
    already_done: bool = False
    units_updated: int = 0


def target_for_stage(stage: str) -> StatusCode:
    """Map a scan station ("printer", "cutter"...) or a status name to the target status."""
    target = SCAN_STAGES.get(stage.lower()) if stage else None
    if target is None:
        target = parse_status(stage)
    if target is None or target not in SCAN_TRANSITIONS:
        raise ValidationError(f"Unknown scan stage '{stage}'", field="stage", value=stage)
    return target


def check_transition(current: str, target: StatusCode, label: str) -> bool:
    """
    Guard a scan transition.

    Returns:
        True if the transition should be applied, False if already done

    Raises:
        PreconditionError: Wrong stage, or the entity is cancelled
    """
    if current == StatusCode.CANCELLED:
        raise PreconditionError(
            f"{label} is cancelled",
            current_state=current,
            allowed_states=get_allowed_scan_sources(target),
        )
    if is_already_done(current, target):
        return False
    if parse_status(current) not in SCAN_TRANSITIONS[target]:
        raise PreconditionError(
            f"{label} is {current}, cannot move to {target.value}",
            current_state=current,
            allowed_states=get_allowed_scan_sources(target),
        )
    return True


def apply_unit_transition(unit: BatchItemUnit, target: StatusCode) -> TransitionResult:
    """Guard and apply one unit transition without cascading."""
    previous = unit.status
    if not check_transition(previous, target, f"Unit {unit.id}"):
        logger.info(f"Unit {unit.id} already {previous}, scan to {target.value} ignored")
        return TransitionResult("unit", unit.id, previous, previous, already_done=True)

    unit.status = target.value
    return TransitionResult("unit", unit.id, previous, unit.status, units_updated=1)


def _load_unit(db: Session, unit_id: Optional[int] = None, token: Optional[str] = None) -> BatchItemUnit:
    query = db.query(BatchItemUnit)
    if token is not None:
        unit = query.filter(BatchItemUnit.qr_code_token == token).with_for_update().first()
        if unit is None:
            raise NotFoundError("Unit", token)
        return unit
    unit = query.filter(BatchItemUnit.id == unit_id).with_for_update().first()
    if unit is None:
        raise NotFoundError("Unit", unit_id)
    return unit


def scan_unit(
    db: Session,
    outbox: SyncOutbox,
    stage: str,
    unit_id: Optional[int] = None,
    token: Optional[str] = None,
) -> TransitionResult:
    """Scan one unit (by id or QR token) into the stage's target status."""
    target = target_for_stage(stage)
    unit = _load_unit(db, unit_id=unit_id, token=token)
    result = apply_unit_transition(unit, target)
    if not result.already_done:
        logger.info(
            f"Unit {unit.id} {result.previous_status} -> {result.status}",
            extra={"unit_id": unit.id, "stage": stage},
        )
        propagate(db, unit.batch_item.order_item.order_id, outbox)
    return result


def scan_batch(db: Session, outbox: SyncOutbox, token: str, stage: str = "printer") -> TransitionResult:
    """
    Scan a whole batch (e.g. a printed sheet) into the stage's target status.

    The batch must be in an allowed source status. Its active units in an
    allowed source status move with it; units already past the stage stay.
    """
    target = target_for_stage(stage)
    batch = db.query(Batch).filter(Batch.qr_code_token == token).with_for_update().first()
    if batch is None:
        raise NotFoundError("Batch", token)

    previous = batch.status
    if not check_transition(previous, target, f"Batch {batch.name}"):
        return TransitionResult("batch", batch.id, previous, previous, already_done=True)

    batch.status = target.value
    moved = 0
    for batch_item in batch.items:
        for unit in batch_item.units:
            if parse_status(unit.status) in SCAN_TRANSITIONS[target]:
                unit.status = target.value
                moved += 1

    logger.info(
        f"Batch {batch.name} {previous} -> {target.value} ({moved} units)",
        extra={"batch_id": batch.id, "stage": stage},
    )
    propagate_batch(db, batch, outbox)
    return TransitionResult("batch", batch.id, previous, batch.status, units_updated=moved)


def bulk_update_units(
    db: Session,
    outbox: SyncOutbox,
    unit_ids: List[int],
    status: str,
    qr=None,
    settings: Optional[Settings] = None,
) -> List[BatchItemUnit]:
    """
    Manual override: write one status to many units, then cascade.

    CANCELLED frees each unit's batch slot. RETURNED goes through the
    returns workflow so a ReturnedItem is recorded. Cancelled units are
    terminal and left unchanged.
    """
    target = parse_status(status)
    if target is None:
        raise ValidationError(f"Unknown status '{status}'", field="status", value=status)
    if target == StatusCode.RETURNED:
        raise ValidationError("Use the returns workflow to mark units RETURNED", field="status", value=status)
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

    order_ids = set()
    released = {}
    for unit in units:
        if unit.status == StatusCode.CANCELLED:
            logger.warning(f"Unit {unit.id} is cancelled, bulk update to {target.value} skipped")
            continue
        if target == StatusCode.CANCELLED:
            batch = release_unit(db, unit)
            released[batch.id] = batch
        else:
            unit.status = target.value
        order_ids.add(unit.batch_item.order_item.order_id)

    for order_id in sorted(order_ids):
        propagate(db, order_id, outbox)

    # Freed slots change capacity fill
    for batch_id in sorted(released):
        auto_promote(db, released[batch_id], outbox, qr, settings)

    logger.info(f"Bulk updated {len(units)} unit(s) to {target.value}", extra={"status": target.value})
    return units
