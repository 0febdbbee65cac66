"""
Auto-status Engine

Derives a batch's status purely from design-file presence and capacity fill:

    files attached      -> DESIGNED
    capacity == 0       -> PENDING
    capacity < max      -> WAITING_BATCH
    capacity == max     -> BATCHED

Only acts while the batch is in an auto-managed state, so a manual or later
production status is never overridden. A batch that already has its QR codes
is never demoted from BATCHED to WAITING_BATCH. Idempotent.
"""
from typing import Optional

from sqlalchemy.orm import Session

from app.core.settings import Settings, get_settings
from app.core.status_config import AUTO_MANAGED_BATCH_STATUSES, StatusCode, is_already_done
from app.logging_config import get_logger
from app.models.batch import Batch, BatchFile
from app.services.cascade import propagate_batch
from app.services.qr_codes import generate_batch_qr_codes
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)


def decide_status(batch: Batch, has_files: bool) -> StatusCode:
    if has_files:
        return StatusCode.DESIGNED
    if batch.capacity == 0:
        return StatusCode.PENDING
    if not batch.is_full:
        return StatusCode.WAITING_BATCH
    return StatusCode.BATCHED


def auto_promote(
    db: Session,
    batch: Batch,
    outbox: SyncOutbox,
    qr=None,
    settings: Optional[Settings] = None,
) -> Optional[StatusCode]:
    """
    Recompute a batch's status from capacity and files.

    The new status is pushed down to units still in an earlier auto-managed
    state so the following cascade keeps the batch where it was placed. Units
    are never moved backwards, and a BATCHED batch with issued codes stays
    BATCHED when a unit leaves it.

    Returns:
        The batch status after the call, or None if the batch is not auto-managed
    """
    if batch.status not in AUTO_MANAGED_BATCH_STATUSES:
        logger.debug(f"Batch {batch.name} is {batch.status}, auto-status skipped")
        return None

    db.flush()
    has_files = db.query(BatchFile.id).filter(BatchFile.batch_id == batch.id).first() is not None
    target = decide_status(batch, has_files)
    if target == StatusCode.WAITING_BATCH and batch.status == StatusCode.BATCHED and batch.qr_code_token:
        # Codes are already printed for this batch; a freed slot does not reopen it
        target = StatusCode.BATCHED

    changed = target != batch.status
    if changed:
        logger.info(
            f"Auto-status: batch {batch.name} {batch.status} -> {target.value}",
            extra={"batch_id": batch.id, "capacity": batch.capacity, "max_capacity": batch.max_capacity},
        )
        batch.status = target.value

    for batch_item in batch.items:
        for unit in batch_item.units:
            if unit.status in AUTO_MANAGED_BATCH_STATUSES and not is_already_done(unit.status, target.value):
                unit.status = target.value
                changed = True

    if target == StatusCode.BATCHED and not batch.qr_code_token and qr is not None:
        generate_batch_qr_codes(batch, qr, settings or get_settings())

    if changed:
        propagate_batch(db, batch, outbox)
    return target
