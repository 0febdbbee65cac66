"""
Scan token helpers for batches and units
"""
from typing import Optional

from app.core.settings import Settings, get_settings
from app.core.status_config import StatusCode
from app.exceptions import ExternalSyncError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchItemUnit

logger = get_logger(__name__)


def scan_url(kind: str, token: str, settings: Optional[Settings] = None) -> str:
    """Public URL a scanner opens for a batch or unit token"""
    settings = settings or get_settings()
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{settings.API_V1_STR}/scan/{kind}/{token}"


def _render(qr, kind: str, token: str, settings: Settings) -> Optional[str]:
    try:
        return qr.render_data_url(scan_url(kind, token, settings))
    except ExternalSyncError as e:
        # The token alone is enough to scan; the image can be regenerated later
        logger.error(f"QR render failed for {kind} {token}: {e}", extra={"kind": kind})
        return None


def assign_unit_qr(unit: BatchItemUnit, qr, settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    unit.qr_code_token = qr.generate_token()
    unit.qr_code_url = _render(qr, "unit", unit.qr_code_token, settings)


def generate_batch_qr_codes(batch: Batch, qr, settings: Optional[Settings] = None) -> int:
    """
    Give the batch and every active unit without one a scan token.

    Returns:
        Number of unit tokens issued
    """
    settings = settings or get_settings()
    if not batch.qr_code_token:
        batch.qr_code_token = qr.generate_token()
        batch.qr_code_url = _render(qr, "batch", batch.qr_code_token, settings)

    issued = 0
    for batch_item in batch.items:
        for unit in batch_item.units:
            if unit.status != StatusCode.CANCELLED and not unit.qr_code_token:
                assign_unit_qr(unit, qr, settings)
                issued += 1

    logger.info(f"Batch {batch.name} QR codes ready ({issued} unit codes issued)", extra={"batch_id": batch.id})
    return issued
