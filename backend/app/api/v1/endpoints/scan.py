"""
Scan endpoints hit by the QR codes printed on batches and units.
"""
from fastapi import APIRouter, Depends

from app.api.v1.deps import get_production_service, get_scan_stage
from app.schemas.production import TransitionResponse
from app.services.production_service import ProductionService

router = APIRouter()


@router.post(
    "/batch/{token}",
    response_model=TransitionResponse,
    summary="Scan a batch QR code"
)
def scan_batch_endpoint(
    token: str,
    stage: str = Depends(get_scan_stage),
    service: ProductionService = Depends(get_production_service),
):
    """
    Move a batch and its active units to the stage's status.

    A repeated scan returns already_done=true instead of an error.
    """
    return service.scan_batch(token, stage)


@router.post(
    "/unit/{token}",
    response_model=TransitionResponse,
    summary="Scan a unit QR code"
)
def scan_unit_endpoint(
    token: str,
    stage: str = Depends(get_scan_stage),
    service: ProductionService = Depends(get_production_service),
):
    return service.scan_unit(stage, token=token)
