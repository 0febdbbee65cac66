"""
Batch endpoints: inspection, manual status, design files.
"""
from fastapi import APIRouter, Depends

from app.api.v1.deps import get_production_service
from app.schemas.production import (
    BatchFileRequest,
    BatchFileResponse,
    BatchResponse,
    BatchStatusRequest,
)
from app.services.production_service import ProductionService

router = APIRouter()


@router.get(
    "/{batch_id}",
    response_model=BatchResponse,
    summary="Get a batch with its items and units"
)
def get_batch(
    batch_id: int,
    service: ProductionService = Depends(get_production_service),
):
    return service.get_batch(batch_id)


@router.patch(
    "/{batch_id}/status",
    response_model=BatchResponse,
    summary="Force a batch status"
)
def set_batch_status_endpoint(
    batch_id: int,
    request: BatchStatusRequest,
    service: ProductionService = Depends(get_production_service),
):
    """
    Set the batch and all of its active units to a status.

    CANCELLED releases every unit and frees the batch's capacity.
    """
    return service.set_batch_status(batch_id, request.status)


@router.post(
    "/{batch_id}/files",
    response_model=BatchFileResponse,
    status_code=201,
    summary="Attach a design file"
)
def attach_design_file_endpoint(
    batch_id: int,
    request: BatchFileRequest,
    service: ProductionService = Depends(get_production_service),
):
    """
    Attach a design file to a batch.

    An auto-managed batch with a design file moves to DESIGNED.
    """
    return service.attach_design_file(
        batch_id,
        request.file_name,
        mime_type=request.mime_type,
        size_bytes=request.size_bytes,
        storage_url=request.storage_url,
    )


@router.post(
    "/{batch_id}/auto-status",
    response_model=BatchResponse,
    summary="Re-run automatic batch status"
)
def auto_status_endpoint(
    batch_id: int,
    service: ProductionService = Depends(get_production_service),
):
    service.auto_promote(batch_id)
    return service.get_batch(batch_id)
