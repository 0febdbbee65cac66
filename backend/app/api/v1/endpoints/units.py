"""
Unit endpoints: bulk status, replacement, returns.
"""
from typing import List

from fastapi import APIRouter, Depends

from app.api.v1.deps import get_production_service
from app.schemas.production import (
    ReplaceUnitRequest,
    ReplacementResponse,
    ReturnedItemResponse,
    ReturnUnitsRequest,
    UnitResponse,
    UnitStatusUpdateRequest,
)
from app.services.production_service import ProductionService
from app.services.replacement import replacement_history

router = APIRouter()


@router.patch(
    "/status",
    response_model=List[UnitResponse],
    summary="Bulk update unit status"
)
def update_units_status(
    request: UnitStatusUpdateRequest,
    service: ProductionService = Depends(get_production_service),
):
    """
    Write one status to many units and cascade to items, batches and orders.

    Validations:
    - RETURNED must go through POST /units/returns
    - Cancelled units are left unchanged
    """
    return service.update_units_status(request.unit_ids, request.status)


@router.post(
    "/returns",
    response_model=List[ReturnedItemResponse],
    status_code=201,
    summary="Return fulfilled units"
)
def return_units(
    request: ReturnUnitsRequest,
    service: ProductionService = Depends(get_production_service),
):
    return service.mark_units_returned(request.unit_ids, request.reason)


@router.post(
    "/{unit_id}/replace",
    response_model=ReplacementResponse,
    summary="Replace a defective unit"
)
def replace_unit_endpoint(
    unit_id: int,
    request: ReplaceUnitRequest,
    service: ProductionService = Depends(get_production_service),
):
    """
    Cancel a unit and queue a fresh one in an open batch.

    The new unit keeps a link to the unit it replaces.
    """
    return service.replace_unit(unit_id, request.reason)


@router.get(
    "/{unit_id}/replacements",
    response_model=List[UnitResponse],
    summary="Units this unit replaced, newest first"
)
def get_replacement_history(
    unit_id: int,
    service: ProductionService = Depends(get_production_service),
):
    return replacement_history(service.db, unit_id)
