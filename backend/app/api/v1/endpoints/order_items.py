"""
Order item endpoints.
"""
from fastapi import APIRouter, Depends

from app.api.v1.deps import get_production_service
from app.schemas.production import OrderItemResponse, OrderItemStatusRequest
from app.services.production_service import ProductionService

router = APIRouter()


@router.patch(
    "/{order_item_id}/status",
    response_model=OrderItemResponse,
    summary="Set the status of an unbatched order item"
)
def set_order_item_status_endpoint(
    order_item_id: int,
    request: OrderItemStatusRequest,
    service: ProductionService = Depends(get_production_service),
):
    """
    Set the status of a stock item that never went through a batch.

    Side effects:
    - FULFILLED takes the quantity out of main stock
    - RETURNED puts it back and records a returned item
    """
    return service.set_order_item_status(order_item_id, request.status)
