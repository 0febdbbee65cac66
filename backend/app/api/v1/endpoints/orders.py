"""
Order endpoints.
"""
from fastapi import APIRouter, Depends

from app.api.v1.deps import get_production_service
from app.schemas.production import OrderResponse
from app.services.production_service import ProductionService

router = APIRouter()


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get an order with its items and events"
)
def get_order(
    order_id: int,
    service: ProductionService = Depends(get_production_service),
):
    return service.get_order(order_id)
