"""
Commerce platform webhooks.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Header

from app.api.v1.deps import get_production_service
from app.logging_config import get_logger
from app.schemas.production import IngestResponse
from app.services.production_service import ProductionService

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/orders/create",
    response_model=IngestResponse,
    summary="Ingest an orders/create webhook"
)
def order_created_webhook(
    payload: Dict[str, Any] = Body(...),
    x_shopify_shop_domain: str = Header(..., alias="X-Shopify-Shop-Domain"),
    service: ProductionService = Depends(get_production_service),
):
    """
    Store a new order and allocate its items to batches.

    Redelivered webhooks for an order that already exists are acknowledged
    with created=false and change nothing.
    """
    result = service.ingest_order(x_shopify_shop_domain, payload)
    order = result.order
    return IngestResponse(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        created=result.created,
    )
