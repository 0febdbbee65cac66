"""
API v1 Router - PodOps
"""
from fastapi import APIRouter
from app.api.v1.endpoints import (
    webhooks,
    scan,
    batches,
    units,
    order_items,
    orders,
)

router = APIRouter()

# Commerce platform webhooks
router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["webhooks"]
)

# QR scan stations
router.include_router(
    scan.router,
    prefix="/scan",
    tags=["scan"]
)

# Batches
router.include_router(
    batches.router,
    prefix="/batches",
    tags=["batches"]
)

# Units (bulk status, replacement, returns)
router.include_router(
    units.router,
    prefix="/units",
    tags=["units"]
)

# Order items
router.include_router(
    order_items.router,
    prefix="/order-items",
    tags=["order-items"]
)

# Orders
router.include_router(
    orders.router,
    prefix="/orders",
    tags=["orders"]
)
