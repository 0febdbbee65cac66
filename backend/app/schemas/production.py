"""
Schemas for batches, units, scans and order status.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


# ===================
# Requests
# ===================

class ScanRequest(BaseModel):
    """Optional body for a scan; the stage can also come from the query string."""
    stage: Optional[str] = Field(None, description="Scan station (designer, printer, cutter, fulfillment, shipping) or status")


class BatchStatusRequest(BaseModel):
    """Manual batch status override."""
    status: str = Field(..., min_length=1, max_length=30, description="Target status for the batch and its active units")


class BatchFileRequest(BaseModel):
    """Design file attached to a batch."""
    file_name: str = Field(..., min_length=1, max_length=255, description="Original file name")
    mime_type: Optional[str] = Field(None, max_length=100)
    size_bytes: Optional[int] = Field(None, ge=0)
    storage_url: Optional[str] = Field(None, description="Where the file is stored")


class UnitStatusUpdateRequest(BaseModel):
    """Bulk unit status write."""
    unit_ids: List[int] = Field(..., min_length=1, description="Units to update")
    status: str = Field(..., min_length=1, max_length=30)


class ReplaceUnitRequest(BaseModel):
    """Replace a defective unit."""
    reason: str = Field(..., description="REDESIGN or REPRINT")


class ReturnUnitsRequest(BaseModel):
    """Return fulfilled units."""
    unit_ids: List[int] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500, description="Why the customer returned the units")


class OrderItemStatusRequest(BaseModel):
    """Status write for an order item that is not batched."""
    status: str = Field(..., min_length=1, max_length=30)


# ===================
# Responses
# ===================

class TransitionResponse(BaseModel):
    """Result of a scan."""
    entity: str
    entity_id: int
    previous_status: str
    status: str
    already_done: bool = False
    units_updated: int = 0

    class Config:
        from_attributes = True


class UnitResponse(BaseModel):
    id: int
    batch_item_id: int
    status: str
    qr_code_token: Optional[str] = None
    qr_code_url: Optional[str] = None
    replaces_unit_id: Optional[int] = None
    replacement_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchItemResponse(BaseModel):
    id: int
    order_item_id: int
    quantity: int
    status: str
    units: List[UnitResponse] = []

    class Config:
        from_attributes = True


class BatchFileResponse(BaseModel):
    id: int
    batch_id: int
    file_name: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    storage_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BatchResponse(BaseModel):
    """Batch with its items and units."""
    id: int
    name: str
    capacity: int
    max_capacity: int
    status: str
    handles_stock: bool
    qr_code_token: Optional[str] = None
    qr_code_url: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[BatchItemResponse] = []
    files: List[BatchFileResponse] = []

    class Config:
        from_attributes = True


class BatchRefResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class ReplacementResponse(BaseModel):
    """Outcome of a unit replacement."""
    corrupted_unit_id: int
    new_unit_id: int
    new_unit_token: Optional[str] = None
    old_batch: BatchRefResponse
    new_batch: BatchRefResponse
    reason: str

    class Config:
        from_attributes = True


class ReturnedItemResponse(BaseModel):
    id: int
    order_item_id: int
    order_id: int
    quantity: int
    reason: Optional[str] = None
    refunded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderItemResponse(BaseModel):
    id: int
    order_id: int
    product_id: int
    variant_id: Optional[int] = None
    variant_title: Optional[str] = None
    external_line_item_id: Optional[str] = None
    quantity: int
    price: Optional[Decimal] = None
    status: str

    class Config:
        from_attributes = True


class OrderEventResponse(BaseModel):
    id: int
    event_type: str
    title: str
    description: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order with derived status, items and event timeline."""
    id: int
    store_id: int
    external_id: str
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    total_price: Optional[Decimal] = None
    is_prepaid: bool
    status: str
    delivery_id: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    events: List[OrderEventResponse] = []

    class Config:
        from_attributes = True


class IngestResponse(BaseModel):
    """Webhook acknowledgement."""
    order_id: int
    order_number: Optional[str] = None
    status: str
    created: bool = Field(..., description="False when the order had already been ingested")
