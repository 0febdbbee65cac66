"""
Order Ingestion

Turns an orders/create webhook payload into an Order with its OrderItems
and hands every item to the allocator, all in the caller's transaction.
Duplicate deliveries of the same external order are skipped. When two
deliveries race, the loser's insert hits the unique constraint and raises
ConflictError; the retry then finds the committed order.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.settings import Settings, get_settings
from app.core.status_config import StatusCode
from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.order import Order, OrderItem
from app.models.product import Product, ProductVariant
from app.models.store import Store
from app.services.batch_allocator import assign_order_item
from app.services.cascade import propagate
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)

PAID_FINANCIAL_STATUSES = {"paid", "partially_refunded", "refunded"}


@dataclass
class IngestResult:
    order: Order
    created: bool


def order_gid(external_id: Any) -> str:
    return f"gid://shopify/Order/{external_id}"


def _find_order(db: Session, store_id: int, external_id: str) -> Optional[Order]:
    return (
        db.query(Order)
        .filter(Order.external_id == external_id, Order.store_id == store_id)
        .first()
    )


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def merge_line_items(line_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse line items sharing product and variant, summing quantities."""
    merged: Dict[str, Dict[str, Any]] = {}
    for item in line_items:
        key = f"{item.get('product_id')}-{item.get('variant_id') or 'null'}"
        if key not in merged:
            merged[key] = dict(item)
        else:
            merged[key]["quantity"] = merged[key].get("quantity", 0) + item.get("quantity", 0)
    return list(merged.values())


def customer_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Customer and address, preferring the customer's default address."""
    customer = payload.get("customer") or {}
    default_address = customer.get("default_address") or {}
    shipping = payload.get("shipping_address") or {}

    name = None
    if customer:
        name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip() or None

    return {
        "customer_name": name,
        "customer_email": customer.get("email") or payload.get("email"),
        "customer_phone": customer.get("phone") or default_address.get("phone") or shipping.get("phone"),
        "address1": default_address.get("address1") or shipping.get("address1"),
        "address2": default_address.get("address2") or shipping.get("address2"),
        "province": default_address.get("province") or shipping.get("province"),
    }


def _build_items(db: Session, store: Store, line_items: List[Dict[str, Any]]) -> List[OrderItem]:
    items = []
    for line in merge_line_items(line_items):
        quantity = int(line.get("quantity") or 0)
        if quantity <= 0:
            logger.warning(f"Line item {line.get('id')} has no quantity, skipped")
            continue

        product = (
            db.query(Product)
            .filter(
                Product.external_id == f"gid://shopify/Product/{line.get('product_id')}",
                Product.store_id == store.id,
            )
            .first()
        )
        if product is None:
            logger.warning(f"Product not found: {line.get('product_id')}", extra={"store_id": store.id})
            continue

        variant = None
        if line.get("variant_id"):
            variant = (
                db.query(ProductVariant)
                .filter(
                    ProductVariant.external_id == f"gid://shopify/ProductVariant/{line['variant_id']}",
                    ProductVariant.product_id == product.id,
                )
                .first()
            )

        items.append(OrderItem(
            product=product,
            variant=variant,
            external_line_item_id=f"gid://shopify/LineItem/{line['id']}" if line.get("id") else None,
            quantity=quantity,
            price=_to_decimal(line.get("price")),
            status=StatusCode.PENDING.value,
        ))
    return items


def ingest_order(
    db: Session,
    outbox: SyncOutbox,
    shop_domain: str,
    payload: Dict[str, Any],
    qr=None,
    settings: Optional[Settings] = None,
) -> IngestResult:
    """
    Persist an external order and allocate its items.

    Raises:
        ValidationError: Payload without id or line items
        NotFoundError: Unknown shop domain
        ConflictError: A concurrent delivery inserted the same order first
        InsufficientStockError: Aborts the whole order (caller rolls back)
    """
    settings = settings or get_settings()
    if not shop_domain:
        raise ValidationError("Missing shop domain", field="shop_domain")
    if not payload or payload.get("id") is None:
        raise ValidationError("Order payload has no id", field="id")
    if not isinstance(payload.get("line_items"), list):
        raise ValidationError("Order payload has no line_items", field="line_items")

    store = db.query(Store).filter(Store.shop_domain == shop_domain).first()
    if store is None:
        raise NotFoundError("Store", shop_domain)

    external_id = order_gid(payload["id"])
    existing = _find_order(db, store.id, external_id)
    if existing is not None:
        logger.info(f"Order {external_id} already ingested, skipping", extra={"order_id": existing.id})
        return IngestResult(order=existing, created=False)

    financial_status = (payload.get("financial_status") or "").lower()
    order = Order(
        store=store,
        external_id=external_id,
        order_number=str(payload.get("order_number") or payload.get("name") or payload["id"]),
        total_price=_to_decimal(payload.get("current_total_price") or payload.get("total_price")),
        is_prepaid=financial_status in PAID_FINANCIAL_STATUSES,
        status=StatusCode.PENDING.value,
        items=_build_items(db, store, payload["line_items"]),
        **customer_fields(payload),
    )
    db.add(order)
    try:
        db.flush()
    except IntegrityError as e:
        logger.warning(f"Order {external_id} was ingested concurrently", extra={"store_id": store.id})
        raise ConflictError(
            f"Order {external_id} already exists",
            details={"external_id": external_id, "store_id": store.id},
        ) from e
    logger.info(
        f"Ingested order #{order.order_number} with {len(order.items)} item(s)",
        extra={"order_id": order.id, "store_id": store.id},
    )

    for order_item in order.items:
        assign_order_item(db, order_item, outbox, qr, settings)

    propagate(db, order.id, outbox)
    return IngestResult(order=order, created=True)
