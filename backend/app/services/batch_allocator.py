"""
Batch Capacity Allocator

Places an order item's units into capacity-bounded batches of its
classification rule, oldest open (PENDING or WAITING_BATCH) batch first,
creating overflow batches as needed. One order item may span several batches.

Batch rows are read with SELECT ... FOR UPDATE and the capacity ceiling is
re-checked after every increment; a violation raises ConflictError, which
the service facade retries in a fresh transaction.
"""
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.settings import Settings, get_settings
from app.core.status_config import OPEN_BATCH_STATUSES, StatusCode
from app.exceptions import ConflictError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchItem, BatchItemUnit
from app.models.classification_rule import ClassificationRule
from app.models.order import OrderItem
from app.services import stock_service
from app.services.auto_status import auto_promote
from app.services.cascade import propagate
from app.services.sync_dispatcher import SyncOutbox

logger = get_logger(__name__)

BATCH_SUFFIX = " - Batch #"


# ===================
# Rule resolution
# ===================

def find_rule(
    db: Session,
    store_id: int,
    product_type: Optional[str],
    variant_title: Optional[str],
) -> Optional[ClassificationRule]:
    """
    Resolve the classification rule for a product type and variant.

    Matching on the type name is case-insensitive. A rule for the exact
    variant wins over the generic rule (variant_title IS NULL).
    """
    if not product_type:
        return None

    candidates = (
        db.query(ClassificationRule)
        .filter(
            ClassificationRule.store_id == store_id,
            func.lower(ClassificationRule.name) == product_type.lower(),
            or_(
                ClassificationRule.variant_title.is_(None),
                ClassificationRule.variant_title == variant_title,
            ),
        )
        .order_by(ClassificationRule.id)
        .all()
    )
    exact = [r for r in candidates if variant_title is not None and r.variant_title == variant_title]
    if exact:
        return exact[0]
    generic = [r for r in candidates if r.variant_title is None]
    return generic[0] if generic else None


def rule_for_order_item(db: Session, order_item: OrderItem) -> Optional[ClassificationRule]:
    product = order_item.product
    return find_rule(db, product.store_id, product.product_type, order_item.variant_title)


# ===================
# Batch lookup / creation
# ===================

def find_batch_with_capacity(
    db: Session,
    rule: ClassificationRule,
    handles_stock: bool,
    statuses: Optional[Sequence[str]] = None,
) -> Optional[Batch]:
    """Oldest batch linked to the rule with spare capacity, row-locked."""
    db.flush()
    query = db.query(Batch).filter(
        Batch.rules.any(ClassificationRule.id == rule.id),
        Batch.handles_stock == handles_stock,
        Batch.capacity < Batch.max_capacity,
    )
    if statuses:
        query = query.filter(Batch.status.in_([StatusCode(s).value for s in statuses]))
    return query.order_by(Batch.created_at.asc(), Batch.id.asc()).with_for_update().first()


def _last_batch_for_rule(db: Session, rule: ClassificationRule) -> Optional[Batch]:
    return (
        db.query(Batch)
        .filter(Batch.rules.any(ClassificationRule.id == rule.id))
        .order_by(Batch.created_at.desc(), Batch.id.desc())
        .first()
    )


def base_batch_name(rule: ClassificationRule, last_batch: Optional[Batch]) -> str:
    """Name family for a rule: the last batch's name without its suffix, or the rule's own name."""
    if last_batch is not None:
        return last_batch.name.split(BATCH_SUFFIX)[0]
    if rule.variant_title:
        return f"{rule.name} - {rule.variant_title}"
    return rule.name


def _store_batches(db: Session, store_id: int):
    return db.query(Batch).filter(Batch.rules.any(ClassificationRule.store_id == store_id))


def next_batch_name(db: Session, base: str, store_id: int) -> str:
    """
    First batch of a family keeps the bare name, later ones get " - Batch #N".

    Counts batches in the same store named ``base`` or ``base - Batch #...``.
    """
    family = _store_batches(db, store_id).filter(
        or_(
            Batch.name == base,
            Batch.name.startswith(f"{base}{BATCH_SUFFIX}", autoescape=True),
        )
    )
    count = family.count()
    if count == 0:
        return base

    number = count + 1
    name = f"{base}{BATCH_SUFFIX}{number}"
    while _store_batches(db, store_id).filter(Batch.name == name).first() is not None:
        number += 1
        name = f"{base}{BATCH_SUFFIX}{number}"
    return name


def create_batch(
    db: Session,
    rule: ClassificationRule,
    handles_stock: bool,
    settings: Optional[Settings] = None,
) -> Batch:
    """
    New batch continuing the rule's last batch: same name family, max
    capacity and rule set. Falls back to the rule alone and the default
    max capacity when the rule has no batch yet.
    """
    settings = settings or get_settings()
    db.flush()
    last_batch = _last_batch_for_rule(db, rule)

    name = next_batch_name(db, base_batch_name(rule, last_batch), rule.store_id)
    max_capacity = last_batch.max_capacity if last_batch else settings.DEFAULT_BATCH_MAX_CAPACITY
    rules = list(last_batch.rules) if last_batch else [rule]
    if rule not in rules:
        rules.append(rule)

    batch = Batch(
        name=name,
        capacity=0,
        max_capacity=max_capacity,
        status=StatusCode.PENDING.value,
        handles_stock=handles_stock,
        rules=rules,
    )
    db.add(batch)
    db.flush()
    logger.info(
        f"Created batch '{name}' (max {max_capacity})",
        extra={"batch_id": batch.id, "rule_id": rule.id, "handles_stock": handles_stock},
    )
    return batch


# ===================
# Capacity bookkeeping
# ===================

def add_units(
    db: Session,
    batch: Batch,
    batch_item: BatchItem,
    quantity: int,
) -> List[BatchItemUnit]:
    """Create quantity WAITING_BATCH units and book them against the batch."""
    units = [BatchItemUnit(status=StatusCode.WAITING_BATCH.value) for _ in range(quantity)]
    batch_item.units.extend(units)
    batch_item.quantity += quantity
    batch.capacity += quantity

    if batch.capacity > batch.max_capacity:
        raise ConflictError(
            f"Batch {batch.name} over capacity ({batch.capacity}/{batch.max_capacity})",
            details={"batch_id": batch.id, "capacity": batch.capacity, "max_capacity": batch.max_capacity},
        )
    return units


def release_unit(db: Session, unit: BatchItemUnit) -> Batch:
    """
    Cancel a unit and free its slot.

    The unit row is kept for traceability; its batch item quantity and batch
    capacity drop by one so both counts keep matching the active units.
    """
    batch_item = unit.batch_item
    batch = (
        db.query(Batch).filter(Batch.id == batch_item.batch_id).with_for_update().one()
    )
    unit.status = StatusCode.CANCELLED.value
    batch_item.quantity -= 1
    batch.capacity -= 1
    if batch_item.quantity < 0 or batch.capacity < 0:
        raise ConflictError(
            f"Batch {batch.name} capacity went negative",
            details={"batch_id": batch.id, "batch_item_id": batch_item.id},
        )
    return batch


# ===================
# Allocation
# ===================

def assign_order_item(
    db: Session,
    order_item: OrderItem,
    outbox: SyncOutbox,
    qr=None,
    settings: Optional[Settings] = None,
) -> List[Tuple[Batch, int]]:
    """
    Assign an order item's units to batches.

    Args:
        db: Database session (caller owns the transaction)
        order_item: Item to place
        outbox: Collects external actions raised by the cascade
        qr: QR generator used when a batch fills up
        settings: Application settings

    Returns:
        (batch, quantity) for every batch that received units; empty when
        the item was already batched or has no batchable rule

    Raises:
        InsufficientStockError: Stock-backed rule without enough stock
        ConflictError: Capacity invariant broken by a concurrent writer
    """
    settings = settings or get_settings()

    # Idempotency guard: lock the item first so concurrent deliveries serialize here
    db.query(OrderItem).filter(OrderItem.id == order_item.id).with_for_update().one()
    already = db.query(BatchItem.id).filter(BatchItem.order_item_id == order_item.id).first()
    if already is not None:
        logger.info(f"Order item {order_item.id} already batched, skipping")
        return []

    rule = rule_for_order_item(db, order_item)
    if rule is None:
        logger.warning(
            f"No rule for product type '{order_item.product.product_type}' "
            f"variant '{order_item.variant_title}'",
            extra={"order_item_id": order_item.id},
        )
        return []

    needs_stock = bool(rule.requires_stock)
    if rule.is_pure_stock:
        logger.info(f"Rule {rule.name} is pure stock, order item {order_item.id} not batched")
        return []

    product = order_item.product
    remaining = order_item.quantity
    assignments: List[Tuple[Batch, int]] = []

    while remaining > 0:
        batch = find_batch_with_capacity(db, rule, needs_stock, statuses=OPEN_BATCH_STATUSES)
        if batch is None:
            batch = create_batch(db, rule, needs_stock, settings)

        quantity = min(remaining, batch.spare_capacity)
        batch_item = BatchItem(
            batch=batch,
            order_item=order_item,
            quantity=0,
            status=StatusCode.WAITING_BATCH.value,
        )
        db.add(batch_item)
        add_units(db, batch, batch_item, quantity)
        order_item.status = StatusCode.WAITING_BATCH.value

        propagate(db, order_item.order_id, outbox)

        if needs_stock:
            stock_service.decrement_stock_variant(
                db, product.store_id, product.product_type, order_item.variant_title, quantity
            )

        auto_promote(db, batch, outbox, qr, settings)

        logger.info(
            f"Assigned {quantity} unit(s) of order item {order_item.id} to batch '{batch.name}'",
            extra={"batch_id": batch.id, "order_item_id": order_item.id, "quantity": quantity},
        )
        assignments.append((batch, quantity))
        remaining -= quantity

    return assignments
