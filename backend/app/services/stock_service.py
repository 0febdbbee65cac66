"""
Stock Service

Two stock pools, both read with SELECT ... FOR UPDATE before any write:

- StockVariant: decremented when a stock-backed rule's units are allocated
- MainStock: decremented when a pure stock order item is fulfilled and
  restocked when it is returned; each change queues a SKU inventory push
"""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.exceptions import InsufficientStockError
from app.logging_config import get_logger
from app.models.classification_rule import ClassificationRule, main_stock_rules
from app.models.stock import MainStock, StockVariant
from app.services.sync_dispatcher import SYNC_INVENTORY, SyncOutbox

logger = get_logger(__name__)


def decrement_stock_variant(
    db: Session,
    store_id: int,
    product_type: str,
    variant_title: Optional[str],
    quantity: int,
) -> Optional[StockVariant]:
    """
    Take quantity units from the stock variant keyed by (store, type, variant).

    Returns:
        The updated StockVariant, or None when no record tracks this key

    Raises:
        InsufficientStockError: If current stock is lower than quantity
    """
    query = db.query(StockVariant).filter(
        StockVariant.store_id == store_id,
        func.lower(StockVariant.product_type) == (product_type or "").lower(),
    )
    if variant_title is None:
        query = query.filter(StockVariant.variant_title.is_(None))
    else:
        query = query.filter(StockVariant.variant_title == variant_title)

    stock = query.with_for_update().first()
    if stock is None:
        logger.warning(
            f"No stock variant for {product_type} / {variant_title}, stock not decremented",
            extra={"store_id": store_id},
        )
        return None

    if stock.current_stock < quantity:
        label = f"{product_type} / {variant_title}" if variant_title else product_type
        raise InsufficientStockError(label, requested=quantity, available=stock.current_stock)

    stock.current_stock -= quantity
    logger.info(
        f"Stock variant {stock.id} decremented by {quantity} to {stock.current_stock}",
        extra={"stock_variant_id": stock.id},
    )
    return stock


def _locked_main_stocks(db: Session, rule: ClassificationRule) -> List[MainStock]:
    return (
        db.query(MainStock)
        .join(main_stock_rules, main_stock_rules.c.main_stock_id == MainStock.id)
        .filter(main_stock_rules.c.rule_id == rule.id)
        .order_by(MainStock.id)
        .with_for_update()
        .all()
    )


def adjust_main_stock(
    db: Session,
    rule: ClassificationRule,
    quantity: int,
    action: str,
    outbox: SyncOutbox,
    order_id: int,
) -> List[MainStock]:
    """
    Increment or decrement every main stock linked to a pure stock rule.

    Args:
        db: Database session
        rule: The order item's classification rule
        quantity: Units to move
        action: "decrement" (fulfilled) or "increment" (returned)
        outbox: Receives one inventory sync per touched main stock
        order_id: Order the movement belongs to (for the sync timeline)

    Raises:
        InsufficientStockError: If a decrement would take a pool below zero
    """
    if action not in ("decrement", "increment"):
        raise ValueError(f"Unknown stock action '{action}'")

    main_stocks = _locked_main_stocks(db, rule)
    if not main_stocks:
        logger.info(f"No main stocks linked to rule {rule.name}")
        return []

    delta = -quantity if action == "decrement" else quantity
    for main_stock in main_stocks:
        if main_stock.quantity + delta < 0:
            raise InsufficientStockError(main_stock.name, requested=quantity, available=main_stock.quantity)

    for main_stock in main_stocks:
        main_stock.quantity += delta
        # Every SKU exposing this pool shows the pool quantity
        for sku_quantity in main_stock.sku_quantities:
            sku_quantity.quantity = main_stock.quantity
        outbox.enqueue(SYNC_INVENTORY, order_id, main_stock_id=main_stock.id, store_id=rule.store_id)
        logger.info(
            f"{action.upper()} {quantity} on main stock '{main_stock.name}' -> {main_stock.quantity}",
            extra={"main_stock_id": main_stock.id, "rule_id": rule.id},
        )

    return main_stocks
