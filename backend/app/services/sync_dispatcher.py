"""
External Sync Dispatcher

Domain code never calls the commerce platform or shipping provider inside a
transaction. It queues SyncActions on a SyncOutbox; after the transaction
commits, ExternalSyncDispatcher runs them one by one. A failed action is
logged, reported to Sentry and stored as an OrderEvent(event_type="sync_failed");
local state is never rolled back because of it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
import sentry_sdk
from sqlalchemy.orm import Session

from app.exceptions import ExternalSyncError
from app.logging_config import get_logger
from app.models.order import Order, ReturnedItem
from app.models.stock import MainStock
from app.models.store import Store
from app.services.event_service import record_order_event, record_sync_failure

logger = get_logger(__name__)


# Action kinds
FULFILL_ORDER = "fulfill_order"
CANCEL_ORDER = "cancel_order"
CREATE_REFUNDS = "create_refunds"
SYNC_INVENTORY = "sync_inventory"


@dataclass
class SyncAction:
    """One best-effort external call queued by the domain layer"""
    kind: str
    order_id: int
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncOutcome:
    action: SyncAction
    succeeded: bool
    error: Optional[str] = None


class SyncOutbox:
    """Collects external actions during a unit of work"""

    def __init__(self):
        self._actions: List[SyncAction] = []

    def enqueue(self, kind: str, order_id: int, **payload) -> SyncAction:
        action = SyncAction(kind=kind, order_id=order_id, payload=payload)
        self._actions.append(action)
        return action

    def drain(self) -> List[SyncAction]:
        actions, self._actions = self._actions, []
        return actions

    @property
    def actions(self) -> List[SyncAction]:
        return list(self._actions)


class ExternalSyncDispatcher:
    """
    Runs queued actions after commit.

    Args:
        db: Session used to read orders and record outcomes (already committed)
        commerce: Commerce platform client (ShopifyClient or compatible)
        shipping: Shipping provider client (BostaClient or compatible)
    """

    def __init__(self, db: Session, commerce=None, shipping=None):
        self.db = db
        self.commerce = commerce
        self.shipping = shipping
        self._handlers = {
            FULFILL_ORDER: self._fulfill_order,
            CANCEL_ORDER: self._cancel_order,
            CREATE_REFUNDS: self._create_refunds,
            SYNC_INVENTORY: self._sync_inventory,
        }

    def dispatch(self, outbox: SyncOutbox) -> List[SyncOutcome]:
        outcomes = []
        for action in outbox.drain():
            outcomes.append(self._run(action))
        return outcomes

    def _run(self, action: SyncAction) -> SyncOutcome:
        handler = self._handlers.get(action.kind)
        if handler is None:
            raise ValueError(f"Unknown sync action '{action.kind}'")

        try:
            handler(action)
            self.db.commit()
            logger.info(
                f"External sync {action.kind} succeeded for order {action.order_id}",
                extra={"action": action.kind, "order_id": action.order_id},
            )
            return SyncOutcome(action=action, succeeded=True)
        except (ExternalSyncError, requests.RequestException) as e:
            logger.error(
                f"External sync {action.kind} failed for order {action.order_id}: {e}",
                extra={"action": action.kind, "order_id": action.order_id, "payload": action.payload},
            )
            return self._record_failure(action, e)
        except Exception as e:
            # Unexpected payload shapes or client bugs must not stop the remaining actions
            logger.exception(
                f"External sync {action.kind} crashed for order {action.order_id}: {e}",
                extra={"action": action.kind, "order_id": action.order_id, "payload": action.payload},
            )
            return self._record_failure(action, e)

    def _record_failure(self, action: SyncAction, error: Exception) -> SyncOutcome:
        self.db.rollback()
        sentry_sdk.capture_exception(error, contexts={"sync_action": {
            "kind": action.kind,
            "order_id": action.order_id,
            "payload": action.payload,
        }})

        message = str(error) or error.__class__.__name__
        record_sync_failure(self.db, action.order_id, action.kind, message)
        self.db.commit()
        return SyncOutcome(action=action, succeeded=False, error=message)

    def _load_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise ExternalSyncError("PodOps", f"Order {order_id} disappeared before sync")
        return order

    def _require(self, client, name: str):
        if client is None:
            raise ExternalSyncError(name, "Client not configured")
        return client

    # ===================
    # Handlers
    # ===================

    def _fulfill_order(self, action: SyncAction) -> None:
        order = self._load_order(action.order_id)
        store = order.store
        self._require(self.commerce, "Shopify").fulfill_order(store, order.external_id)

        if not store.shipping_enabled:
            return
        if order.delivery_id:
            logger.info(f"Order {order.order_number} already has delivery {order.delivery_id}")
            return

        delivery = self._require(self.shipping, "Bosta").create_delivery(
            api_key=store.bosta_api_key,
            receiver={
                "name": order.customer_name,
                "phone": order.customer_phone,
                "email": order.customer_email,
            },
            address={
                "first_line": order.address1,
                "second_line": order.address2,
                "city": order.province,
            },
            cod=0 if order.is_prepaid else (order.total_price or 0),
            items_count=len(order.items),
            reference=order.order_number,
        )
        order.delivery_id = delivery.get("delivery_id")
        order.tracking_number = delivery.get("tracking_number")
        record_order_event(
            self.db,
            order_id=order.id,
            event_type="shipment_booked",
            title="Delivery booked",
            metadata_key="tracking_number",
            metadata_value=order.tracking_number,
        )

    def _cancel_order(self, action: SyncAction) -> None:
        order = self._load_order(action.order_id)
        store = order.store
        self._require(self.commerce, "Shopify").cancel_order(
            store,
            order.external_id,
            refund=action.payload.get("refund", True),
            restock=action.payload.get("restock", True),
            reason=action.payload.get("reason", "OTHER"),
        )
        if order.delivery_id and store.shipping_enabled:
            self._require(self.shipping, "Bosta").cancel_delivery(store.bosta_api_key, order.delivery_id)

    def _create_refunds(self, action: SyncAction) -> None:
        order = self._load_order(action.order_id)
        commerce = self._require(self.commerce, "Shopify")
        pending = (
            self.db.query(ReturnedItem)
            .filter(ReturnedItem.order_id == order.id, ReturnedItem.refunded_at.is_(None))
            .order_by(ReturnedItem.id)
            .all()
        )
        for returned in pending:
            item = returned.order_item
            if not item.external_line_item_id:
                logger.warning(f"Order item {item.id} has no line item id, refund skipped")
                continue
            amount = item.price * returned.quantity if item.price is not None else None
            commerce.create_refund(
                order.store,
                order.external_id,
                item.external_line_item_id,
                returned.quantity,
                amount,
                note=returned.reason,
            )
            # Mark each refund as soon as it succeeds so a retry skips it
            returned.refunded_at = datetime.utcnow()
            self.db.commit()

    def _sync_inventory(self, action: SyncAction) -> None:
        main_stock = self.db.get(MainStock, action.payload["main_stock_id"])
        store = self.db.get(Store, action.payload["store_id"])
        if main_stock is None or store is None:
            raise ExternalSyncError("PodOps", "Main stock or store disappeared before sync")

        commerce = self._require(self.commerce, "Shopify")
        for sku_quantity in main_stock.sku_quantities:
            item_id = commerce.find_inventory_item_by_sku(store, sku_quantity.sku)
            if item_id is None:
                logger.warning(f"SKU {sku_quantity.sku} not found on {store.shop_domain}")
                continue
            commerce.set_inventory_quantity(store, item_id, store.inventory_location_id, sku_quantity.quantity)
