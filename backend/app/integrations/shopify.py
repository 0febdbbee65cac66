"""
Shopify Admin GraphQL client

Every call takes the Store whose domain and access token are used. Failures
(transport errors, GraphQL errors, userErrors) raise ExternalSyncError; the
sync dispatcher catches and records them.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from app.core.settings import Settings, get_settings
from app.exceptions import ExternalSyncError
from app.logging_config import get_logger

logger = get_logger(__name__)

SERVICE = "Shopify"


# ===================
# GraphQL documents
# ===================

GET_FULFILLMENT_ORDERS_QUERY = """
query getFulfillmentOrders($orderId: ID!) {
  order(id: $orderId) {
    id
    fulfillmentOrders(first: 10) {
      edges { node { id status } }
    }
  }
}
"""

FULFILL_ORDER_MUTATION = """
mutation fulfillmentCreateV2($fulfillment: FulfillmentV2Input!) {
  fulfillmentCreateV2(fulfillment: $fulfillment) {
    fulfillment { id status }
    userErrors { field message }
  }
}
"""

CANCEL_ORDER_MUTATION = """
mutation orderCancel($orderId: ID!, $refund: Boolean!, $restock: Boolean!, $reason: OrderCancelReason!) {
  orderCancel(orderId: $orderId, refund: $refund, restock: $restock, reason: $reason) {
    job { id }
    orderCancelUserErrors { field message }
  }
}
"""

REFUND_CREATE_MUTATION = """
mutation refundCreate($input: RefundInput!) {
  refundCreate(input: $input) {
    refund { id }
    userErrors { field message }
  }
}
"""

FIND_INVENTORY_ITEM_QUERY = """
query inventoryItemBySku($query: String!) {
  productVariants(first: 1, query: $query) {
    edges { node { id sku inventoryItem { id } } }
  }
}
"""

SET_INVENTORY_MUTATION = """
mutation inventorySetQuantities($input: InventorySetQuantitiesInput!) {
  inventorySetQuantities(input: $input) {
    inventoryAdjustmentGroup { id }
    userErrors { field message }
  }
}
"""


class ShopifyClient:
    """Commerce platform client used by the sync dispatcher"""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def graphql(self, store, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a GraphQL document and return its ``data`` payload."""
        if not store.access_token:
            raise ExternalSyncError(SERVICE, f"Store {store.shop_domain} has no access token")

        url = f"https://{store.shop_domain}/admin/api/{self.settings.SHOPIFY_API_VERSION}/graphql.json"
        try:
            response = self.session.post(
                url,
                json={"query": query, "variables": variables or {}},
                headers={
                    "X-Shopify-Access-Token": store.access_token,
                    "Content-Type": "application/json",
                },
                timeout=self.settings.SHOPIFY_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise ExternalSyncError(SERVICE, str(e), details={"shop": store.shop_domain}) from e
        except ValueError as e:
            raise ExternalSyncError(SERVICE, "Invalid JSON response", details={"shop": store.shop_domain}) from e

        if not isinstance(body, dict):
            raise ExternalSyncError(SERVICE, "Unexpected response body", details={"shop": store.shop_domain})
        if body.get("errors"):
            raise ExternalSyncError(SERVICE, str(body["errors"]), details={"shop": store.shop_domain})
        return body.get("data") or {}

    @staticmethod
    def _mutation_payload(result: Dict[str, Any], name: str) -> Dict[str, Any]:
        payload = result.get(name)
        if not isinstance(payload, dict):
            raise ExternalSyncError(SERVICE, f"{name} returned no payload")
        return payload

    @staticmethod
    def _raise_user_errors(payload: Dict[str, Any], key: str = "userErrors") -> None:
        errors = payload.get(key) or []
        if errors:
            messages = "; ".join(e.get("message", "") for e in errors)
            raise ExternalSyncError(SERVICE, messages, details={"user_errors": errors})

    # ===================
    # Orders
    # ===================

    def fulfill_order(self, store, external_order_id: str) -> Optional[Dict[str, Any]]:
        """
        Fulfill every OPEN fulfillment order of an order.

        Returns:
            The created fulfillment, or None when nothing was left to fulfill
        """
        data = self.graphql(store, GET_FULFILLMENT_ORDERS_QUERY, {"orderId": external_order_id})
        order = data.get("order")
        if not order:
            raise ExternalSyncError(SERVICE, f"Order {external_order_id} not found")

        edges = (order.get("fulfillmentOrders") or {}).get("edges") or []
        open_orders = [
            edge["node"] for edge in edges
            if (edge.get("node") or {}).get("status") == "OPEN"
        ]
        if not open_orders:
            logger.info(f"No open fulfillment orders for {external_order_id} (already fulfilled?)")
            return None

        result = self.graphql(store, FULFILL_ORDER_MUTATION, {
            "fulfillment": {
                "lineItemsByFulfillmentOrder": [{"fulfillmentOrderId": fo["id"]} for fo in open_orders],
                "notifyCustomer": self.settings.SHOPIFY_NOTIFY_CUSTOMER,
            }
        })
        payload = self._mutation_payload(result, "fulfillmentCreateV2")
        self._raise_user_errors(payload)
        fulfillment = payload.get("fulfillment")
        if not fulfillment:
            raise ExternalSyncError(SERVICE, f"No fulfillment created for {external_order_id}")
        logger.info(
            f"Fulfilled {external_order_id}",
            extra={"shop": store.shop_domain, "fulfillment_id": fulfillment.get("id")},
        )
        return fulfillment

    def cancel_order(
        self,
        store,
        external_order_id: str,
        *,
        refund: bool = True,
        restock: bool = True,
        reason: str = "OTHER",
    ) -> Dict[str, Any]:
        result = self.graphql(store, CANCEL_ORDER_MUTATION, {
            "orderId": external_order_id,
            "refund": refund,
            "restock": restock,
            "reason": reason,
        })
        payload = self._mutation_payload(result, "orderCancel")
        self._raise_user_errors(payload, key="orderCancelUserErrors")
        logger.info(f"Cancelled {external_order_id}", extra={"shop": store.shop_domain})
        return payload

    def create_refund(
        self,
        store,
        external_order_id: str,
        line_item_id: str,
        quantity: int,
        amount: Optional[Decimal] = None,
        *,
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Refund a quantity of one line item (restocked on the platform side)."""
        refund_input: Dict[str, Any] = {
            "orderId": external_order_id,
            "note": note,
            "refundLineItems": [{
                "lineItemId": line_item_id,
                "quantity": quantity,
                "restockType": "RETURN",
            }],
        }
        if amount is not None:
            refund_input["transactions"] = [{
                "orderId": external_order_id,
                "gateway": "manual",
                "kind": "REFUND",
                "amount": str(amount),
            }]
        result = self.graphql(store, REFUND_CREATE_MUTATION, {"input": refund_input})
        payload = self._mutation_payload(result, "refundCreate")
        self._raise_user_errors(payload)
        refund = payload.get("refund")
        if not refund:
            raise ExternalSyncError(SERVICE, f"No refund created for {external_order_id}")
        return refund

    # ===================
    # Inventory
    # ===================

    def find_inventory_item_by_sku(self, store, sku: str) -> Optional[str]:
        data = self.graphql(store, FIND_INVENTORY_ITEM_QUERY, {"query": f"sku:{sku}"})
        edges = (data.get("productVariants") or {}).get("edges") or []
        if not edges:
            return None
        inventory_item = (edges[0].get("node") or {}).get("inventoryItem") or {}
        return inventory_item.get("id")

    def set_inventory_quantity(self, store, inventory_item_id: str, location_id: str, quantity: int) -> None:
        if not location_id:
            raise ExternalSyncError(SERVICE, f"Store {store.shop_domain} has no inventory location")
        result = self.graphql(store, SET_INVENTORY_MUTATION, {
            "input": {
                "name": "available",
                "reason": "correction",
                "ignoreCompareQuantity": True,
                "quantities": [{
                    "inventoryItemId": inventory_item_id,
                    "locationId": location_id,
                    "quantity": quantity,
                }],
            }
        })
        self._raise_user_errors(self._mutation_payload(result, "inventorySetQuantities"))
