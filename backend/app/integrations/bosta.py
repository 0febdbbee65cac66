"""
Bosta shipping client

Books and cancels deliveries. Errors raise ExternalSyncError so the sync
dispatcher can record them against the order.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

import requests

from app.core.settings import Settings, get_settings
from app.exceptions import ExternalSyncError
from app.logging_config import get_logger

logger = get_logger(__name__)

SERVICE = "Bosta"


class BostaClient:
    """Shipping provider client"""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, api_key: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        if not api_key:
            raise ExternalSyncError(SERVICE, "Store has no shipping API key")
        try:
            response = self.session.request(
                method,
                f"{self.settings.BOSTA_API_URL}{path}",
                json=payload,
                headers={"Authorization": api_key, "Content-Type": "application/json"},
                timeout=self.settings.BOSTA_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
        except requests.RequestException as e:
            raise ExternalSyncError(SERVICE, str(e)) from e
        except ValueError as e:
            raise ExternalSyncError(SERVICE, "Invalid JSON response") from e

        if not isinstance(body, dict):
            raise ExternalSyncError(SERVICE, "Unexpected response body")
        return body

    def create_delivery(
        self,
        api_key: str,
        receiver: Dict[str, Any],
        address: Dict[str, Any],
        cod: Decimal,
        items_count: int,
        reference: str,
    ) -> Dict[str, Optional[str]]:
        """
        Book a delivery.

        Args:
            api_key: Store's Bosta API key
            receiver: name, phone, email
            address: first_line, second_line, city
            cod: Amount to collect on delivery (0 for prepaid)
            items_count: Number of line items in the parcel
            reference: Order number shown to the courier

        Returns:
            {"delivery_id": ..., "tracking_number": ...}
        """
        phone = receiver.get("phone")
        if not phone or not address.get("first_line") or not address.get("city"):
            raise ExternalSyncError(
                SERVICE,
                f"Cannot book delivery for order {reference}: missing phone, address or city",
            )

        name_parts = (receiver.get("name") or "Customer").strip().split(" ")
        first_name = name_parts[0] or "Customer"
        last_name = " ".join(name_parts[1:])

        payload = {
            "type": "SEND",
            "specs": {
                "packageType": "Parcel",
                "size": self.settings.BOSTA_PACKAGE_SIZE,
                "packageDetails": {"itemsCount": max(items_count, 1)},
            },
            "dropOffAddress": {
                "firstLine": address["first_line"],
                "secondLine": address.get("second_line") or "",
                "city": address["city"],
                "phone": phone,
            },
            "receiver": {
                "firstName": first_name,
                "lastName": last_name,
                "phone": phone,
                "email": receiver.get("email") or "",
            },
            "cod": float(cod or 0),
            "webhookUrl": f"{self.settings.PUBLIC_BASE_URL}/webhooks/bosta",
            "businessReference": str(reference or ""),
        }

        logger.info(f"Creating delivery for order {reference}", extra={"cod": payload["cod"]})
        body = self._request("POST", "/deliveries", api_key, payload)
        data = body.get("data") or {}
        return {
            "delivery_id": data.get("_id"),
            "tracking_number": data.get("trackingNumber"),
        }

    def cancel_delivery(self, api_key: str, delivery_id: str) -> None:
        self._request("DELETE", f"/deliveries/{delivery_id}", api_key)
        logger.info(f"Cancelled delivery {delivery_id}")
