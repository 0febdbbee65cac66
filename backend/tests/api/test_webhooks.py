"""
API tests for the orders/create webhook.
"""
import pytest

from app.models.order import Order
from tests.factories import create_test_product, create_test_rule, create_test_store, order_payload

pytestmark = pytest.mark.api

URL = "/api/v1/webhooks/orders/create"


class TestOrderCreatedWebhook:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, client):
        self.db = db_session
        self.client = client
        self.store = create_test_store(db_session, shop_domain="mugs.myshopify.com")
        create_test_rule(db_session, self.store, name="Mugs")
        create_test_product(db_session, self.store, product_type="Mugs")  # 1001
        db_session.commit()
        self.payload = order_payload(line_items=[
            {"id": 1, "product_id": 1001, "variant_id": None, "quantity": 3, "price": "50.00"},
        ])

    def post(self, payload, shop_domain="mugs.myshopify.com"):
        headers = {"X-Shopify-Shop-Domain": shop_domain} if shop_domain else {}
        return self.client.post(URL, json=payload, headers=headers)

    def test_order_ingested(self):
        response = self.post(self.payload)

        assert response.status_code == 200
        data = response.json()
        assert data["created"] is True
        assert data["order_number"] == "1001"
        assert data["status"] == "WAITING_BATCH"

    def test_redelivery_acknowledged(self):
        first = self.post(self.payload).json()

        response = self.post(self.payload)

        assert response.status_code == 200
        assert response.json() == {**first, "created": False}
        assert self.db.query(Order).count() == 1

    def test_missing_shop_header(self):
        response = self.post(self.payload, shop_domain=None)

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_unknown_store(self):
        response = self.post(self.payload, shop_domain="other.myshopify.com")

        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_payload_without_line_items(self):
        payload = dict(self.payload)
        del payload["line_items"]

        response = self.post(payload)

        assert response.status_code == 400
