"""
API tests for scans, batches, units, order items and orders.
"""
import pytest

from app.core.status_config import StatusCode
from tests.factories import (
    active_units,
    create_test_order,
    create_test_product,
    create_test_rule,
    create_test_store,
)

pytestmark = pytest.mark.api


class ProductionApiCase:
    """One order of ten mugs filling one batch"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session, client, service):
        self.db = db_session
        self.client = client
        self.service = service
        store = create_test_store(db_session)
        create_test_rule(db_session, store, name="Mugs")
        product = create_test_product(db_session, store, product_type="Mugs")
        self.order = create_test_order(db_session, store, [(product, 10)])
        self.item = self.order.items[0]
        service.assign_order_item(self.item)
        self.batch = self.item.batch_items[0].batch
        self.units = active_units(self.item)


class TestScanEndpoints(ProductionApiCase):

    def test_batch_scan(self):
        response = self.client.post(f"/api/v1/scan/batch/{self.batch.qr_code_token}", params={"stage": "designer"})

        assert response.status_code == 200
        data = response.json()
        assert data["entity"] == "batch"
        assert data["previous_status"] == "BATCHED"
        assert data["status"] == "DESIGNED"
        assert data["units_updated"] == 10

    def test_repeated_batch_scan_is_not_an_error(self):
        url = f"/api/v1/scan/batch/{self.batch.qr_code_token}"
        self.client.post(url, params={"stage": "designer"})

        response = self.client.post(url, params={"stage": "designer"})

        assert response.status_code == 200
        assert response.json()["already_done"] is True

    def test_out_of_order_scan_conflicts(self):
        response = self.client.post(f"/api/v1/scan/batch/{self.batch.qr_code_token}", params={"stage": "cutter"})

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "PRECONDITION_FAILED"
        assert data["details"]["current_state"] == "BATCHED"
        assert data["details"]["allowed_states"] == ["CUTTING", "PRINTED"]

    def test_unit_scan(self):
        unit = self.units[0]

        response = self.client.post(f"/api/v1/scan/unit/{unit.qr_code_token}", params={"stage": "designer"})

        assert response.status_code == 200
        assert response.json()["entity_id"] == unit.id
        assert unit.status == StatusCode.DESIGNED

    def test_unknown_token(self):
        response = self.client.post("/api/v1/scan/unit/nope", params={"stage": "designer"})

        assert response.status_code == 404


class TestBatchEndpoints(ProductionApiCase):

    def test_get_batch(self):
        response = self.client.get(f"/api/v1/batches/{self.batch.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Mugs"
        assert data["capacity"] == 10
        assert data["status"] == "BATCHED"
        assert len(data["items"][0]["units"]) == 10

    def test_missing_batch(self):
        assert self.client.get("/api/v1/batches/999").status_code == 404

    def test_attach_file_promotes_batch(self):
        response = self.client.post(
            f"/api/v1/batches/{self.batch.id}/files",
            json={"file_name": "mugs-sheet.pdf", "mime_type": "application/pdf"},
        )

        assert response.status_code == 201
        assert response.json()["file_name"] == "mugs-sheet.pdf"
        assert self.batch.status == StatusCode.DESIGNED
        assert self.order.status == StatusCode.DESIGNED

    def test_manual_status(self):
        response = self.client.patch(f"/api/v1/batches/{self.batch.id}/status", json={"status": "PRINTING"})

        assert response.status_code == 200
        assert response.json()["status"] == "PRINTING"
        assert {u.status for u in self.units} == {"PRINTING"}

    def test_manual_status_unknown(self):
        response = self.client.patch(f"/api/v1/batches/{self.batch.id}/status", json={"status": "PAINTED"})

        assert response.status_code == 400


class TestUnitEndpoints(ProductionApiCase):

    def test_bulk_status(self):
        ids = [u.id for u in self.units[:3]]

        response = self.client.patch("/api/v1/units/status", json={"unit_ids": ids, "status": "CANCELLED"})

        assert response.status_code == 200
        assert [u["status"] for u in response.json()] == ["CANCELLED"] * 3
        assert self.batch.capacity == 7
        assert self.batch.status == StatusCode.BATCHED

    def test_bulk_status_requires_units(self):
        response = self.client.patch("/api/v1/units/status", json={"unit_ids": [], "status": "CUT"})

        assert response.status_code == 422

    def test_replace_and_history(self):
        unit = self.units[0]

        response = self.client.post(f"/api/v1/units/{unit.id}/replace", json={"reason": "REPRINT"})

        assert response.status_code == 200
        data = response.json()
        assert data["corrupted_unit_id"] == unit.id
        assert data["reason"] == "REPRINT"

        history = self.client.get(f"/api/v1/units/{data['new_unit_id']}/replacements")
        assert history.status_code == 200
        assert [u["id"] for u in history.json()] == [unit.id]

    def test_returns(self):
        ids = [u.id for u in self.units]
        self.client.patch("/api/v1/units/status", json={"unit_ids": ids, "status": "FULFILLED"})

        response = self.client.post("/api/v1/units/returns", json={"unit_ids": ids[:2], "reason": "Cracked"})

        assert response.status_code == 201
        returned, = response.json()
        assert returned["quantity"] == 2
        assert returned["reason"] == "Cracked"


class TestOrderEndpoints(ProductionApiCase):

    def test_get_order_with_timeline(self):
        self.client.post(f"/api/v1/scan/batch/{self.batch.qr_code_token}", params={"stage": "designer"})

        response = self.client.get(f"/api/v1/orders/{self.order.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "DESIGNED"
        assert data["items"][0]["quantity"] == 10
        assert any(e["new_value"] == "DESIGNED" for e in data["events"])

    def test_batched_item_status_cannot_be_set(self):
        response = self.client.patch(f"/api/v1/order-items/{self.item.id}/status", json={"status": "FULFILLED"})

        assert response.status_code == 409


class TestAppSurface(ProductionApiCase):

    def test_health(self):
        response = self.client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_domain_error_body(self):
        response = self.client.get("/api/v1/batches/424242")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "NOT_FOUND"
        assert data["timestamp"].endswith("Z")
