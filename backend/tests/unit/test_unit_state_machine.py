"""
Tests for scan-driven and bulk unit transitions.
"""
import pytest

from app.core.status_config import StatusCode
from app.exceptions import NotFoundError, PreconditionError, ValidationError
from app.services.unit_state_machine import target_for_stage
from tests.factories import (
    active_units,
    assert_capacity_invariant,
    create_test_order,
    create_test_product,
    create_test_rule,
    create_test_store,
)


class TestScanUnit:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, service):
        self.db = db_session
        self.service = service
        store = create_test_store(db_session)
        create_test_rule(db_session, store, name="Mugs")
        product = create_test_product(db_session, store, product_type="Mugs")
        self.order = create_test_order(db_session, store, [(product, 10)])
        self.item = self.order.items[0]
        service.assign_order_item(self.item)
        self.unit = active_units(self.item)[0]

    def test_scan_advances_unit_and_cascades(self):
        result = self.service.scan_unit("designer", token=self.unit.qr_code_token)

        assert (result.previous_status, result.status) == ("BATCHED", "DESIGNED")
        assert self.unit.status == StatusCode.DESIGNED
        # The most advanced unit sets the item status
        assert self.item.status == StatusCode.DESIGNED
        assert self.order.status == StatusCode.DESIGNED

    def test_wrong_stage_rejected_with_current_state(self):
        """Cutting a unit that was never printed."""
        with pytest.raises(PreconditionError) as exc_info:
            self.service.scan_unit("cutter", unit_id=self.unit.id)

        assert exc_info.value.current_state == "BATCHED"
        assert exc_info.value.allowed_states == ["CUTTING", "PRINTED"]
        assert self.unit.status == StatusCode.BATCHED

    def test_duplicate_scan_is_already_done(self):
        self.service.scan_unit("designer", unit_id=self.unit.id)

        result = self.service.scan_unit("designer", unit_id=self.unit.id)

        assert result.already_done is True
        assert result.units_updated == 0

    def test_scan_of_earlier_stage_is_already_done(self):
        for stage in ["designer", "PRINTING", "printer", "cutter"]:
            self.service.scan_unit(stage, unit_id=self.unit.id)

        result = self.service.scan_unit("printer", unit_id=self.unit.id)

        assert result.already_done is True
        assert self.unit.status == StatusCode.CUT

    def test_cancelled_unit_cannot_be_scanned(self):
        self.service.update_units_status([self.unit.id], "CANCELLED")

        with pytest.raises(PreconditionError) as exc_info:
            self.service.scan_unit("designer", unit_id=self.unit.id)
        assert exc_info.value.current_state == "CANCELLED"

    def test_unknown_token(self):
        with pytest.raises(NotFoundError):
            self.service.scan_unit("designer", token="nope")

    def test_unknown_stage(self):
        with pytest.raises(ValidationError):
            target_for_stage("painter")
        with pytest.raises(ValidationError):
            target_for_stage("PENDING")


class TestBulkUpdate:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, service):
        self.db = db_session
        self.service = service
        store = create_test_store(db_session)
        create_test_rule(db_session, store, name="Mugs")
        product = create_test_product(db_session, store, product_type="Mugs")
        self.order = create_test_order(db_session, store, [(product, 3)])
        self.item = self.order.items[0]
        service.assign_order_item(self.item)
        self.units = active_units(self.item)
        self.batch = self.item.batch_items[0].batch

    def test_bulk_write_cascades(self):
        ids = [u.id for u in self.units]

        self.service.update_units_status(ids, "PRINTED")

        assert all(u.status == StatusCode.PRINTED for u in self.units)
        assert self.batch.status == StatusCode.PRINTED
        assert self.order.status == StatusCode.PRINTED

    def test_cancel_frees_capacity(self):
        self.service.update_units_status([self.units[0].id], "CANCELLED")

        assert self.batch.capacity == 2
        assert self.item.batch_items[0].quantity == 2
        assert self.item.status == StatusCode.WAITING_BATCH
        assert_capacity_invariant(self.db)

    def test_cancelled_units_are_left_alone(self):
        self.service.update_units_status([self.units[0].id], "CANCELLED")

        self.service.update_units_status([u.id for u in self.units], "PRINTED")

        assert self.units[0].status == StatusCode.CANCELLED
        assert self.batch.capacity == 2

    def test_returned_goes_through_returns(self):
        with pytest.raises(ValidationError):
            self.service.update_units_status([self.units[0].id], "RETURNED")

    def test_missing_unit_rolls_back_everything(self):
        with pytest.raises(NotFoundError):
            self.service.update_units_status([self.units[0].id, 99999], "PRINTED")

        assert self.units[0].status == StatusCode.WAITING_BATCH

    def test_empty_and_unknown_rejected(self):
        with pytest.raises(ValidationError):
            self.service.update_units_status([], "PRINTED")
        with pytest.raises(ValidationError):
            self.service.update_units_status([self.units[0].id], "MELTED")
