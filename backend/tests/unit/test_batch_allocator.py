"""
Tests for the batch capacity allocator.
"""
import pytest

from app.core.status_config import StatusCode
from app.exceptions import ConflictError, InsufficientStockError
from app.models.batch import Batch, BatchItem, BatchItemUnit
from app.services.batch_allocator import (
    add_units,
    assign_order_item,
    create_batch,
    find_rule,
    next_batch_name,
)
from app.services.sync_dispatcher import SyncOutbox
from tests.factories import (
    active_units,
    assert_capacity_invariant,
    create_test_order,
    create_test_product,
    create_test_rule,
    create_test_stock_variant,
    create_test_store,
)


class TestAssignOrderItem:
    """Allocation of order items into batches"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session, test_settings):
        self.db = db_session
        self.settings = test_settings
        self.store = create_test_store(db_session)
        self.rule = create_test_rule(db_session, self.store, name="Mugs")
        self.product = create_test_product(db_session, self.store, product_type="Mugs")

    def assign(self, order_item, qr=None):
        return assign_order_item(self.db, order_item, SyncOutbox(), qr, self.settings)

    def test_overflow_creates_second_batch(self):
        """15 units with a cap of 10 end up in a full batch and a partial one."""
        # Arrange
        order = create_test_order(self.db, self.store, [(self.product, 15)])

        # Act
        assignments = self.assign(order.items[0])

        # Assert
        assert [(b.name, q) for b, q in assignments] == [("Mugs", 10), ("Mugs - Batch #2", 5)]
        first, second = assignments[0][0], assignments[1][0]
        assert (first.capacity, first.status) == (10, StatusCode.BATCHED)
        assert (second.capacity, second.status) == (5, StatusCode.WAITING_BATCH)
        assert self.db.query(Batch).count() == 2
        assert_capacity_invariant(self.db)

    def test_assignment_is_idempotent(self):
        order = create_test_order(self.db, self.store, [(self.product, 3)])
        item = order.items[0]

        self.assign(item)
        second = self.assign(item)

        assert second == []
        assert self.db.query(BatchItem).filter(BatchItem.order_item_id == item.id).count() == 1
        assert self.db.query(BatchItemUnit).count() == 3

    def test_batch_names_are_sequential(self):
        for _ in range(3):
            order = create_test_order(self.db, self.store, [(self.product, 10)])
            self.assign(order.items[0])

        names = [b.name for b in self.db.query(Batch).order_by(Batch.id).all()]
        assert names == ["Mugs", "Mugs - Batch #2", "Mugs - Batch #3"]

    def test_oldest_batch_filled_first(self):
        first_order = create_test_order(self.db, self.store, [(self.product, 4)])
        self.assign(first_order.items[0])

        second_order = create_test_order(self.db, self.store, [(self.product, 8)])
        assignments = self.assign(second_order.items[0])

        assert [(b.name, q) for b, q in assignments] == [("Mugs", 6), ("Mugs - Batch #2", 2)]
        assert_capacity_invariant(self.db)

    def test_units_start_waiting_and_item_status_derived(self):
        order = create_test_order(self.db, self.store, [(self.product, 2)])
        item = order.items[0]

        self.assign(item)

        assert [u.status for u in active_units(item)] == [StatusCode.WAITING_BATCH] * 2
        assert item.status == StatusCode.WAITING_BATCH
        assert order.status == StatusCode.WAITING_BATCH

    def test_full_batch_gets_scan_tokens(self, qr):
        order = create_test_order(self.db, self.store, [(self.product, 10)])

        (batch, _), = self.assign(order.items[0], qr=qr)

        assert batch.qr_code_token is not None
        assert batch.qr_code_url.endswith(f"/api/v1/scan/batch/{batch.qr_code_token}")
        assert all(u.qr_code_token for u in active_units(order.items[0]))

    def test_no_rule_leaves_item_unbatched(self):
        other = create_test_product(self.db, self.store, product_type="Posters")
        order = create_test_order(self.db, self.store, [(other, 2)])

        assert self.assign(order.items[0]) == []
        assert order.items[0].status == StatusCode.PENDING

    def test_pure_stock_rule_is_not_batched(self):
        create_test_rule(self.db, self.store, name="Stickers", is_pod=False, requires_stock=False)
        stickers = create_test_product(self.db, self.store, product_type="Stickers")
        order = create_test_order(self.db, self.store, [(stickers, 5)])

        assert self.assign(order.items[0]) == []
        assert self.db.query(Batch).count() == 0

    def test_stock_rule_uses_stock_batches_and_decrements(self):
        create_test_rule(self.db, self.store, name="Shirts", is_pod=True, requires_stock=True)
        shirts = create_test_product(self.db, self.store, product_type="Shirts")
        stock = create_test_stock_variant(self.db, self.store, product_type="shirts", current_stock=5)
        order = create_test_order(self.db, self.store, [(shirts, 3)])

        (batch, quantity), = self.assign(order.items[0])

        assert batch.handles_stock is True
        assert quantity == 3
        assert stock.current_stock == 2

    def test_insufficient_stock_raises(self):
        create_test_rule(self.db, self.store, name="Shirts", requires_stock=True)
        shirts = create_test_product(self.db, self.store, product_type="Shirts")
        create_test_stock_variant(self.db, self.store, product_type="Shirts", current_stock=1)
        order = create_test_order(self.db, self.store, [(shirts, 3)])

        with pytest.raises(InsufficientStockError) as exc_info:
            self.assign(order.items[0])
        assert exc_info.value.details["available"] == 1

    def test_stock_and_pod_items_never_share_a_batch(self):
        create_test_rule(self.db, self.store, name="Shirts", requires_stock=True)
        shirts = create_test_product(self.db, self.store, product_type="Shirts")
        mugs_order = create_test_order(self.db, self.store, [(self.product, 1)])
        shirts_order = create_test_order(self.db, self.store, [(shirts, 1)])

        (pod_batch, _), = self.assign(mugs_order.items[0])
        (stock_batch, _), = self.assign(shirts_order.items[0])

        assert pod_batch.id != stock_batch.id
        assert pod_batch.handles_stock is False



class TestAllocationTargets:
    """New units only join batches that have not started production"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session, service):
        self.db = db_session
        self.service = service
        self.store = create_test_store(db_session)
        create_test_rule(db_session, self.store, name="Mugs")
        self.product = create_test_product(db_session, self.store, product_type="Mugs")

    def place(self, quantity):
        order = create_test_order(self.db, self.store, [(self.product, quantity)])
        self.service.assign_order_item(order.items[0])
        return order

    def test_freed_slot_in_printed_batch_not_refilled(self):
        # Arrange
        order = self.place(10)
        printed = order.items[0].batch_items[0].batch
        self.service.set_batch_status(printed.id, "PRINTED")
        self.service.replace_unit(active_units(order.items[0])[0].id, "REPRINT")

        # Act
        late = self.place(1)

        # Assert
        batch = late.items[0].batch_items[0].batch
        assert batch.name == "Mugs - Batch #2"
        assert batch.capacity == 2
        assert (printed.capacity, printed.status) == (9, StatusCode.PRINTED)
        assert_capacity_invariant(self.db)

    def test_cancelled_batch_never_reopened(self):
        order = self.place(2)
        cancelled = order.items[0].batch_items[0].batch
        self.service.set_batch_status(cancelled.id, "CANCELLED")

        late = self.place(2)

        batch = late.items[0].batch_items[0].batch
        assert batch.name == "Mugs - Batch #2"
        assert (batch.capacity, batch.status) == (2, StatusCode.WAITING_BATCH)
        assert (cancelled.capacity, cancelled.status) == (0, StatusCode.CANCELLED)
        assert_capacity_invariant(self.db)

    def test_designed_batch_not_joined(self):
        order = self.place(3)
        designed = order.items[0].batch_items[0].batch
        self.service.attach_design_file(designed.id, "mugs-sheet.pdf", mime_type="application/pdf")

        late = self.place(1)

        assert late.items[0].batch_items[0].batch.id != designed.id
        assert designed.capacity == 3


class TestRuleResolution:

    @pytest.fixture(autouse=True)
    def setup(self, db_session):
        self.db = db_session
        self.store = create_test_store(db_session)
        self.generic = create_test_rule(db_session, self.store, name="Mugs")
        self.large = create_test_rule(db_session, self.store, name="Mugs", variant_title="Large")

    def test_exact_variant_preferred(self):
        assert find_rule(self.db, self.store.id, "Mugs", "Large") == self.large

    def test_falls_back_to_generic_rule(self):
        assert find_rule(self.db, self.store.id, "Mugs", "Small") == self.generic
        assert find_rule(self.db, self.store.id, "Mugs", None) == self.generic

    def test_type_match_is_case_insensitive(self):
        assert find_rule(self.db, self.store.id, "mugs", "Large") == self.large

    def test_rules_scoped_to_store(self):
        other_store = create_test_store(self.db)
        assert find_rule(self.db, other_store.id, "Mugs", None) is None

    def test_variant_rule_names_its_batches(self, test_settings):
        product = create_test_product(self.db, self.store, product_type="Mugs", variants=[(91, "Large")])
        order = create_test_order(self.db, self.store, [(product, 1)], variant=product.variants[0])

        (batch, _), = assign_order_item(self.db, order.items[0], SyncOutbox(), settings=test_settings)

        assert batch.name == "Mugs - Large"
        assert batch.rules == [self.large]


class TestBatchBookkeeping:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, test_settings):
        self.db = db_session
        self.settings = test_settings
        self.store = create_test_store(db_session)
        self.rule = create_test_rule(db_session, self.store, name="Mugs")

    def test_new_batch_inherits_max_capacity_and_rules(self):
        sibling = create_test_rule(self.db, self.store, name="Mugs", variant_title="Large")
        first = create_batch(self.db, self.rule, False, self.settings)
        first.max_capacity = 4
        first.rules.append(sibling)

        second = create_batch(self.db, self.rule, False, self.settings)

        assert second.max_capacity == 4
        assert {r.id for r in second.rules} == {self.rule.id, sibling.id}
        assert second.name == "Mugs - Batch #2"

    def test_name_counter_skips_taken_names(self):
        create_batch(self.db, self.rule, False, self.settings)
        taken = create_batch(self.db, self.rule, False, self.settings)
        taken.name = "Mugs - Batch #3"
        self.db.flush()

        assert next_batch_name(self.db, "Mugs", self.store.id) == "Mugs - Batch #4"

    def test_similar_prefix_not_counted(self):
        deluxe_rule = create_test_rule(self.db, self.store, name="Mugs Deluxe")
        deluxe = create_batch(self.db, deluxe_rule, False, self.settings)

        assert deluxe.name == "Mugs Deluxe"
        assert next_batch_name(self.db, "Mugs", self.store.id) == "Mugs"

    def test_over_capacity_is_a_conflict(self):
        batch = create_batch(self.db, self.rule, False, self.settings)
        item = BatchItem(batch=batch, quantity=0, status=StatusCode.WAITING_BATCH.value)

        with pytest.raises(ConflictError) as exc_info:
            add_units(self.db, batch, item, batch.max_capacity + 1)
        assert exc_info.value.retryable is True
