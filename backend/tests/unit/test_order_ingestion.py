"""
Tests for order ingestion from the orders/create webhook payload.
"""
from decimal import Decimal

import pytest

from app.core.status_config import StatusCode
from app.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.models.batch import Batch, BatchItem, BatchItemUnit
from app.models.order import Order
from app.services import order_ingestion
from app.services.order_ingestion import merge_line_items
from tests.factories import (
    active_units,
    create_test_product,
    create_test_rule,
    create_test_stock_variant,
    create_test_store,
    order_payload,
)


def line(line_id, product_id, quantity, price="25.00", variant_id=None):
    return {
        "id": line_id,
        "product_id": product_id,
        "variant_id": variant_id,
        "quantity": quantity,
        "price": price,
    }


class TestMergeLineItems:

    def test_same_product_and_variant_merged(self):
        merged = merge_line_items([line(1, 1001, 2), line(2, 1001, 3), line(3, 1002, 1)])

        assert [(m["product_id"], m["quantity"]) for m in merged] == [(1001, 5), (1002, 1)]
        # The first line's id is kept
        assert merged[0]["id"] == 1

    def test_different_variants_kept_apart(self):
        merged = merge_line_items([line(1, 1001, 2, variant_id=11), line(2, 1001, 3, variant_id=12)])

        assert len(merged) == 2


class TestIngestOrder:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, service):
        self.db = db_session
        self.service = service
        self.store = create_test_store(db_session)
        create_test_rule(db_session, self.store, name="Mugs")
        create_test_rule(db_session, self.store, name="Tumblers", requires_stock=True)
        self.mug = create_test_product(db_session, self.store, product_type="Mugs")            # 1001
        self.tumbler = create_test_product(db_session, self.store, product_type="Tumblers")    # 1002
        self.tumbler_stock = create_test_stock_variant(db_session, self.store, "Tumblers", current_stock=5)
        db_session.commit()

    def ingest(self, **kwargs):
        return self.service.ingest_order(self.store.shop_domain, order_payload(**kwargs))

    def test_order_created_and_allocated(self):
        result = self.ingest(line_items=[line(1, 1001, 2)])

        order = result.order
        assert result.created is True
        assert order.external_id == "gid://shopify/Order/7001"
        assert order.order_number == "1001"
        assert order.total_price == Decimal("150.00")
        item, = order.items
        assert item.external_line_item_id == "gid://shopify/LineItem/1"
        assert item.price == Decimal("25.00")
        assert len(active_units(item)) == 2
        assert item.status == StatusCode.WAITING_BATCH
        assert order.status == StatusCode.WAITING_BATCH

    def test_customer_fields_from_default_address(self):
        order = self.ingest(line_items=[line(1, 1001, 1)]).order

        assert order.customer_name == "Mona Adel"
        assert order.customer_email == "mona@example.com"
        assert order.customer_phone == "+201000000000"
        assert order.address1 == "12 Nile St"
        assert order.province == "Cairo"

    @pytest.mark.parametrize("financial_status,prepaid", [
        ("paid", True),
        ("partially_refunded", True),
        ("pending", False),
        ("authorized", False),
    ])
    def test_prepaid_from_financial_status(self, financial_status, prepaid):
        order = self.ingest(line_items=[line(1, 1001, 1)], financial_status=financial_status).order

        assert order.is_prepaid is prepaid

    def test_duplicate_delivery_is_skipped(self):
        first = self.ingest(line_items=[line(1, 1001, 2)])

        second = self.ingest(line_items=[line(1, 1001, 2)])

        assert second.created is False
        assert second.order.id == first.order.id
        assert self.db.query(Order).count() == 1
        assert self.db.query(BatchItemUnit).count() == 2

    def test_concurrent_duplicate_returns_committed_order(self, monkeypatch):
        """Losing the insert race to another delivery reports the committed order."""
        # Arrange
        first = self.ingest(line_items=[line(1, 1001, 2)])
        real_find = order_ingestion._find_order
        lookups = []

        def find_after_race(*args):
            lookups.append(args)
            # The first lookup runs before the other delivery has committed
            return None if len(lookups) == 1 else real_find(*args)

        monkeypatch.setattr(order_ingestion, "_find_order", find_after_race)

        # Act
        second = self.ingest(line_items=[line(1, 1001, 2)])

        # Assert
        assert second.created is False
        assert second.order.id == first.order.id
        assert len(lookups) == 2
        assert self.db.query(Order).count() == 1
        assert self.db.query(BatchItemUnit).count() == 2

    def test_repeated_lines_become_one_item(self):
        order = self.ingest(line_items=[line(1, 1001, 2), line(2, 1001, 3)]).order

        item, = order.items
        assert item.quantity == 5
        assert len(active_units(item)) == 5

    def test_unknown_product_line_skipped(self):
        order = self.ingest(line_items=[line(1, 1001, 1), line(2, 9999, 4)]).order

        assert [i.product_id for i in order.items] == [self.mug.id]

    def test_stock_backed_item_decrements_stock(self):
        self.ingest(line_items=[line(1, 1002, 3)])

        assert self.tumbler_stock.current_stock == 2

    def test_insufficient_stock_rolls_back_whole_order(self):
        # The mug line allocates first; the tumbler line then fails
        with pytest.raises(InsufficientStockError):
            self.ingest(line_items=[line(1, 1001, 2), line(2, 1002, 6)])

        assert self.db.query(Order).count() == 0
        assert self.db.query(Batch).count() == 0
        assert self.db.query(BatchItem).count() == 0
        assert self.db.query(BatchItemUnit).count() == 0
        assert self.tumbler_stock.current_stock == 5

    def test_unknown_store_rejected(self):
        with pytest.raises(NotFoundError):
            self.service.ingest_order("nobody.myshopify.com", order_payload(line_items=[line(1, 1001, 1)]))

    def test_payload_without_id_rejected(self):
        with pytest.raises(ValidationError):
            self.ingest(line_items=[line(1, 1001, 1)], id=None)

    def test_payload_without_line_items_rejected(self):
        payload = order_payload()
        del payload["line_items"]

        with pytest.raises(ValidationError):
            self.service.ingest_order(self.store.shop_domain, payload)
