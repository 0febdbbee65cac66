"""
Tests for the post-commit external sync dispatcher.
"""
from unittest.mock import MagicMock

import pytest

from app.integrations import ShopifyClient
from app.models.order_event import OrderEvent
from app.services import sync_dispatcher
from app.services.sync_dispatcher import CANCEL_ORDER, ExternalSyncDispatcher, SyncOutbox
from tests.factories import create_test_order, create_test_product, create_test_store


def graphql_response(body):
    resp = MagicMock()
    resp.status_code = 200
    resp.content = b"{}"
    resp.json.return_value = body
    return resp


class TestDispatch:
    """Every queued action runs, whatever the previous one raised"""

    @pytest.fixture(autouse=True)
    def setup(self, db_session, monkeypatch):
        self.db = db_session
        self.reported = []
        monkeypatch.setattr(
            sync_dispatcher.sentry_sdk,
            "capture_exception",
            lambda error, **kwargs: self.reported.append((error, kwargs)),
        )
        store = create_test_store(db_session)
        product = create_test_product(db_session, store, product_type="Mugs")
        self.orders = [create_test_order(db_session, store, [(product, 1)]) for _ in range(2)]
        db_session.commit()

        self.outbox = SyncOutbox()
        for order in self.orders:
            self.outbox.enqueue(CANCEL_ORDER, order.id)

    def failures(self, order):
        return (
            self.db.query(OrderEvent)
            .filter(OrderEvent.order_id == order.id, OrderEvent.event_type == "sync_failed")
            .all()
        )

    def test_null_mutation_payload_recorded_for_every_action(self, test_settings):
        """A null orderCancel payload fails each cancel without stopping the next."""
        # Arrange
        session = MagicMock()
        session.post.return_value = graphql_response({"data": {"orderCancel": None}})
        commerce = ShopifyClient(test_settings, session=session)
        dispatcher = ExternalSyncDispatcher(self.db, commerce=commerce)

        # Act
        outcomes = dispatcher.dispatch(self.outbox)

        # Assert
        assert [o.succeeded for o in outcomes] == [False, False]
        assert "orderCancel" in outcomes[0].error
        assert session.post.call_count == 2
        assert [len(self.failures(order)) for order in self.orders] == [1, 1]
        assert self.outbox.actions == []

    def test_unexpected_exception_recorded_and_next_action_runs(self):
        commerce = MagicMock()
        commerce.cancel_order.side_effect = [KeyError("orderCancel"), {"job": None}]
        dispatcher = ExternalSyncDispatcher(self.db, commerce=commerce)

        outcomes = dispatcher.dispatch(self.outbox)

        assert [o.succeeded for o in outcomes] == [False, True]
        assert commerce.cancel_order.call_count == 2
        assert [len(self.failures(order)) for order in self.orders] == [1, 0]

    def test_failures_reported_with_action_context(self):
        commerce = MagicMock()
        commerce.cancel_order.side_effect = KeyError("orderCancel")
        dispatcher = ExternalSyncDispatcher(self.db, commerce=commerce)

        dispatcher.dispatch(self.outbox)

        assert len(self.reported) == 2
        error, kwargs = self.reported[0]
        assert isinstance(error, KeyError)
        context = kwargs["contexts"]["sync_action"]
        assert (context["kind"], context["order_id"]) == (CANCEL_ORDER, self.orders[0].id)

    def test_missing_client_is_a_recorded_failure(self):
        dispatcher = ExternalSyncDispatcher(self.db)

        outcomes = dispatcher.dispatch(self.outbox)

        assert all(not o.succeeded for o in outcomes)
        assert outcomes[0].error == "Shopify: Client not configured"

    def test_unknown_action_kind_rejected(self):
        dispatcher = ExternalSyncDispatcher(self.db)
        outbox = SyncOutbox()
        outbox.enqueue("reprint_label", self.orders[0].id)

        with pytest.raises(ValueError):
            dispatcher.dispatch(outbox)
