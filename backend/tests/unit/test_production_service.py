"""
Tests for the production service unit of work.
"""
import pytest

from app.exceptions import ConflictError, ValidationError
from app.models.store import Store
from app.services.sync_dispatcher import CANCEL_ORDER
from tests.factories import create_test_store


class TestUnitOfWork:

    @pytest.fixture(autouse=True)
    def setup(self, db_session, service, commerce):
        self.db = db_session
        self.service = service
        self.commerce = commerce
        self.attempts = []

    def conflicting(self, failures):
        """Operation that writes a store, then conflicts on its first `failures` attempts."""
        def operation(outbox):
            self.attempts.append(outbox)
            create_test_store(self.db, shop_domain=f"attempt-{len(self.attempts)}.myshopify.com")
            if len(self.attempts) <= failures:
                outbox.enqueue(CANCEL_ORDER, 1)
                raise ConflictError("Batch capacity exceeded")
            return "done"
        return operation

    def test_conflict_retried_in_fresh_transaction(self):
        """A conflicting attempt is rolled back and the operation rerun."""
        # Act
        result = self.service._unit_of_work(self.conflicting(failures=1), retries=2)

        # Assert
        assert result == "done"
        assert len(self.attempts) == 2
        assert self.attempts[0] is not self.attempts[1]
        assert [s.shop_domain for s in self.db.query(Store).all()] == ["attempt-2.myshopify.com"]

    def test_actions_of_failed_attempt_dropped(self):
        self.service._unit_of_work(self.conflicting(failures=1), retries=2)

        assert self.commerce.calls == []
        assert self.service.last_sync_outcomes == []

    def test_gives_up_after_retries(self):
        with pytest.raises(ConflictError):
            self.service._unit_of_work(self.conflicting(failures=5), retries=3)

        assert len(self.attempts) == 3
        assert self.db.query(Store).count() == 0

    def test_single_attempt_by_default(self):
        with pytest.raises(ConflictError):
            self.service._unit_of_work(self.conflicting(failures=1))

        assert len(self.attempts) == 1

    def test_other_errors_not_retried(self):
        def operation(outbox):
            self.attempts.append(outbox)
            create_test_store(self.db)
            raise ValidationError("Unknown stage", field="stage")

        with pytest.raises(ValidationError):
            self.service._unit_of_work(operation, retries=3)

        assert len(self.attempts) == 1
        assert self.db.query(Store).count() == 0
