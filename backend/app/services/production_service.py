"""
Production Service

Facade over the production engine. Each public method is one unit of work:

    run domain operation -> commit (or roll back on error) -> dispatch the
    queued external sync actions

Collaborators are passed in explicitly; nothing here reaches for a global
session or client.
"""
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.settings import Settings, get_settings
from app.exceptions import ConflictError, NotFoundError
from app.logging_config import get_logger
from app.models.batch import Batch, BatchItemUnit
from app.models.order import Order
from app.services import overrides, replacement, returns, unit_state_machine
from app.services.auto_status import auto_promote
from app.services.batch_allocator import assign_order_item
from app.services.order_ingestion import IngestResult, ingest_order
from app.services.sync_dispatcher import ExternalSyncDispatcher, SyncOutbox, SyncOutcome

logger = get_logger(__name__)


class ProductionService:
    """
    Args:
        db: Session; the service commits and rolls back on it
        commerce: Commerce platform client (e.g. ShopifyClient)
        shipping: Shipping provider client (e.g. BostaClient)
        qr: QR generator (e.g. QRCodeGenerator)
        settings: Application settings
    """

    def __init__(
        self,
        db: Session,
        commerce=None,
        shipping=None,
        qr=None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.commerce = commerce
        self.shipping = shipping
        self.qr = qr
        self.settings = settings or get_settings()
        self.dispatcher = ExternalSyncDispatcher(db, commerce=commerce, shipping=shipping)
        self.last_sync_outcomes: List[SyncOutcome] = []

    def _unit_of_work(self, operation: Callable[[SyncOutbox], Any], *, retries: int = 1) -> Any:
        """Run operation in a transaction; retry ConflictError up to retries times."""
        attempt = 0
        while True:
            attempt += 1
            outbox = SyncOutbox()
            try:
                result = operation(outbox)
                self.db.commit()
            except ConflictError as e:
                self.db.rollback()
                if attempt >= retries:
                    logger.error(f"Giving up after {attempt} conflicting attempt(s): {e.message}")
                    raise
                logger.warning(f"Conflict on attempt {attempt}, retrying: {e.message}", extra={"details": e.details})
                continue
            except Exception:
                self.db.rollback()
                raise

            self.last_sync_outcomes = self.dispatcher.dispatch(outbox)
            return result

    # ===================
    # Ingestion / allocation
    # ===================

    def ingest_order(self, shop_domain: str, payload: Dict[str, Any]) -> IngestResult:
        return self._unit_of_work(
            lambda outbox: ingest_order(self.db, outbox, shop_domain, payload, self.qr, self.settings),
            retries=self.settings.ALLOCATION_MAX_RETRIES,
        )

    def assign_order_item(self, order_item) -> list:
        return self._unit_of_work(
            lambda outbox: assign_order_item(self.db, order_item, outbox, self.qr, self.settings),
            retries=self.settings.ALLOCATION_MAX_RETRIES,
        )

    # ===================
    # Scans and unit writes
    # ===================

    def scan_unit(self, stage: str, unit_id: Optional[int] = None, token: Optional[str] = None):
        return self._unit_of_work(
            lambda outbox: unit_state_machine.scan_unit(self.db, outbox, stage, unit_id=unit_id, token=token)
        )

    def scan_batch(self, token: str, stage: str = "printer"):
        return self._unit_of_work(
            lambda outbox: unit_state_machine.scan_batch(self.db, outbox, token, stage)
        )

    def update_units_status(self, unit_ids: List[int], status: str) -> List[BatchItemUnit]:
        return self._unit_of_work(
            lambda outbox: unit_state_machine.bulk_update_units(
                self.db, outbox, unit_ids, status, self.qr, self.settings
            ),
            retries=self.settings.ALLOCATION_MAX_RETRIES,
        )

    def replace_unit(self, unit_id: int, reason: str) -> replacement.ReplacementResult:
        return self._unit_of_work(
            lambda outbox: replacement.replace_unit(self.db, outbox, unit_id, reason, self.qr, self.settings),
            retries=self.settings.ALLOCATION_MAX_RETRIES,
        )

    def mark_units_returned(self, unit_ids: List[int], reason: Optional[str] = None):
        return self._unit_of_work(
            lambda outbox: returns.mark_units_returned(self.db, outbox, unit_ids, reason)
        )

    # ===================
    # Batches
    # ===================

    def set_batch_status(self, batch_id: int, status: str) -> Batch:
        return self._unit_of_work(
            lambda outbox: overrides.set_batch_status(self.db, outbox, batch_id, status)
        )

    def attach_design_file(self, batch_id: int, file_name: str, **file_info):
        return self._unit_of_work(
            lambda outbox: overrides.attach_design_file(
                self.db, outbox, batch_id, file_name, qr=self.qr, settings=self.settings, **file_info
            )
        )

    def auto_promote(self, batch_id: int):
        def operation(outbox):
            batch = self.db.query(Batch).filter(Batch.id == batch_id).with_for_update().first()
            if batch is None:
                raise NotFoundError("Batch", batch_id)
            return auto_promote(self.db, batch, outbox, self.qr, self.settings)

        return self._unit_of_work(operation)

    # ===================
    # Order items
    # ===================

    def set_order_item_status(self, order_item_id: int, status: str):
        return self._unit_of_work(
            lambda outbox: overrides.set_order_item_status(self.db, outbox, order_item_id, status)
        )

    def get_order(self, order_id: int) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    def get_batch(self, batch_id: int) -> Batch:
        batch = self.db.get(Batch, batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch
