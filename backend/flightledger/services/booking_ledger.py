"""
Booking ledger facade.

Entry point used by the routing collaborator. Every call classifies the
session view, opens exactly one transaction through DatabaseConfig and
converts ORM rows to pydantic models before the session closes.
"""

import logging
from typing import Callable, List, Optional

from ..database.config import DatabaseConfig
from ..models.booking import BookingModel, CancellationResult, UpsertResult
from ..models.enums import UserRole
from ..models.payment import PaymentModel, PaymentResult, SanitizeReport
from ..models.user import SessionView, UserModel
from ..utils.config import LedgerConfig, get_config
from ..utils.exceptions import StorageFailure
from . import ledger
from .authorization import classify
from .booking_engine import upsert_booking
from .cancellation_engine import cancel_booking as _cancel_booking
from .identifiers import create_user as _create_user, next_user_id as _next_user_id
from .payment_engine import record_payment as _record_payment

logger = logging.getLogger(__name__)


class BookingLedger:
    """
    Transactional core for bookings, cancellations and payments.

    Example:
        db = initialize_database("sqlite:///flightledger.db")
        ledger = BookingLedger(db)
        view = SessionView(role="user", user_id="U001")
        result = ledger.create_or_update_booking(view, {"flight_id": "AI-202", "price": 4500})
        ledger.cancel_booking(view, result.ticket_id)
    """

    def __init__(self, db_config: DatabaseConfig, settings: Optional[LedgerConfig] = None):
        self.db = db_config
        self.settings = settings or get_config()

    def _run(self, operation: Callable, *args, **kwargs):
        """Run operation(session, *args) in one transaction."""
        with self.db.transaction() as session:
            return operation(session, *args, **kwargs)

    def _run_idempotent(self, name: str, operation: Callable, *args, **kwargs):
        """Like _run, retrying on StorageFailure; only for idempotent operations."""
        attempts = self.settings.storage_retry_attempts + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._run(operation, *args, **kwargs)
            except StorageFailure as e:
                if attempt == attempts:
                    raise
                logger.warning(f"{name} failed on storage ({e}); retry {attempt}/{attempts - 1}")

    # Core operations

    def create_or_update_booking(
        self, view: Optional[SessionView], fields, ticket_id: Optional[str] = None
    ) -> UpsertResult:
        caller = classify(view)
        return self._run_idempotent("create_or_update_booking", upsert_booking, caller, fields, ticket_id)

    def cancel_booking(
        self, view: Optional[SessionView], booking_ref, reason: Optional[str] = None, amount=None
    ) -> CancellationResult:
        caller = classify(view)
        return self._run_idempotent("cancel_booking", _cancel_booking, caller, booking_ref, reason, amount)

    def record_payment(
        self,
        view: Optional[SessionView],
        ticket_id: Optional[str],
        amount,
        method,
        booking_details=None,
        cancel: bool = False,
        transaction_id: Optional[str] = None,
    ) -> PaymentResult:
        # Appends money; a blind retry could record it twice
        caller = classify(view)
        return self._run(
            _record_payment, caller, ticket_id, amount, method, booking_details, cancel, transaction_id
        )

    # Reads

    def get_booking(self, view: Optional[SessionView], booking_ref) -> BookingModel:
        def op(session):
            return BookingModel.model_validate(ledger.get_booking(session, classify(view), booking_ref))
        return self._run(op)

    def list_bookings(self, view: Optional[SessionView]) -> List[BookingModel]:
        def op(session):
            return [BookingModel.model_validate(b) for b in ledger.list_bookings(session, classify(view))]
        return self._run(op)

    def latest_booking(self, view: Optional[SessionView], user_id: str) -> Optional[BookingModel]:
        def op(session):
            booking = ledger.latest_booking(session, classify(view), user_id)
            return BookingModel.model_validate(booking) if booking is not None else None
        return self._run(op)

    def list_payments(self, view: Optional[SessionView], user_id: Optional[str] = None) -> List[PaymentModel]:
        def op(session):
            rows = ledger.list_payments(session, classify(view), user_id)
            return [PaymentModel.model_validate(p) for p in rows]
        return self._run(op)

    def payment_for_ticket(self, view: Optional[SessionView], ticket_id: str) -> PaymentModel:
        def op(session):
            return PaymentModel.model_validate(ledger.payment_for_ticket(session, classify(view), ticket_id))
        return self._run(op)

    # Admin maintenance

    def sanitize_payments(self, view: Optional[SessionView]) -> SanitizeReport:
        return self._run(ledger.sanitize_payments, classify(view))

    def clear_payments(self, view: Optional[SessionView]) -> int:
        return self._run(ledger.clear_payments, classify(view))

    def delete_all_bookings(self, view: Optional[SessionView]) -> int:
        return self._run(ledger.delete_all_bookings, classify(view))

    def clear_user_bookings(self, view: Optional[SessionView], user_id: str) -> int:
        return self._run(ledger.clear_user_bookings, classify(view), user_id)

    def delete_user(self, view: Optional[SessionView], user_id: str) -> int:
        return self._run(ledger.delete_user, classify(view), user_id)

    # Registration

    def create_user(self, username: str, email: str, role: UserRole = UserRole.USER) -> UserModel:
        """Register an account under the next sequential user id."""
        def op(session):
            user = _create_user(
                session, username, email, role=role, max_attempts=self.settings.id_retry_attempts
            )
            return UserModel.model_validate(user)
        return self._run(op)

    def next_user_id(self) -> str:
        return self._run(_next_user_id)
