"""
Error taxonomy for the booking and payment ledger.

Every failure a ledger operation can report to its caller is one of the
classes below. Business-rule violations are raised inside the transaction
scope so the scope rolls back before the error reaches the caller; storage
errors are translated to StorageFailure at the transaction boundary.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "ledger_error"
    retryable = False

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializable form handed to the routing layer."""
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }


class Unauthenticated(LedgerError):
    """Authentication required."""

    code = "unauthenticated"


class Forbidden(LedgerError):
    """Caller is not allowed to act on this resource."""

    code = "forbidden"


class NotFound(LedgerError):
    """Referenced booking or ticket does not exist."""

    code = "not_found"


class BookingRequired(NotFound):
    """Booking details required for a ticket without a booking."""

    code = "booking_required"


class AlreadyCancelled(LedgerError):
    """Booking is already cancelled."""

    code = "already_cancelled"


class Conflict(LedgerError):
    """A concurrent writer won the uniqueness race."""

    code = "conflict"


class MissingFields(LedgerError):
    """Required fields are missing or invalid."""

    code = "missing_fields"


class StorageFailure(LedgerError):
    """The backing store aborted the transaction."""

    code = "storage_failure"
    retryable = True


__all__ = [
    "LedgerError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "BookingRequired",
    "AlreadyCancelled",
    "Conflict",
    "MissingFields",
    "StorageFailure",
]
