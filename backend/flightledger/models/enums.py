"""
Enums for the flight ledger.

The string values are the ones stored in the database and shown to the
routing layer, so they must not change.
"""

from enum import Enum


class BookingStatus(str, Enum):
    """Lifecycle of a booking row."""
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    """Status recorded on a ledger entry."""
    SUCCESS = "Success"      # charge collected
    REFUNDED = "Refunded"    # negative entry owed back to the user


class FareClass(str, Enum):
    """Fare classes that carry a refund multiplier."""
    ECONOMY = "Economy"
    BUSINESS = "Business"
    FIRST = "First"


class PaymentMethod(str, Enum):
    """Accepted payment method tags."""
    UPI = "UPI"
    CASH = "Cash"
    CARD = "Card"
    NET_BANKING = "NetBanking"


class UserRole(str, Enum):
    """Role stored on a user account."""
    USER = "user"
    ADMIN = "admin"


class SessionRole(str, Enum):
    """Role exposed by the session collaborator."""
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class CallerKind(str, Enum):
    """Classification produced by the authorization gate."""
    ADMIN = "admin"
    USER = "user"
    UNAUTHENTICATED = "unauthenticated"
