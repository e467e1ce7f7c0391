"""
Flight ledger Pydantic models package.

This package contains the request, result and read models exchanged with
the routing collaborator.
"""

# Enums
from .enums import (
    BookingStatus,
    PaymentStatus,
    FareClass,
    PaymentMethod,
    UserRole,
    SessionRole,
    CallerKind,
)

# Session and user models
from .user import (
    SessionView,
    UserModel,
)

# Booking models
from .booking import (
    BookingFields,
    BookingDetails,
    BookingModel,
    UpsertResult,
    CancellationResult,
)

# Payment models
from .payment import (
    PaymentModel,
    PaymentResult,
    SanitizeReport,
)

__all__ = [
    # Enums
    "BookingStatus",
    "PaymentStatus",
    "FareClass",
    "PaymentMethod",
    "UserRole",
    "SessionRole",
    "CallerKind",

    # Session and user
    "SessionView",
    "UserModel",

    # Booking
    "BookingFields",
    "BookingDetails",
    "BookingModel",
    "UpsertResult",
    "CancellationResult",

    # Payment
    "PaymentModel",
    "PaymentResult",
    "SanitizeReport",
]
