"""
Business logic services for the flight ledger.

This module contains the booking upsert, cancellation and payment engines,
the ledger store operations and the BookingLedger facade that wraps each
of them in a single transaction.
"""

from .authorization import Caller, classify, ANONYMOUS
from .booking_engine import upsert_booking
from .cancellation_engine import cancel_booking
from .payment_engine import record_payment
from .refund_policy import compute_refund, apply_cancellation_policy, CancellationAdjustment
from .identifiers import create_user, next_user_id, new_ticket_id, new_payment_id
from .booking_ledger import BookingLedger

__all__ = [
    'Caller',
    'classify',
    'ANONYMOUS',
    'upsert_booking',
    'cancel_booking',
    'record_payment',
    'compute_refund',
    'apply_cancellation_policy',
    'CancellationAdjustment',
    'create_user',
    'next_user_id',
    'new_ticket_id',
    'new_payment_id',
    'BookingLedger',
]
