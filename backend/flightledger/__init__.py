"""
flightledger: transactional core of a flight booking service

Keeps three things consistent under concurrent requests:
1. Bookings, upserted on their ticket identifier
2. Cancellations, with role-dependent refund and charge rules
3. An append-only payment ledger of charges and refunds

The routing and session collaborators call into BookingLedger; every
operation runs in exactly one database transaction.
"""

__version__ = "0.1.0"
