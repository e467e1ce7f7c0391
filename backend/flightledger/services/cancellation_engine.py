"""
Cancellation and refund engine.

Cancelling flips the booking to Cancelled and writes its money effect in
the same transaction:

- user cancellation: a negative Refunded ledger row for the computed
  refund, and the stored price reduced by it (floored at zero);
- admin cancellation: the price is left alone; a positive amount from the
  admin becomes an extra Success row, nothing else is written.

Two concurrent cancels of one booking cannot both apply: the row is read
under FOR UPDATE where the backend supports it, and the state change is a
compare-and-set on cancelled = false.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..database.models import Booking
from ..models.booking import CancellationResult
from ..models.enums import BookingStatus, PaymentMethod, PaymentStatus
from ..utils.exceptions import AlreadyCancelled, NotFound
from .authorization import Caller, ensure_can_access, require_authenticated
from .ledger import BookingRef, append_payment, find_booking
from .refund_policy import ZERO, apply_cancellation_policy, cancellation_label, compute_refund

logger = logging.getLogger(__name__)

CANCELLATION_METHOD = PaymentMethod.CARD


def mark_cancelled(session: Session, booking: Booking, label: str) -> None:
    """
    Move a live booking to Cancelled.

    Raises:
        AlreadyCancelled: If another transaction cancelled it first
    """
    now = datetime.now()
    result = session.execute(
        update(Booking)
        .where(Booking.id == booking.id, Booking.cancelled.is_(False))
        .values(
            cancelled=True,
            status=BookingStatus.CANCELLED.value,
            reason=label,
            cancel_reason=label,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyCancelled(f"Booking {booking.ticket_id} is already cancelled")
    session.refresh(booking)


def cancel_booking(
    session: Session,
    caller: Caller,
    booking_ref: BookingRef,
    reason: Optional[str] = None,
    amount: Any = None,
) -> CancellationResult:
    """
    Cancel a booking and record the refund or admin charge.

    Args:
        session: Session inside an open transaction
        caller: Classified caller; decides the financial rule
        booking_ref: Ticket id or internal booking id
        reason: Optional label; defaults by role
        amount: Admin only, an extra charge to record; ignored for users

    Returns:
        CancellationResult with the refund (0 for admins) and label

    Raises:
        Unauthenticated, NotFound, Forbidden, AlreadyCancelled
    """
    require_authenticated(caller)
    booking = find_booking(session, booking_ref, lock=True)
    if booking is None:
        raise NotFound(f"Booking {booking_ref} not found")
    ensure_can_access(caller, booking)
    return cancel_locked_booking(session, caller, booking, reason, amount)


def cancel_locked_booking(
    session: Session,
    caller: Caller,
    booking: Booking,
    reason: Optional[str] = None,
    amount: Any = None,
) -> CancellationResult:
    """
    Cancel a booking already read under lock and checked for access.

    Used by cancel_booking and by the cancel flag of the booking upsert,
    so both write the same ledger effect.

    Raises:
        AlreadyCancelled: If the booking is, or concurrently becomes,
            cancelled
    """
    if booking.cancelled:
        raise AlreadyCancelled(f"Booking {booking.ticket_id} is already cancelled")

    label = cancellation_label(caller, reason)
    original_price = booking.price

    if caller.is_admin:
        adjustment = apply_cancellation_policy(caller, original_price, amount)
        refund = ZERO
    else:
        refund = compute_refund(original_price, booking.class_type)
        adjustment = apply_cancellation_policy(caller, original_price, refund)

    mark_cancelled(session, booking, label)

    payment_id = None
    charge = ZERO
    if caller.is_admin:
        if adjustment.charge > 0:
            charge = adjustment.charge
            payment_id = append_payment(session, booking, charge, CANCELLATION_METHOD.value).payment_id
        else:
            logger.info(f"Admin cancellation of {booking.ticket_id}: no deduction, no ledger entry")
    else:
        booking.price = adjustment.price
        booking.updated_at = datetime.now()
        payment_id = append_payment(
            session, booking, -refund, CANCELLATION_METHOD.value, status=PaymentStatus.REFUNDED
        ).payment_id

    session.flush()
    logger.info(
        f"Booking {booking.ticket_id} cancelled by {caller}"
        + (f", refund {refund}" if refund else "")
        + (f", extra charge {charge}" if charge else "")
    )
    return CancellationResult(
        ticket_id=booking.ticket_id,
        refund_amount=refund,
        reason_label=label,
        charge_amount=charge,
        payment_id=payment_id,
    )
