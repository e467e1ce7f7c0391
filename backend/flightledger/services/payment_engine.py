"""
Payment recording engine.

Records a completed charge against a ticket. Amounts are normalized to
max(0, amount), so this path never writes a negative ledger entry; the
only negative rows are refunds written by the cancellation engine.

When the ticket has no booking yet the booking is created from the
supplied details in the same transaction. A payment flagged as a
cancellation goes through the same role-dependent rule as the
cancellation engine (refund_policy.apply_cancellation_policy).
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database.models import Booking
from ..models.booking import BookingDetails, BookingFields
from ..models.enums import BookingStatus, PaymentMethod
from ..models.payment import PaymentResult
from ..utils.exceptions import AlreadyCancelled, BookingRequired, Conflict, MissingFields
from .authorization import Caller, ensure_can_access, require_authenticated, resolve_owner
from .booking_engine import insert_booking
from .cancellation_engine import mark_cancelled
from .ledger import append_payment, find_booking
from .refund_policy import ZERO, apply_cancellation_policy, cancellation_label, parse_amount

logger = logging.getLogger(__name__)


def normalize_method(method: Any) -> str:
    """Map a method tag onto PaymentMethod, case-insensitively."""
    cleaned = str(method or "").strip().lower().replace(" ", "")
    for candidate in PaymentMethod:
        if cleaned in (candidate.value.lower(), candidate.name.lower().replace("_", "")):
            return candidate.value
    accepted = ", ".join(m.value for m in PaymentMethod)
    raise MissingFields(f"Unsupported payment method '{method}'; expected one of: {accepted}")


def coerce_details(details) -> Optional[BookingDetails]:
    if details is None or isinstance(details, BookingDetails):
        return details
    try:
        return BookingDetails.model_validate(details)
    except ValidationError as e:
        raise MissingFields(f"Invalid booking details: {e.error_count()} error(s)") from e


def _ticket_booking(session: Session, ticket_id: str) -> Optional[Booking]:
    booking = find_booking(session, ticket_id, lock=True)
    if booking is not None and booking.ticket_id != ticket_id:
        return None
    return booking


def _create_from_details(
    session: Session,
    caller: Caller,
    ticket_id: str,
    details: BookingDetails,
    price,
) -> Booking:
    if not details.flight_id:
        raise MissingFields("flight_id is required to create a booking")
    owner = resolve_owner(caller, details.user_id)
    fields = BookingFields(
        flight_id=details.flight_id,
        flight_name=details.flight_name,
        source=details.source,
        destination=details.destination,
        travel_date=details.travel_date,
        duration=details.duration,
        class_type=details.class_type,
        price=price,
    )
    username = caller.username or details.username
    try:
        booking = insert_booking(session, ticket_id, owner, fields, username)
    except IntegrityError:
        # Someone created it between our lookup and insert; use theirs
        booking = _ticket_booking(session, ticket_id)
        if booking is None:
            raise Conflict(f"Could not create booking {ticket_id}")
        ensure_can_access(caller, booking)
        return booking
    logger.info(f"Booking {ticket_id} created with its first payment (user {owner})")
    return booking


def record_payment(
    session: Session,
    caller: Caller,
    ticket_id: Optional[str],
    amount: Any,
    method: Any,
    booking_details=None,
    cancel: bool = False,
    transaction_id: Optional[str] = None,
) -> PaymentResult:
    """
    Record a completed charge against a ticket.

    Args:
        session: Session inside an open transaction
        caller: Classified caller
        ticket_id: Ticket the money belongs to
        amount: Charge; negative or non-numeric values count as zero
        method: Payment method tag (UPI, Cash, Card, NetBanking)
        booking_details: BookingDetails or mapping, used when the ticket has
            no booking yet; its cancelled flag also marks a cancellation
        cancel: Treat this as a cancellation-with-charge
        transaction_id: Optional external reference stored on the row

    Returns:
        PaymentResult; payment_id is None when the charge was zero

    Raises:
        Unauthenticated, MissingFields, BookingRequired, Forbidden,
        AlreadyCancelled
    """
    require_authenticated(caller)
    ticket_id = (ticket_id or "").strip()
    if not ticket_id or amount is None or method in (None, ""):
        raise MissingFields("ticket_id, amount and method are required")
    method = normalize_method(method)
    details = coerce_details(booking_details)
    effective = max(ZERO, parse_amount(amount))
    cancelling = bool(cancel or (details is not None and details.cancelled))

    booking = _ticket_booking(session, ticket_id)
    if booking is None:
        if details is None:
            raise BookingRequired(f"Booking details required for new ticket {ticket_id}")
        booking = _create_from_details(session, caller, ticket_id, details, effective)
    else:
        ensure_can_access(caller, booking)

    if cancelling:
        if booking.cancelled:
            raise AlreadyCancelled(f"Booking {ticket_id} is already cancelled")
        adjustment = apply_cancellation_policy(caller, booking.price, amount)
        mark_cancelled(session, booking, cancellation_label(caller))
        if not caller.is_admin:
            booking.price = adjustment.price
        charge = adjustment.charge
    else:
        charge = effective
        if not booking.cancelled:
            booking.status = BookingStatus.PAID.value
    booking.updated_at = datetime.now()

    payment_id = None
    if charge > 0:
        payment = append_payment(session, booking, charge, method, transaction_id=transaction_id)
        payment_id = payment.payment_id
    else:
        charge = ZERO
        logger.info(f"Zero-value payment for {ticket_id} not recorded")

    session.flush()
    logger.info(f"Payment processed for {ticket_id}: {charge} via {method} ({caller})")
    return PaymentResult(
        payment_id=payment_id,
        ticket_id=ticket_id,
        amount=charge,
        booking_status=BookingStatus(booking.status),
    )
