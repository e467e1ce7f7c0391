"""
Ledger store access: booking lookups, ledger appends, reads and admin
maintenance over the bookings and payments tables.

Engines use find_booking and append_payment inside their transaction.
The remaining functions back the read and maintenance operations the
routing collaborator exposes to users and administrators.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from ..database.models import Booking, Payment, User
from ..models.enums import PaymentStatus
from ..models.payment import SanitizeReport
from ..utils.exceptions import NotFound, Forbidden
from .authorization import Caller, ensure_can_access, ensure_can_view_user, require_admin, require_authenticated
from .identifiers import new_payment_id

logger = logging.getLogger(__name__)

BookingRef = Union[str, int]


def find_booking(session: Session, ref: BookingRef, lock: bool = False) -> Optional[Booking]:
    """
    Look a booking up by ticket identifier or internal row id.

    Strings are tried as ticket ids first; an all-digit string that
    matches no ticket falls back to the row id.

    Args:
        session: Session inside an open transaction
        ref: Ticket id, or internal id as int or digit string
        lock: Take a row lock (SELECT ... FOR UPDATE) where supported
    """
    def _one(stmt):
        if lock:
            stmt = stmt.with_for_update()
        return session.scalars(stmt).first()

    if isinstance(ref, int) and not isinstance(ref, bool):
        return _one(select(Booking).where(Booking.id == ref))

    ref = str(ref).strip()
    if not ref:
        return None
    booking = _one(select(Booking).where(Booking.ticket_id == ref))
    if booking is None and ref.isdigit():
        booking = _one(select(Booking).where(Booking.id == int(ref)))
    return booking


def append_payment(
    session: Session,
    booking: Booking,
    amount: Decimal,
    method: str,
    status: PaymentStatus = PaymentStatus.SUCCESS,
    transaction_id: Optional[str] = None,
) -> Payment:
    """Append one ledger entry for a booking and flush it."""
    now = datetime.now()
    payment = Payment(
        payment_id=new_payment_id(),
        ticket_id=booking.ticket_id,
        user_id=booking.user_id,
        flight_id=booking.flight_id,
        amount=amount,
        method=method,
        status=status.value,
        transaction_id=transaction_id,
        payment_date=now,
        created_at=now,
    )
    session.add(payment)
    session.flush()
    return payment


# Reads

def get_booking(session: Session, caller: Caller, ref: BookingRef) -> Booking:
    """Fetch one booking the caller may see."""
    require_authenticated(caller)
    booking = find_booking(session, ref)
    if booking is None:
        raise NotFound(f"Booking {ref} not found")
    ensure_can_access(caller, booking)
    return booking


def list_bookings(session: Session, caller: Caller) -> List[Booking]:
    """All bookings for admins, own bookings for users; newest first."""
    require_authenticated(caller)
    stmt = select(Booking).order_by(Booking.created_at.desc(), Booking.id.desc())
    if not caller.is_admin:
        stmt = stmt.where(Booking.user_id == caller.user_id)
    return list(session.scalars(stmt))


def latest_booking(session: Session, caller: Caller, user_id: str) -> Optional[Booking]:
    """Most recent booking of a user, or None when they have none."""
    ensure_can_view_user(caller, user_id)
    stmt = (
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(1)
    )
    return session.scalars(stmt).first()


def list_payments(session: Session, caller: Caller, user_id: Optional[str] = None) -> List[Payment]:
    """
    Ledger entries, newest first.

    Admins see everything, optionally narrowed to one user; users only see
    entries on tickets they own.
    """
    require_authenticated(caller)
    if not caller.is_admin:
        if user_id is not None and user_id != caller.user_id:
            raise Forbidden("Unauthorized access")
        user_id = caller.user_id

    stmt = select(Payment).order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    if user_id is not None:
        stmt = stmt.join(Booking, Payment.ticket_id == Booking.ticket_id).where(Booking.user_id == user_id)
    return list(session.scalars(stmt))


def payment_for_ticket(session: Session, caller: Caller, ticket_id: str) -> Payment:
    """First ledger entry recorded for a ticket."""
    require_authenticated(caller)
    stmt = (
        select(Payment)
        .where(Payment.ticket_id == ticket_id)
        .order_by(Payment.payment_date.asc(), Payment.created_at.asc())
        .limit(1)
    )
    payment = session.scalars(stmt).first()
    if payment is None:
        raise NotFound(f"No payment found for ticket {ticket_id}")
    if not caller.is_admin and payment.user_id != caller.user_id:
        raise Forbidden("Unauthorized access")
    return payment


# Admin maintenance

def sanitize_payments(session: Session, caller: Caller) -> SanitizeReport:
    """
    Clamp negative payment amounts and negative booking prices to zero.

    This is the one sanctioned in-place edit of ledger amounts.
    """
    require_admin(caller)

    payments_fixed = session.scalar(select(func.count()).select_from(Payment).where(Payment.amount < 0)) or 0
    if payments_fixed:
        session.execute(
            update(Payment).where(Payment.amount < 0).values(amount=0),
            execution_options={"synchronize_session": False},
        )

    bookings_fixed = session.scalar(select(func.count()).select_from(Booking).where(Booking.price < 0)) or 0
    if bookings_fixed:
        session.execute(
            update(Booking).where(Booking.price < 0).values(price=0, updated_at=datetime.now()),
            execution_options={"synchronize_session": False},
        )

    logger.info(f"Sanitized {payments_fixed} payments and {bookings_fixed} bookings ({caller})")
    return SanitizeReport(payments_fixed=payments_fixed, bookings_fixed=bookings_fixed)


def clear_payments(session: Session, caller: Caller) -> int:
    """Delete every ledger entry; returns how many were removed."""
    require_admin(caller)
    count = session.scalar(select(func.count()).select_from(Payment)) or 0
    session.execute(delete(Payment), execution_options={"synchronize_session": False})
    logger.info(f"Cleared {count} payments ({caller})")
    return count


def delete_all_bookings(session: Session, caller: Caller) -> int:
    """Delete every booking; their payments go with them by cascade."""
    require_admin(caller)
    count = session.scalar(select(func.count()).select_from(Booking)) or 0
    session.execute(delete(Booking), execution_options={"synchronize_session": False})
    logger.info(f"Deleted {count} bookings and their payments ({caller})")
    return count


def clear_user_bookings(session: Session, caller: Caller, user_id: str) -> int:
    """Delete one user's bookings and, by cascade, their payments."""
    ensure_can_view_user(caller, user_id)
    count = session.scalar(
        select(func.count()).select_from(Booking).where(Booking.user_id == user_id)
    ) or 0
    session.execute(
        delete(Booking).where(Booking.user_id == user_id),
        execution_options={"synchronize_session": False},
    )
    logger.info(f"Cleared {count} bookings of {user_id} ({caller})")
    return count


def delete_user(session: Session, caller: Caller, user_id: str) -> int:
    """
    Remove a user together with their bookings and payments.

    Returns:
        Number of bookings removed with the user
    """
    require_admin(caller)
    user = session.scalars(select(User).where(User.user_id == user_id)).first()
    if user is None:
        raise NotFound(f"User {user_id} not found")
    removed = clear_user_bookings(session, caller, user_id)
    session.delete(user)
    session.flush()
    logger.info(f"Deleted user {user_id} ({caller})")
    return removed
