"""
Booking upsert engine.

create-or-update keyed by ticket identifier: one call leaves exactly one
booking row for the ticket, whether it inserted or updated. The unique
constraint on bookings.ticket_id is the authority under concurrency: the
insert runs in a SAVEPOINT and a writer that loses the race retries once
as an update.
"""

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database.models import Booking
from ..models.booking import BookingFields, UpsertResult
from ..models.enums import BookingStatus
from ..utils.exceptions import Conflict, MissingFields
from .authorization import Caller, ensure_can_access, require_authenticated, resolve_owner
from .cancellation_engine import cancel_locked_booking
from .identifiers import new_ticket_id
from .ledger import find_booking
from .refund_policy import quantize

logger = logging.getLogger(__name__)


def coerce_fields(fields) -> BookingFields:
    """Accept a BookingFields or a plain mapping from the routing layer."""
    if isinstance(fields, BookingFields):
        return fields
    if fields is None:
        raise MissingFields("Missing flight_id or price")
    try:
        return BookingFields.model_validate(fields)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise MissingFields(f"Missing or invalid fields: {', '.join(missing)}") from e


def _apply_itinerary(booking: Booking, fields: BookingFields, username: Optional[str]) -> None:
    booking.flight_id = fields.flight_id
    booking.flight_name = fields.flight_name
    booking.source = fields.source
    booking.destination = fields.destination
    booking.travel_date = fields.travel_date
    booking.duration = fields.duration
    booking.class_type = fields.class_type
    booking.price = quantize(fields.price)
    booking.username = username


def _update_existing(session: Session, caller: Caller, booking: Booking, fields: BookingFields) -> UpsertResult:
    # Ownership never moves: users must already own the row
    ensure_can_access(caller, booking)

    if booking.cancelled:
        # Cancelled rows are frozen: no revival, no itinerary or price change
        logger.info(f"Booking {booking.ticket_id} is cancelled, update ignored")
        return UpsertResult(ticket_id=booking.ticket_id, user_id=booking.user_id, created=False)

    if fields.cancelled:
        # Cancels the stored booking; the submitted itinerary is not applied
        cancel_locked_booking(session, caller, booking, fields.cancel_reason)
        return UpsertResult(ticket_id=booking.ticket_id, user_id=booking.user_id, created=False)

    username = (caller.username if not caller.is_admin else None) or fields.username or booking.username
    _apply_itinerary(booking, fields, username)
    if booking.status != BookingStatus.PAID.value:
        booking.status = BookingStatus.CONFIRMED.value

    booking.updated_at = datetime.now()
    session.flush()
    logger.info(f"Booking updated: {booking.ticket_id} (user {booking.user_id})")
    return UpsertResult(ticket_id=booking.ticket_id, user_id=booking.user_id, created=False)


def insert_booking(session: Session, ticket_id: str, owner: str, fields, username: Optional[str]) -> Booking:
    """
    Insert a fresh Confirmed booking inside a SAVEPOINT.

    Raises:
        IntegrityError: If the ticket id already exists; only the
            savepoint is rolled back
    """
    booking = Booking(
        ticket_id=ticket_id,
        user_id=owner,
        status=BookingStatus.CONFIRMED.value,
        cancelled=False,
        created_at=datetime.now(),
    )
    _apply_itinerary(booking, fields, username)
    with session.begin_nested():
        session.add(booking)
    return booking


def upsert_booking(
    session: Session,
    caller: Caller,
    fields,
    ticket_id: Optional[str] = None,
) -> UpsertResult:
    """
    Create a booking for a ticket, or update the one that exists.

    Args:
        session: Session inside an open transaction
        caller: Classified caller; guests are rejected
        fields: BookingFields or mapping with at least flight_id and price
        ticket_id: Ticket to upsert; generated when absent

    Returns:
        UpsertResult with the final ticket id and owner

    Raises:
        Unauthenticated: No caller identity and no body user id
        MissingFields: flight_id or price missing or invalid
        Forbidden: A user targets someone else's ticket
        AlreadyCancelled: The cancel flag lost a race with another cancel
        Conflict: The ticket was inserted concurrently twice in a row
    """
    require_authenticated(caller)
    fields = coerce_fields(fields)
    ticket_id = (ticket_id or "").strip() or new_ticket_id()

    existing = find_booking(session, ticket_id, lock=True)
    if existing is not None and existing.ticket_id == ticket_id:
        return _update_existing(session, caller, existing, fields)

    owner = resolve_owner(caller, fields.user_id)
    username = caller.username or fields.username
    try:
        insert_booking(session, ticket_id, owner, fields, username)
    except IntegrityError:
        logger.warning(f"Ticket {ticket_id} inserted concurrently, retrying as update")
        existing = find_booking(session, ticket_id, lock=True)
        if existing is None:
            raise Conflict(f"Could not store booking {ticket_id}")
        return _update_existing(session, caller, existing, fields)

    logger.info(f"Booking stored: {ticket_id} (user {owner})")
    return UpsertResult(ticket_id=ticket_id, user_id=owner, created=True)
