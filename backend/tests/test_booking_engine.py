"""
Tests for the booking create-or-update engine.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from flightledger.database.models import Booking
from flightledger.models.booking import BookingFields
from flightledger.services import booking_engine
from flightledger.services.booking_engine import coerce_fields, upsert_booking
from flightledger.services.cancellation_engine import cancel_booking
from flightledger.utils.exceptions import Conflict, Forbidden, MissingFields, Unauthenticated


def _fields(**overrides):
    data = {
        "flight_id": "AI-202",
        "flight_name": "Air India 202",
        "source": "DEL",
        "destination": "BOM",
        "travel_date": "2030-01-15",
        "duration": "2h 10m",
        "class_type": "Business",
        "price": "4500",
    }
    data.update(overrides)
    return data


def _count(session):
    return session.scalar(select(func.count()).select_from(Booking))


class TestCoerceFields:
    """Input validation."""

    def test_accepts_model(self):
        fields = BookingFields(flight_id="AI-202", price=1)
        assert coerce_fields(fields) is fields

    def test_missing_fields_named(self):
        with pytest.raises(MissingFields) as exc_info:
            coerce_fields({"flight_name": "x"})

        assert "flight_id" in exc_info.value.message
        assert "price" in exc_info.value.message

    def test_none(self):
        with pytest.raises(MissingFields):
            coerce_fields(None)


class TestInsert:
    """First write of a ticket."""

    def test_user_creates_booking(self, session, alice):
        result = upsert_booking(session, alice, _fields(), ticket_id="TKT-1")

        assert result.created is True
        assert result.ticket_id == "TKT-1"
        assert result.user_id == "U001"

        booking = session.scalars(select(Booking).where(Booking.ticket_id == "TKT-1")).one()
        assert booking.status == "Confirmed"
        assert booking.cancelled is False
        assert booking.price == Decimal("4500.00")
        assert booking.class_type == "Business"
        assert booking.travel_date == date(2030, 1, 15)
        assert booking.username == "alice"

    def test_generates_ticket_id(self, session, alice):
        result = upsert_booking(session, alice, _fields())

        assert result.ticket_id.startswith("TKT-")
        assert _count(session) == 1

    def test_session_identity_beats_body_user_id(self, session, alice):
        result = upsert_booking(session, alice, _fields(user_id="U999"), ticket_id="TKT-1")
        assert result.user_id == "U001"

    def test_admin_books_for_body_user(self, session, admin):
        result = upsert_booking(session, admin, _fields(user_id="U005"), ticket_id="TKT-1")
        assert result.user_id == "U005"

    def test_admin_without_owner_rejected(self, session, admin):
        with pytest.raises(Unauthenticated):
            upsert_booking(session, admin, _fields(), ticket_id="TKT-1")
        assert _count(session) == 0

    def test_guest_rejected(self, session, guest):
        with pytest.raises(Unauthenticated):
            upsert_booking(session, guest, _fields(user_id="U001"), ticket_id="TKT-1")
        assert _count(session) == 0

    def test_missing_price(self, session, alice):
        with pytest.raises(MissingFields):
            upsert_booking(session, alice, {"flight_id": "AI-202"}, ticket_id="TKT-1")

    @pytest.mark.parametrize("price", ["1e30", "100000000"])
    def test_price_out_of_range(self, session, alice, price):
        with pytest.raises(MissingFields, match="price"):
            upsert_booking(session, alice, _fields(price=price), ticket_id="TKT-1")
        assert _count(session) == 0

    def test_insert_always_live(self, session, alice):
        upsert_booking(session, alice, _fields(cancelled=True), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.cancelled is False
        assert booking.status == "Confirmed"


class TestUpdate:
    """Repeated writes of the same ticket."""

    def test_idempotent(self, session, alice):
        first = upsert_booking(session, alice, _fields(), ticket_id="TKT-1")
        second = upsert_booking(session, alice, _fields(), ticket_id="TKT-1")

        assert first.created is True
        assert second.created is False
        assert second.ticket_id == first.ticket_id
        assert _count(session) == 1

    def test_updates_fields(self, session, alice):
        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")
        upsert_booking(session, alice, _fields(price="5000", class_type="first"), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.price == Decimal("5000.00")
        assert booking.class_type == "First"
        assert booking.updated_at is not None

    def test_other_user_forbidden(self, session, alice, bob):
        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")

        with pytest.raises(Forbidden):
            upsert_booking(session, bob, _fields(price="1"), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.user_id == "U001"
        assert booking.price == Decimal("4500.00")

    def test_admin_update_keeps_owner(self, session, alice, admin):
        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")
        result = upsert_booking(session, admin, _fields(user_id="U002", price="4000"), ticket_id="TKT-1")

        assert result.user_id == "U001"
        assert result.created is False

    def test_paid_booking_stays_paid(self, session, alice, booking_factory):
        booking_factory(ticket_id="TKT-1", status="Paid")

        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")

        assert session.scalars(select(Booking)).one().status == "Paid"

    def test_cancel_flag_cancels_live_booking(self, session, alice):
        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")
        upsert_booking(session, alice, _fields(cancelled=True), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.cancelled is True
        assert booking.status == "Cancelled"
        assert booking.reason == "cancelled by user"
        assert booking.cancel_reason == "cancelled by user"

    def test_user_cancel_flag_writes_refund(self, session, alice, payments_for):
        upsert_booking(session, alice, _fields(price="1000"), ticket_id="TKT-1")
        upsert_booking(session, alice, _fields(price="1000", cancelled=True), ticket_id="TKT-1")

        rows = payments_for("TKT-1")
        assert [(p.amount, p.status, p.method) for p in rows] == [(Decimal("-2020.00"), "Refunded", "Card")]
        assert session.scalars(select(Booking)).one().price == Decimal("0.00")

    def test_cancel_flag_ignores_submitted_price(self, session, alice, payments_for):
        upsert_booking(session, alice, _fields(price="1000"), ticket_id="TKT-1")
        upsert_booking(session, alice, _fields(price="90000", cancelled=True), ticket_id="TKT-1")

        assert [p.amount for p in payments_for("TKT-1")] == [Decimal("-2020.00")]

    def test_admin_cancel_flag_keeps_price(self, session, alice, admin, payments_for):
        upsert_booking(session, alice, _fields(price="1000"), ticket_id="TKT-1")
        upsert_booking(session, admin, _fields(cancelled=True, cancel_reason="weather"), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.status == "Cancelled"
        assert booking.reason == "weather"
        assert booking.price == Decimal("1000.00")
        assert payments_for("TKT-1") == []

    def test_cancelled_booking_never_revived(self, session, alice, booking_factory):
        booking_factory(ticket_id="TKT-1", status="Cancelled", cancelled=True)

        upsert_booking(session, alice, _fields(), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.cancelled is True
        assert booking.status == "Cancelled"

    def test_cancelled_booking_itinerary_frozen(self, session, alice, payments_for):
        upsert_booking(session, alice, _fields(price="1000"), ticket_id="TKT-1")
        cancel_booking(session, alice, "TKT-1")

        upsert_booking(session, alice, _fields(price="5000", source="GOI"), ticket_id="TKT-1")
        upsert_booking(session, alice, _fields(price="5000", cancelled=True), ticket_id="TKT-1")

        booking = session.scalars(select(Booking)).one()
        assert booking.price == Decimal("0.00")
        assert booking.source == "DEL"
        assert booking.status == "Cancelled"
        assert len(payments_for("TKT-1")) == 1

    def test_lost_insert_race_becomes_update(self, session, alice, booking_factory):
        """The concurrent writer's row is found on retry and updated."""
        real_find = booking_engine.find_booking
        calls = {"n": 0}

        def find_missing_once(s, ref, lock=False):
            calls["n"] += 1
            if calls["n"] == 1:
                booking_factory(ticket_id="TKT-1")
                return None
            return real_find(s, ref, lock=lock)

        with patch.object(booking_engine, "find_booking", side_effect=find_missing_once):
            result = upsert_booking(session, alice, _fields(price="777"), ticket_id="TKT-1")

        assert result.created is False
        booking = session.scalars(select(Booking)).one()
        assert booking.price == Decimal("777.00")

    def test_conflict_when_row_vanishes(self, session, alice):
        with patch.object(booking_engine, "insert_booking", side_effect=IntegrityError("INSERT", {}, Exception("dup"))):
            with pytest.raises(Conflict):
                upsert_booking(session, alice, _fields(), ticket_id="TKT-1")
