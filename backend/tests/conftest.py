"""
Shared fixtures for the flight ledger test suite.

Engine-level tests get a plain session on an in-memory SQLite database;
facade tests get a BookingLedger bound to its own in-memory database.
The two are never mixed in one test: an in-memory database has a single
connection.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from flightledger.database.config import DatabaseConfig
from flightledger.database.models import Booking, Payment, User
from flightledger.models.enums import CallerKind, SessionRole
from flightledger.models.user import SessionView
from flightledger.services.authorization import ANONYMOUS, Caller
from flightledger.services.booking_ledger import BookingLedger
from flightledger.utils.config import LedgerConfig


@pytest.fixture
def db():
    """In-memory SQLite database with the ledger tables."""
    config = DatabaseConfig(database_url="sqlite:///:memory:")
    config.create_tables()
    yield config
    config.close()


@pytest.fixture
def session(db):
    """Session for calling the engines directly; rolled back afterwards."""
    session = db.get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def settings():
    return LedgerConfig(database_url="sqlite:///:memory:", storage_retry_attempts=1)


@pytest.fixture
def ledger(db, settings):
    return BookingLedger(db, settings)


# Callers

@pytest.fixture
def admin():
    return Caller(kind=CallerKind.ADMIN, username="root")


@pytest.fixture
def alice():
    return Caller(kind=CallerKind.USER, user_id="U001", username="alice")


@pytest.fixture
def bob():
    return Caller(kind=CallerKind.USER, user_id="U002", username="bob")


@pytest.fixture
def guest():
    return ANONYMOUS


# Session views for the facade

@pytest.fixture
def admin_view():
    return SessionView(role=SessionRole.ADMIN, username="root")


@pytest.fixture
def alice_view():
    return SessionView(role=SessionRole.USER, user_id="U001", username="alice")


@pytest.fixture
def bob_view():
    return SessionView(role=SessionRole.USER, user_id="U002", username="bob")


@pytest.fixture
def guest_view():
    return SessionView()


@pytest.fixture
def booking_factory(session):
    """Insert booking rows directly, bypassing the engines."""
    counter = {"n": 0}

    def make(
        ticket_id=None,
        user_id="U001",
        price="1000.00",
        class_type="Economy",
        status="Confirmed",
        cancelled=False,
    ):
        counter["n"] += 1
        booking = Booking(
            ticket_id=ticket_id or f"TKT-TEST-{counter['n']:03d}",
            user_id=user_id,
            flight_id="AI-202",
            flight_name="Air India 202",
            source="DEL",
            destination="BOM",
            travel_date=date(2030, 1, 15),
            duration="2h 10m",
            class_type=class_type,
            price=Decimal(price),
            status=status,
            cancelled=cancelled,
            created_at=datetime.now(),
        )
        session.add(booking)
        session.flush()
        return booking

    return make


@pytest.fixture
def payments_for(session):
    """List the ledger rows of a ticket, oldest first."""
    def fetch(ticket_id):
        return (
            session.query(Payment)
            .filter(Payment.ticket_id == ticket_id)
            .order_by(Payment.created_at, Payment.payment_id)
            .all()
        )
    return fetch


@pytest.fixture
def user_factory(session):
    def make(user_id, username="someone", email=None, role="user"):
        user = User(user_id=user_id, username=username, email=email or f"{user_id.lower()}@example.com", role=role)
        session.add(user)
        session.flush()
        return user
    return make
