"""
SQLAlchemy database models for the flight booking ledger.

This module defines the tables the transactional core reads and writes:
- User: registered account with a sequential, human-readable identifier
- Booking: one row per ticket, upserted on the ticket identifier
- Payment: append-only ledger entries (charges and refunds) tied to a ticket

Constraints enforced by the schema itself:
- a ticket identifier maps to at most one booking (unique constraint)
- booking.cancelled is true exactly when booking.status is 'Cancelled'
- deleting a booking deletes its payments (ON DELETE CASCADE)
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

# Create the declarative base for all models
Base = declarative_base()


class User(Base):
    """
    Registered account.

    Created by the registration collaborator through the identifier
    generator; the user_id never changes once assigned.
    """
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(10), unique=True, nullable=False, index=True)  # e.g. 'U001'
    username = Column(String(50), nullable=False)
    email = Column(String(100), unique=True, nullable=False)
    role = Column(String(10), nullable=False, default='user')
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self):
        return f"<User(user_id='{self.user_id}', username='{self.username}', role='{self.role}')>"


class Booking(Base):
    """
    Flight booking keyed by its ticket identifier.

    Rows are created and re-confirmed by the booking upsert engine and
    cancelled by the cancellation engine. Nothing in the core moves a
    cancelled row back to a live status.
    """
    __tablename__ = 'bookings'

    # Internal row id, distinct from the caller-visible ticket id
    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(String(10), nullable=False, index=True)

    # Itinerary
    flight_id = Column(String(20), nullable=False)
    flight_name = Column(String(100), nullable=True)
    source = Column(String(100), nullable=True)
    destination = Column(String(100), nullable=True)
    travel_date = Column(Date, nullable=True)
    duration = Column(String(50), nullable=True)
    class_type = Column(String(20), nullable=False, default='Economy')
    price = Column(Numeric(10, 2), nullable=False)
    username = Column(String(50), nullable=True)

    # Lifecycle
    status = Column(String(20), nullable=False, default='Confirmed')
    cancelled = Column(Boolean, nullable=False, default=False)
    reason = Column(Text, nullable=True)
    cancel_reason = Column(Text, nullable=True)  # legacy readers look here
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True)

    payments = relationship(
        "Payment",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint(
            "(status = 'Cancelled') = cancelled",
            name='ck_booking_cancelled_matches_status',
        ),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, ticket_id='{self.ticket_id}', user_id='{self.user_id}', status='{self.status}')>"


class Payment(Base):
    """
    Ledger entry for a monetary movement on a ticket.

    Charges are positive; refunds written by the cancellation engine are
    negative. Rows are never edited in place except by the sanitization
    operation, which clamps negative amounts to zero.
    """
    __tablename__ = 'payments'

    payment_id = Column(String(50), primary_key=True)
    ticket_id = Column(
        String(50),
        ForeignKey('bookings.ticket_id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    user_id = Column(String(10), nullable=True, index=True)
    flight_id = Column(String(20), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)  # refunds can exceed the price
    method = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default='Success')
    transaction_id = Column(String(100), nullable=True)
    payment_date = Column(DateTime, nullable=False, default=datetime.now)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    booking = relationship("Booking", back_populates="payments", lazy="select")

    def __repr__(self):
        return f"<Payment(payment_id='{self.payment_id}', ticket_id='{self.ticket_id}', amount={self.amount})>"


# Composite indexes for the listing queries
Index('idx_booking_user_created', Booking.user_id, Booking.created_at)
Index('idx_payment_ticket_date', Payment.ticket_id, Payment.payment_date)


def create_all_tables(engine):
    """
    Create all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.create_all(bind=engine)


def drop_all_tables(engine):
    """
    Drop all database tables using the provided SQLAlchemy engine.

    Args:
        engine: SQLAlchemy engine instance
    """
    Base.metadata.drop_all(bind=engine)


__all__ = [
    'Base',
    'User',
    'Booking',
    'Payment',
    'create_all_tables',
    'drop_all_tables',
]
