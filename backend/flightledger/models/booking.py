"""
Booking-related Pydantic models for the flight ledger.

This module contains the request models accepted by the booking upsert
engine and the result models returned by the upsert and cancellation
operations.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .enums import BookingStatus, FareClass

# Largest value a Numeric(10, 2) price column holds
MAX_PRICE = Decimal("99999999.99")


def _normalize_class_type(value: Optional[str]) -> str:
    """Map 'business', ' FIRST ' etc. onto the canonical fare class names."""
    if value is None or not str(value).strip():
        return FareClass.ECONOMY.value
    cleaned = str(value).strip()
    for fare in FareClass:
        if cleaned.lower() == fare.value.lower():
            return fare.value
    return cleaned


class BookingFields(BaseModel):
    """
    Itinerary and pricing fields for a booking upsert.

    user_id is the body-supplied owner; it is only used when the session
    carries no identity.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[str] = Field(None, description="Body-supplied owner")
    flight_id: str = Field(..., min_length=1, max_length=20, description="Flight reference")
    flight_name: Optional[str] = Field(None, max_length=100)
    source: Optional[str] = Field(None, max_length=100)
    destination: Optional[str] = Field(None, max_length=100)
    travel_date: Optional[date] = None
    duration: Optional[str] = Field(None, max_length=50)
    class_type: str = Field(default=FareClass.ECONOMY.value, description="Fare class")
    price: Decimal = Field(..., ge=0, le=MAX_PRICE, description="Ticket price")
    username: Optional[str] = Field(None, max_length=50)
    cancelled: bool = Field(default=False, description="Cancel the booking on update")
    cancel_reason: Optional[str] = None

    @field_validator("class_type", mode="before")
    @classmethod
    def normalize_class_type(cls, v):
        return _normalize_class_type(v)


class BookingDetails(BaseModel):
    """
    Booking data sent along with a payment for a ticket that may not have
    a booking row yet.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: Optional[str] = None
    flight_id: Optional[str] = Field(None, max_length=20)
    flight_name: Optional[str] = Field(None, max_length=100)
    source: Optional[str] = Field(None, max_length=100)
    destination: Optional[str] = Field(None, max_length=100)
    travel_date: Optional[date] = None
    duration: Optional[str] = Field(None, max_length=50)
    class_type: str = FareClass.ECONOMY.value
    username: Optional[str] = Field(None, max_length=50)
    cancelled: bool = False

    @field_validator("class_type", mode="before")
    @classmethod
    def normalize_class_type(cls, v):
        return _normalize_class_type(v)


class BookingModel(BaseModel):
    """Booking row as returned to callers."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: str
    user_id: str
    flight_id: str
    flight_name: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    travel_date: Optional[date] = None
    duration: Optional[str] = None
    class_type: str
    price: Decimal
    username: Optional[str] = None
    status: BookingStatus
    cancelled: bool
    reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class UpsertResult(BaseModel):
    """Outcome of create-or-update."""
    ticket_id: str
    user_id: str
    created: bool = Field(..., description="True when a new row was inserted")


class CancellationResult(BaseModel):
    """Outcome of a cancellation."""
    ticket_id: str
    refund_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    reason_label: str
    charge_amount: Decimal = Field(default=Decimal("0.00"), ge=0, description="Extra admin charge recorded")
    payment_id: Optional[str] = Field(None, description="Ledger entry written, if any")
