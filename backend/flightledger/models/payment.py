"""
Payment ledger Pydantic models for the flight ledger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict, computed_field

from .enums import BookingStatus, PaymentStatus


class PaymentModel(BaseModel):
    """
    Ledger entry as returned to callers.

    Refund rows carry a negative amount; display code shows the absolute
    value and labels the row as a refund.
    """
    model_config = ConfigDict(from_attributes=True)

    payment_id: str
    ticket_id: str
    user_id: Optional[str] = None
    flight_id: Optional[str] = None
    amount: Decimal
    method: str
    status: PaymentStatus
    transaction_id: Optional[str] = None
    payment_date: datetime

    @computed_field
    @property
    def is_refund(self) -> bool:
        return self.amount < 0

    @computed_field
    @property
    def display_amount(self) -> Decimal:
        return abs(self.amount)


class PaymentResult(BaseModel):
    """Outcome of recording a payment."""
    payment_id: Optional[str] = Field(None, description="None when nothing was recorded")
    ticket_id: str
    amount: Decimal = Field(..., ge=0, description="Amount written to the ledger")
    booking_status: BookingStatus


class SanitizeReport(BaseModel):
    """Counts of rows clamped to zero by the sanitization operation."""
    payments_fixed: int = Field(..., ge=0)
    bookings_fixed: int = Field(..., ge=0)
