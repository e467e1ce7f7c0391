"""
Cancellation and refund rules shared by the cancellation and payment engines.

Who cancels decides the money:

- a user cancellation refunds price x class multiplier x (1 + GST) plus the
  flat convenience fee, and the deduction comes off the stored price
  (never below zero);
- an admin cancellation never deducts anything. A positive amount supplied
  by the admin is an extra charge; anything else is ignored.

Both engines call apply_cancellation_policy so the rule exists once.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from ..models.booking import MAX_PRICE
from ..models.enums import FareClass
from ..utils.exceptions import MissingFields
from .authorization import Caller

GST_RATE = Decimal("0.18")
FLAT_FEE = Decimal("250")
CLASS_MULTIPLIERS = {
    FareClass.ECONOMY.value: Decimal("1.0"),
    FareClass.BUSINESS.value: Decimal("1.5"),
    FareClass.FIRST.value: Decimal("2.0"),
}
CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = MAX_PRICE

ADMIN_CANCEL_LABEL = "Cancelled by admin"
USER_CANCEL_LABEL = "cancelled by user"


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any) -> Decimal:
    """
    Read a monetary amount, treating anything non-numeric as zero.

    Accepts Decimal, int, float and numeric strings; NaN and infinities
    count as non-numeric.

    Raises:
        MissingFields: If the magnitude exceeds MAX_AMOUNT
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return ZERO
        if abs(amount) > MAX_AMOUNT:
            raise MissingFields(f"Amount {value} is out of range (max {MAX_AMOUNT})")
        return quantize(amount)
    except (InvalidOperation, ValueError):
        return ZERO


def class_multiplier(class_type: Optional[str]) -> Decimal:
    """Fare class multiplier; unknown classes price like Economy."""
    for name, multiplier in CLASS_MULTIPLIERS.items():
        if class_type and class_type.strip().lower() == name.lower():
            return multiplier
    return CLASS_MULTIPLIERS[FareClass.ECONOMY.value]


def compute_refund(price: Any, class_type: Optional[str]) -> Decimal:
    """
    Refund owed to a user who cancels.

    >>> compute_refund(Decimal("1000"), "Business")
    Decimal('2020.00')
    """
    subtotal = parse_amount(price) * class_multiplier(class_type)
    gst = subtotal * GST_RATE
    return quantize(subtotal + gst + FLAT_FEE)


def cancellation_label(caller: Caller, reason: Optional[str] = None) -> str:
    """Caller-supplied reason if non-empty, otherwise the role default."""
    if reason is not None and str(reason).strip():
        return str(reason).strip()
    return ADMIN_CANCEL_LABEL if caller.is_admin else USER_CANCEL_LABEL


@dataclass(frozen=True)
class CancellationAdjustment:
    """
    Money effect of cancelling a booking.

    price: value to store on the booking afterwards
    deduction: amount taken off the stored price (always 0 for admins)
    charge: non-negative amount a payment path records for this
        cancellation, the retained price for users and the extra charge
        for admins
    """
    price: Decimal
    deduction: Decimal
    charge: Decimal


def apply_cancellation_policy(caller: Caller, original_price: Any, amount: Any) -> CancellationAdjustment:
    """
    Apply the role-dependent cancellation rule.

    Args:
        caller: Classified caller; admins never deduct
        original_price: Price currently stored on the booking
        amount: For users the amount to deduct (sign ignored); for admins a
            proposed extra charge

    Returns:
        CancellationAdjustment with non-negative fields
    """
    price = max(ZERO, parse_amount(original_price))
    requested = parse_amount(amount)

    if caller.is_admin:
        extra = requested if requested > 0 else ZERO
        return CancellationAdjustment(price=price, deduction=ZERO, charge=extra)

    deduction = min(abs(requested), price)
    remaining = price - deduction
    return CancellationAdjustment(price=remaining, deduction=deduction, charge=remaining)
