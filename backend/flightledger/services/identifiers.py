"""
Identifier generation for users, tickets and payments.

User identifiers are sequential and human readable (U001, U002, ...).
Reading the current maximum and adding one is racy on its own, so
create_user claims the identifier by inserting under the unique
constraint on users.user_id and retries with a fresh maximum when a
concurrent registration wins.

Ticket and payment identifiers combine a millisecond timestamp with a
random suffix; the unique constraints on bookings.ticket_id and
payments.payment_id remain the authority.
"""

import logging
import re
import secrets
import time
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database.models import User
from ..models.enums import UserRole
from ..utils.exceptions import Conflict, MissingFields

logger = logging.getLogger(__name__)

USER_ID_PATTERN = re.compile(r"^U(\d+)$")
USER_ID_WIDTH = 3


def _format_user_id(number: int) -> str:
    return f"U{number:0{USER_ID_WIDTH}d}"


def next_user_id(session: Session) -> str:
    """
    Compute the identifier following the greatest existing U<digits> id.

    Ids are zero padded, so ordering by length and then by value gives
    numeric order (U999 sorts before U1000).

    Returns:
        'U001' for an empty table, otherwise the successor of the maximum
    """
    stmt = (
        select(User.user_id)
        .where(User.user_id.like("U%"))
        .order_by(func.length(User.user_id).desc(), User.user_id.desc())
    )
    for user_id in session.scalars(stmt):
        match = USER_ID_PATTERN.match(user_id)
        if match:
            return _format_user_id(int(match.group(1)) + 1)
    return _format_user_id(1)


def create_user(
    session: Session,
    username: str,
    email: str,
    role: UserRole = UserRole.USER,
    max_attempts: int = 5,
) -> User:
    """
    Insert a user under the next sequential identifier.

    Each attempt runs in a SAVEPOINT so a lost race only discards that
    attempt, not the caller's transaction.

    Args:
        session: Session inside an open transaction
        username: Display name
        email: Contact address (unique)
        role: Account role
        max_attempts: Attempts before giving up with Conflict

    Returns:
        The persisted User

    Raises:
        MissingFields: If username or email is empty
        Conflict: If every attempt lost the race, or the email is taken
    """
    if not username or not email:
        raise MissingFields("username and email are required")

    role = UserRole(role)
    existing = session.scalar(select(User.user_id).where(User.email == email))
    if existing:
        raise Conflict(f"Email {email} is already registered as {existing}")

    for attempt in range(1, max_attempts + 1):
        candidate = next_user_id(session)
        try:
            with session.begin_nested():
                user = User(user_id=candidate, username=username, email=email, role=role.value)
                session.add(user)
            logger.info(f"Registered user {candidate} ({role.value})")
            return user
        except IntegrityError:
            logger.warning(
                f"User id {candidate} claimed concurrently (attempt {attempt}/{max_attempts})"
            )

    raise Conflict(f"Could not allocate a user id after {max_attempts} attempts")


def _time_ordered_id(prefix: str, now_ms: Optional[int] = None) -> str:
    millis = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    return f"{prefix}-{millis}-{secrets.token_hex(3).upper()}"


def new_ticket_id() -> str:
    """Generate a ticket identifier such as TKT-1718000000000-4F2A9C."""
    return _time_ordered_id("TKT")


def new_payment_id() -> str:
    """Generate a payment identifier such as PAY-1718000000000-0B7D11."""
    return _time_ordered_id("PAY")
