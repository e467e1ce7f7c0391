"""
Authorization gate for ledger operations.

Turns the session collaborator's SessionView into a Caller and answers the
two questions every engine asks: is anyone logged in, and may this caller
touch this booking. The caller's kind is also a business input: admin and
user cancellations carry different financial rules.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..database.models import Booking
from ..models.enums import CallerKind, SessionRole
from ..models.user import SessionView
from ..utils.exceptions import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Caller:
    """Classified identity of the current request."""
    kind: CallerKind
    user_id: Optional[str] = None
    username: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.kind == CallerKind.ADMIN

    @property
    def is_authenticated(self) -> bool:
        return self.kind != CallerKind.UNAUTHENTICATED

    def __str__(self) -> str:
        if self.kind == CallerKind.USER:
            return f"user:{self.user_id}"
        return self.kind.value


ANONYMOUS = Caller(kind=CallerKind.UNAUTHENTICATED)


def classify(view: Optional[SessionView]) -> Caller:
    """
    Classify a session view as Admin, User(id) or Unauthenticated.

    A 'user' session without a user id is treated as unauthenticated.
    """
    if view is None:
        return ANONYMOUS
    if view.role == SessionRole.ADMIN:
        return Caller(kind=CallerKind.ADMIN, user_id=view.user_id, username=view.username)
    if view.role == SessionRole.USER and view.user_id:
        return Caller(kind=CallerKind.USER, user_id=view.user_id, username=view.username)
    return ANONYMOUS


def require_authenticated(caller: Caller) -> None:
    """Reject guests; bookings are never made anonymously."""
    if not caller.is_authenticated:
        raise Unauthenticated("Please log in to manage bookings")


def require_admin(caller: Caller) -> None:
    """Reject anyone but an administrator."""
    require_authenticated(caller)
    if not caller.is_admin:
        logger.warning(f"Admin operation refused for {caller}")
        raise Forbidden("Admin access required")


def ensure_can_access(caller: Caller, booking: Booking) -> None:
    """A user may only act on bookings they own; admins may act on any."""
    require_authenticated(caller)
    if caller.is_admin:
        return
    if booking.user_id != caller.user_id:
        logger.warning(f"{caller} refused access to booking {booking.ticket_id}")
        raise Forbidden("You can only manage your own bookings")


def ensure_can_view_user(caller: Caller, user_id: str) -> None:
    """A user may only read their own records."""
    require_authenticated(caller)
    if not caller.is_admin and caller.user_id != user_id:
        raise Forbidden("Unauthorized access")


def resolve_owner(caller: Caller, body_user_id: Optional[str]) -> str:
    """
    Decide who owns a booking being written.

    Precedence: session identity, then the body-supplied user id. With
    neither, the request is rejected; no guest owner is ever invented.
    """
    require_authenticated(caller)
    owner = caller.user_id or (body_user_id.strip() if body_user_id else None)
    if not owner:
        raise Unauthenticated("A user identity is required to book tickets")
    return owner
