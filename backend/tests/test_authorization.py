"""
Tests for caller classification and access checks.
"""

import pytest

from flightledger.database.models import Booking
from flightledger.models.enums import CallerKind, SessionRole
from flightledger.models.user import SessionView
from flightledger.services.authorization import (
    ANONYMOUS,
    classify,
    ensure_can_access,
    ensure_can_view_user,
    require_admin,
    require_authenticated,
    resolve_owner,
)
from flightledger.utils.exceptions import Forbidden, Unauthenticated


class TestClassify:
    """SessionView to Caller."""

    def test_admin(self):
        caller = classify(SessionView(role=SessionRole.ADMIN, username="root"))

        assert caller.kind == CallerKind.ADMIN
        assert caller.is_admin
        assert str(caller) == "admin"

    def test_user(self):
        caller = classify(SessionView(role=SessionRole.USER, user_id="U001", username="alice"))

        assert caller.kind == CallerKind.USER
        assert caller.user_id == "U001"
        assert caller.username == "alice"
        assert str(caller) == "user:U001"

    @pytest.mark.parametrize("view", [
        None,
        SessionView(),
        SessionView(role=SessionRole.GUEST, user_id="U001"),
        SessionView(role=SessionRole.USER),
    ])
    def test_unauthenticated(self, view):
        caller = classify(view)

        assert caller is ANONYMOUS
        assert not caller.is_authenticated


class TestChecks:
    """Access checks."""

    def test_require_authenticated(self, guest, alice):
        require_authenticated(alice)
        with pytest.raises(Unauthenticated):
            require_authenticated(guest)

    def test_require_admin(self, admin, alice, guest):
        require_admin(admin)
        with pytest.raises(Forbidden):
            require_admin(alice)
        with pytest.raises(Unauthenticated):
            require_admin(guest)

    def test_owner_and_admin_may_access(self, admin, alice, bob):
        booking = Booking(ticket_id="TKT-1", user_id="U001")

        ensure_can_access(admin, booking)
        ensure_can_access(alice, booking)
        with pytest.raises(Forbidden):
            ensure_can_access(bob, booking)

    def test_view_user(self, admin, alice):
        ensure_can_view_user(admin, "U002")
        ensure_can_view_user(alice, "U001")
        with pytest.raises(Forbidden):
            ensure_can_view_user(alice, "U002")


class TestResolveOwner:
    """Owner precedence: session identity, then body user id."""

    def test_session_identity_wins(self, alice):
        assert resolve_owner(alice, "U999") == "U001"

    def test_admin_uses_body_user_id(self, admin):
        assert resolve_owner(admin, " U005 ") == "U005"

    def test_admin_without_body_user_id(self, admin):
        with pytest.raises(Unauthenticated):
            resolve_owner(admin, None)

    def test_guest_rejected_even_with_body_user_id(self, guest):
        with pytest.raises(Unauthenticated):
            resolve_owner(guest, "U001")
