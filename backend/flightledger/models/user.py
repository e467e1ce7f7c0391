"""
User and session models for the flight ledger.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .enums import SessionRole, UserRole


class SessionView(BaseModel):
    """
    Read-only view of the caller's session.

    Supplied per request by the session collaborator; the ledger never
    reads session state from anywhere else.
    """
    model_config = ConfigDict(frozen=True)

    role: SessionRole = Field(default=SessionRole.GUEST, description="Session role")
    user_id: Optional[str] = Field(None, description="Logged-in user identifier")
    username: Optional[str] = Field(None, description="Logged-in display name")


class UserModel(BaseModel):
    """Registered account as returned to callers."""
    model_config = ConfigDict(from_attributes=True)

    user_id: str = Field(..., pattern=r"^U\d+$", description="Sequential user identifier")
    username: str = Field(..., max_length=50)
    email: str = Field(..., max_length=100)
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = None
