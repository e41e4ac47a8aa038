"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class RefreshResponse(BaseModel):
    """Successful response from the token refresh endpoint."""
    access: str
    refresh: str | None = None


class LoginResponse(BaseModel):
    """Response from the login endpoint."""
    access: str
    refresh: str
    user: dict[str, Any] | None = None


class TokenStatus(BaseModel):
    """Current state of the stored credentials."""
    has_access_token: bool
    has_refresh_token: bool
    is_expired: bool | None = None
    expires_at: datetime | None = None
    seconds_remaining: int | None = None
