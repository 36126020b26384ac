from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Identity(BaseModel):
    """Authenticated subject as reported by the auth provider."""

    model_config = ConfigDict(frozen=True)

    subject: str
    email: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self) -> bool:
        """Check if the access token backing this identity has expired."""
        if not self.expires_at:
            return False
        return datetime.now(UTC) >= self.expires_at


class ProfileLocation(BaseModel):
    """Free-form location; coordinates are optional."""

    model_config = ConfigDict(extra="allow")

    address: str | None = None
    lat: float | None = None
    lng: float | None = None

    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class UserProfile(BaseModel):
    """Application profile row (users_profiles), keyed 1:1 by identity subject."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None
    full_name: str | None = None
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    phone: str | None = None
    location: ProfileLocation | None = None
    points_balance: int = 0
    total_items_listed: int = 0
    total_swaps_completed: int = 0
    is_active: bool = True
    member_since: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "UserProfile":
        """Build a profile from a database row, coercing NULL counters to zero."""
        data = dict(row)
        data["id"] = str(data["id"])
        for counter in ("points_balance", "total_items_listed", "total_swaps_completed"):
            if data.get(counter) is None:
                data[counter] = 0
        if data.get("is_active") is None:
            data["is_active"] = True
        return cls.model_validate(data)

    def is_complete(self) -> bool:
        """Onboarding is complete once both a full name and a username are set."""
        return bool(self.full_name and self.username)


class AuthSession(BaseModel):
    """Tokens held by the auth client for the current sign-in."""

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_at: datetime | None = None
    identity: Identity
    raw_user: dict[str, Any] = Field(default_factory=dict)
