from pydantic import BaseModel, Field

from rewear.models.domain.identity_domain import Identity, UserProfile
from rewear.services.session.session_context import SessionStatus


class SessionResponse(BaseModel):
    """API response for GET /me."""

    status: SessionStatus = Field(..., description="unauthenticated, incomplete, ready or error")
    identity: Identity | None = None
    profile: UserProfile | None = None
    has_complete_profile: bool = False
    error: str | None = None
