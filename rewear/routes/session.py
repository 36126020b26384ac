"""
session.py
----------
Purpose:
    Server-side session resolution for the bearer of a verified access token.

    `/me` answers with the same tri-state the client session uses:
    unauthenticated, incomplete (no profile yet) or ready, plus error when
    the profile could not be read.
"""

from fastapi import APIRouter, Depends

from rewear.auth.verify import current_identity
from rewear.dependencies import get_store
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.api.session_response import SessionResponse
from rewear.models.domain.identity_domain import Identity
from rewear.services.contracts import RelationalStore
from rewear.services.session.identity_resolver import IdentityResolver
from rewear.services.session.token_provider import VerifiedTokenProvider

router = APIRouter()
logger = get_logger(__name__)


@router.get("/me", response_model=SessionResponse)
async def me(
    identity: Identity = Depends(current_identity),
    store: RelationalStore = Depends(get_store),
):
    async with IdentityResolver(VerifiedTokenProvider(identity), store) as resolver:
        state = resolver.state

    logger.info("Session resolved", user_id=identity.subject, status=str(state.status))
    return SessionResponse(
        status=state.status,
        identity=state.identity,
        profile=state.profile,
        has_complete_profile=state.has_complete_profile,
        error=state.error,
    )
