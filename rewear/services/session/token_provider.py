"""
Auth provider backed by an already-verified access token.

Used server-side, where each request carries its own bearer token and there
is no long-lived session to watch: the identity never changes, so there is
nothing to notify subscribers about.
"""

from rewear.models.domain.identity_domain import Identity
from rewear.services.contracts import AuthListener, Unsubscribe


class VerifiedTokenProvider:
    def __init__(self, identity: Identity | None):
        self._identity = identity

    async def get_current_identity(self) -> Identity | None:
        return self._identity

    def subscribe(self, listener: AuthListener) -> Unsubscribe:
        return lambda: None

    async def sign_out(self) -> None:
        self._identity = None
