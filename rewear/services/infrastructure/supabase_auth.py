"""
Supabase Auth (GoTrue) REST client.

Keeps the signed-in session in memory and notifies subscribers of
sign-in, token refresh and sign-out. Implements the auth provider contract
consumed by the identity resolver.
"""

from datetime import UTC, datetime
from typing import Any

import httpx
import jwt

from rewear.config import settings
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.identity_domain import AuthSession, Identity
from rewear.services.contracts import AuthEvent, AuthListener, AuthProviderError, Unsubscribe

logger = get_logger(__name__)


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (TypeError, ValueError, OverflowError):
        return None


def identity_from_token(access_token: str, user: dict[str, Any] | None = None) -> Identity:
    """
    Build an Identity from access token claims.

    The signature is not checked here: the token came straight from the auth
    server over TLS, and routes verify tokens against the JWKS separately.
    """
    user = user or {}
    try:
        claims = jwt.decode(access_token, options={"verify_signature": False})
    except jwt.PyJWTError:
        claims = {}

    subject = claims.get("sub") or user.get("id")
    if not subject:
        raise AuthProviderError("Auth response carried no subject identifier")

    return Identity(
        subject=str(subject),
        email=claims.get("email") or user.get("email"),
        issued_at=_timestamp(claims.get("iat")),
        expires_at=_timestamp(claims.get("exp")),
    )


class SupabaseAuthClient:
    """In-memory session holder backed by the Supabase Auth API."""

    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._anon_key = anon_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._session: AuthSession | None = None
        self._listeners: list[AuthListener] = []

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            base_url = self._base_url or settings.auth_url()
            anon_key = self._anon_key
            if anon_key is None:
                settings.require("SUPABASE_ANON_KEY")
                anon_key = settings.SUPABASE_ANON_KEY
            self._client = httpx.AsyncClient(
                base_url=base_url.rstrip("/"),
                headers={"apikey": anon_key},
                timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Subscriptions
    def subscribe(self, listener: AuthListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent) -> None:
        identity = self._session.identity if self._session else None
        logger.debug("Auth state changed", auth_event=str(event), has_identity=bool(identity))
        for listener in list(self._listeners):
            try:
                listener(event, identity)
            except Exception as e:
                logger.error("Auth listener failed", auth_event=str(event), error=str(e))

    # ------------------------------------------------------------------
    # Token endpoint helpers
    async def _post(self, path: str, **kwargs) -> httpx.Response:
        client = self._get_client()
        try:
            return await client.post(path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Auth request failed", path=path, error=str(e))
            raise AuthProviderError(f"Auth request failed: {e}") from e

    @staticmethod
    def _raise_for_error(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        message = (
            payload.get("error_description")
            or payload.get("msg")
            or payload.get("message")
            or f"Auth {operation} failed (HTTP {response.status_code})"
        )
        logger.warning(
            "Auth request rejected",
            operation=operation,
            status_code=response.status_code,
            error=message,
        )
        raise AuthProviderError(message, status_code=response.status_code)

    @staticmethod
    def _session_from_payload(payload: dict[str, Any]) -> AuthSession:
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthProviderError("Auth response carried no access token")
        user = payload.get("user") or {}
        identity = identity_from_token(access_token, user)
        expires_at = _timestamp(payload.get("expires_at")) or identity.expires_at
        return AuthSession(
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type", "bearer"),
            expires_at=expires_at,
            identity=identity,
            raw_user=user,
        )

    # ------------------------------------------------------------------
    # Public API
    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        response = await self._post(
            "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        self._raise_for_error(response, "sign_in")

        self._session = self._session_from_payload(response.json())
        logger.info("User signed in", user_id=self._session.identity.subject)
        self._emit(AuthEvent.SIGNED_IN)
        return self._session.identity

    def set_session(self, access_token: str, refresh_token: str | None = None) -> Identity:
        """Adopt tokens restored from elsewhere (e.g. a cookie) as the current session."""
        identity = identity_from_token(access_token)
        self._session = AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=identity.expires_at,
            identity=identity,
        )
        self._emit(AuthEvent.SIGNED_IN)
        return identity

    async def refresh_session(self) -> Identity | None:
        if not self._session or not self._session.refresh_token:
            return None

        response = await self._post(
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._session.refresh_token},
        )
        if response.status_code in (400, 401):
            # Refresh token revoked or expired; the session is over
            logger.info("Refresh token rejected, clearing session")
            self._session = None
            self._emit(AuthEvent.SIGNED_OUT)
            return None
        self._raise_for_error(response, "refresh")

        self._session = self._session_from_payload(response.json())
        self._emit(AuthEvent.TOKEN_REFRESHED)
        return self._session.identity

    async def get_current_identity(self) -> Identity | None:
        if self._session is None:
            return None

        if self._session.identity.is_expired():
            return await self.refresh_session()

        return self._session.identity

    async def sign_out(self) -> None:
        if self._session is None:
            return

        response = await self._post(
            "/logout", headers={"Authorization": f"Bearer {self._session.access_token}"}
        )
        # 401/404 mean the server already forgot the session
        if response.status_code not in (401, 404):
            self._raise_for_error(response, "sign_out")

        user_id = self._session.identity.subject
        self._session = None
        logger.info("User signed out", user_id=user_id)
        self._emit(AuthEvent.SIGNED_OUT)
