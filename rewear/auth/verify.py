"""
verify.py
---------
Purpose:
    Verify Supabase access tokens against the project JWKS (ES256).

Notes:
    - The JWKS client is created on first use so the app imports without
      Supabase settings.
    - `auth_dependency` returns the verified claims; `current_identity`
      turns them into an Identity for route handlers.
"""

from datetime import UTC, datetime

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from rewear.config import settings
from rewear.models.domain.identity_domain import Identity

SUPABASE_AUDIENCE = "authenticated"

_jwk_client: PyJWKClient | None = None
_security = HTTPBearer()


def _get_jwk_client() -> PyJWKClient:
    global _jwk_client
    if _jwk_client is None:
        _jwk_client = PyJWKClient(settings.jwks_url())
    return _jwk_client


def verify_jwt(token: str) -> dict:
    try:
        signing_key = _get_jwk_client().get_signing_key_from_jwt(token)
        decoded = jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True},
        )
        return decoded
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    token = credentials.credentials
    return verify_jwt(token)


def identity_from_claims(claims: dict) -> Identity:
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    def _ts(key: str) -> datetime | None:
        value = claims.get(key)
        return datetime.fromtimestamp(value, tz=UTC) if isinstance(value, int | float) else None

    return Identity(
        subject=str(subject),
        email=claims.get("email"),
        issued_at=_ts("iat"),
        expires_at=_ts("exp"),
    )


def current_identity(claims: dict = Depends(auth_dependency)) -> Identity:
    return identity_from_claims(claims)
