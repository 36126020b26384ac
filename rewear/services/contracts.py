"""Backend-neutral protocols for the auth provider, relational store and object store."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from enum import StrEnum
from typing import Any, Protocol

from rewear.models.domain.identity_domain import Identity


class AuthEvent(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


AuthListener = Callable[[AuthEvent, Identity | None], None]
Unsubscribe = Callable[[], None]


class StoreError(Exception):
    """Relational store rejected or failed an operation."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class RecordNotFoundError(StoreError):
    """An expected-absent record; callers treat it as an empty state."""

    def __init__(self, table: str, key: Mapping[str, Any]):
        super().__init__(f"No row in {table} matching {dict(key)}", operation="fetch_one")
        self.table = table
        self.key = dict(key)


class StorageError(Exception):
    """Object store upload or removal failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthProviderError(Exception):
    """Auth provider call failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthProvider(Protocol):
    async def get_current_identity(self) -> Identity | None:
        """Return the signed-in identity, or None when nobody is signed in."""

    def subscribe(self, listener: AuthListener) -> Unsubscribe:
        """Register for auth-change notifications; returns the unsubscribe callable."""

    async def sign_out(self) -> None:
        """End the current session and notify subscribers."""


class RelationalStore(Protocol):
    async def fetch_one(self, table: str, key: Mapping[str, Any]) -> dict[str, Any]:
        """Return the single matching row or raise RecordNotFoundError."""

    async def fetch_all(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        contains: Mapping[str, str] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Return all rows matching the equality filters.

        ``contains`` maps columns to text that must appear in them, ignoring case.
        """

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""

    async def update(
        self, table: str, key: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Apply a patch to the matching row and return it."""

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any:
        """Invoke a stored procedure with named arguments."""


class ObjectStore(Protocol):
    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str = "3600",
        upsert: bool = False,
    ) -> dict[str, str]:
        """Store an object; returns a mapping with the stored ``path``."""

    def get_public_url(self, bucket: str, path: str) -> str:
        """Durable public URL for a stored object."""

    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        """Delete stored objects."""
