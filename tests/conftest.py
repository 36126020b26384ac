import asyncio
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

import pytest

from rewear.auth.verify import auth_dependency
from rewear.models.domain.identity_domain import Identity
from rewear.models.domain.media_domain import CandidateFile
from rewear.services.contracts import AuthEvent, RecordNotFoundError, StorageError, StoreError

MIB = 1024 * 1024


def make_file(
    name: str = "photo.jpg", content_type: str = "image/jpeg", size: int = 1024
) -> CandidateFile:
    return CandidateFile(name=name, content_type=content_type, data=b"\x00" * size)


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123", "email": "user@example.com"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply


class FakeStore:
    """In-memory relational store with per-operation failure injection."""

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.procedure_calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[str, Exception] = {}
        self.fetch_gate: asyncio.Event | None = None

    def seed(self, table: str, *rows: dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(row) for row in rows)

    def calls_to(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.get(operation)
        if error is not None:
            raise error

    @staticmethod
    def _matches(row: Mapping[str, Any], key: Mapping[str, Any]) -> bool:
        return all(row.get(column) == value for column, value in key.items())

    async def fetch_one(self, table: str, key: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("fetch_one", table))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        self._maybe_fail("fetch_one")
        for row in self.tables.get(table, []):
            if self._matches(row, key):
                return dict(row)
        raise RecordNotFoundError(table, key)

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
        self.calls.append(("fetch_all", table))
        self._maybe_fail("fetch_all")
        rows = [dict(row) for row in self.tables.get(table, []) if self._matches(row, filters or {})]
        for column, text in (contains or {}).items():
            rows = [row for row in rows if text.lower() in (row.get(column) or "").lower()]
        if order_by:
            rows.sort(key=lambda row: row.get(order_by), reverse=descending)
        start = offset or 0
        end = start + limit if limit is not None else None
        return rows[start:end]

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("insert", table))
        self._maybe_fail("insert")
        stored = {"id": str(uuid.uuid4()), **row}
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    async def update(
        self, table: str, key: Mapping[str, Any], patch: Mapping[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("update", table))
        self._maybe_fail("update")
        for row in self.tables.get(table, []):
            if self._matches(row, key):
                row.update(patch)
                return dict(row)
        raise RecordNotFoundError(table, key)

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Any:
        self.calls.append(("call_procedure", name))
        self.procedure_calls.append((name, dict(args)))
        self._maybe_fail("call_procedure")
        return None


class FakeStorage:
    """In-memory object store; uploads whose name contains a marker fail."""

    def __init__(self, fail_markers: Sequence[str] = ()):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.uploads: list[dict[str, Any]] = []
        self.removed: list[tuple[str, list[str]]] = []
        self.fail_markers = list(fail_markers)
        self.remove_error: Exception | None = None

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
        self.uploads.append(
            {
                "bucket": bucket,
                "path": path,
                "content_type": content_type,
                "cache_control": cache_control,
                "upsert": upsert,
            }
        )
        await asyncio.sleep(0)
        if any(marker in path for marker in self.fail_markers):
            raise StorageError("The resource already exists", status_code=409)
        self.objects[(bucket, path)] = data
        return {"path": path}

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"https://storage.test/object/public/{bucket}/{path}"

    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        if self.remove_error is not None:
            raise self.remove_error
        self.removed.append((bucket, list(paths)))
        for path in paths:
            self.objects.pop((bucket, path), None)


class FakeAuthProvider:
    """Auth provider whose identity lookup can be held open or made to fail."""

    def __init__(self, identity: Identity | None = None):
        self.identity = identity
        self.listeners: list = []
        self.identity_gate: asyncio.Event | None = None
        self.identity_error: Exception | None = None
        self.sign_out_error: Exception | None = None

    async def get_current_identity(self) -> Identity | None:
        if self.identity_gate is not None:
            await self.identity_gate.wait()
        if self.identity_error is not None:
            raise self.identity_error
        return self.identity

    def subscribe(self, listener):
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    def emit(self, event: AuthEvent, identity: Identity | None) -> None:
        self.identity = identity
        for listener in list(self.listeners):
            listener(event, identity)

    async def sign_out(self) -> None:
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.emit(AuthEvent.SIGNED_OUT, None)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def identity():
    return Identity(subject="user-123", email="user@example.com")


@pytest.fixture
def fake_auth(identity):
    return FakeAuthProvider(identity)


@pytest.fixture
def store_failure():
    """Factory for the error a broken store raises."""

    def _make(message: str = "connection refused") -> StoreError:
        return StoreError(message, operation="fetch_one")

    return _make


@pytest.fixture
def make_image():
    return make_file


@pytest.fixture
def make_storage():
    return FakeStorage


@pytest.fixture
def make_auth():
    return FakeAuthProvider
