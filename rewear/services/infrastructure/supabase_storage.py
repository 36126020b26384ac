"""
Supabase Storage REST client.
Implements the object store contract used by the media uploader.
"""

from collections.abc import Sequence
from urllib.parse import quote

import httpx

from rewear.config import settings
from rewear.infrastructure.observability.logging import get_logger
from rewear.services.contracts import StorageError

logger = get_logger(__name__)


class SupabaseStorageClient:
    """Thin async client for the Supabase Storage object API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _resolve_config(self) -> tuple[str, str]:
        base_url = self._base_url
        api_key = self._api_key
        if base_url is None:
            base_url = settings.storage_url()
        if api_key is None:
            settings.require("SUPABASE_SERVICE_ROLE_KEY")
            api_key = settings.SUPABASE_SERVICE_ROLE_KEY
        return base_url.rstrip("/"), api_key

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            base_url, api_key = self._resolve_config()
            self._base_url, self._api_key = base_url, api_key
            self._client = httpx.AsyncClient(
                base_url=base_url,
                headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
                timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _object_path(bucket: str, path: str) -> str:
        return f"{quote(bucket)}/{quote(path.lstrip('/'))}"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return f"Storage error (HTTP {response.status_code})"
        return payload.get("message") or payload.get("error") or (
            f"Storage error (HTTP {response.status_code})"
        )

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
        """
        Upload one object.

        Returns:
            dict with the stored object's ``path`` relative to the bucket

        Raises:
            StorageError: on transport failure or a non-2xx response
        """
        client = self._get_client()
        headers = {
            "Content-Type": content_type or "application/octet-stream",
            "cache-control": f"max-age={cache_control}",
            "x-upsert": "true" if upsert else "false",
        }

        try:
            response = await client.post(
                f"/object/{self._object_path(bucket, path)}", content=data, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error("Storage upload request failed", bucket=bucket, path=path, error=str(e))
            raise StorageError(f"Upload request failed: {e}") from e

        if not response.is_success:
            message = self._error_message(response)
            logger.warning(
                "Storage upload rejected",
                bucket=bucket,
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise StorageError(message, status_code=response.status_code)

        # Storage answers with {"Key": "<bucket>/<path>"}; callers want the bucket-relative path
        key = response.json().get("Key", "")
        stored_path = key.split("/", 1)[1] if key.startswith(f"{bucket}/") else path
        logger.debug("Storage upload completed", bucket=bucket, path=stored_path)
        return {"path": stored_path}

    def get_public_url(self, bucket: str, path: str) -> str:
        base_url = self._base_url or settings.storage_url()
        return f"{base_url.rstrip('/')}/object/public/{self._object_path(bucket, path)}"

    async def remove(self, bucket: str, paths: Sequence[str]) -> None:
        """Delete objects by bucket-relative path."""
        if not paths:
            return

        client = self._get_client()
        try:
            response = await client.request(
                "DELETE", f"/object/{quote(bucket)}", json={"prefixes": list(paths)}
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Remove request failed: {e}") from e

        if not response.is_success:
            raise StorageError(self._error_message(response), status_code=response.status_code)

        logger.info("Storage objects removed", bucket=bucket, count=len(paths))


# Global instance
storage_client = SupabaseStorageClient()
