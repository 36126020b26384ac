"""
Media uploader.

Validates and uploads a batch of candidate files to object storage
concurrently and folds the per-file outcomes into one BatchUploadResult.
A batch is never all-or-nothing: each file succeeds or fails on its own.
"""

import asyncio
import re
import secrets
import time
from collections.abc import Sequence

from rewear.config import settings
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.media_domain import (
    BatchUploadResult,
    CandidateFile,
    UploadOptions,
    UploadOutcome,
)
from rewear.services.contracts import ObjectStore, StorageError
from rewear.services.media.file_validator import validate_image_file

logger = get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class MediaUploadError(Exception):
    """Raised when a batch is rejected before any file is processed."""

    def __init__(self, message: str, operation: str = "upload_batch"):
        super().__init__(message)
        self.operation = operation


def build_storage_name(file_name: str, extension: str, folder: str = "") -> str:
    """
    Collision-resistant object path for an upload.

    ``<sanitized-stem>_<epoch-ms>_<random-token>.<ext>`` under ``folder`` with
    its leading and trailing slashes stripped.
    """
    stem = file_name.rsplit(".", 1)[0] if "." in file_name else file_name
    clean_stem = _UNSAFE_NAME_CHARS.sub("_", stem) or "image"
    timestamp_ms = int(time.time() * 1000)
    token = secrets.token_hex(6)
    name = f"{clean_stem}_{timestamp_ms}_{token}.{extension}"

    prefix = folder.strip("/")
    return f"{prefix}/{name}" if prefix else name


class MediaUploader:
    def __init__(self, storage: ObjectStore, concurrency: int | None = None):
        self._storage = storage
        self._concurrency = concurrency or settings.UPLOAD_CONCURRENCY

    @staticmethod
    def _check_batch(files: Sequence[CandidateFile], options: UploadOptions) -> None:
        if not files:
            raise MediaUploadError("No images provided for upload")
        if not options.bucket or not options.bucket.strip():
            raise MediaUploadError("Bucket name is required")
        invalid = [type(file).__name__ for file in files if not isinstance(file, CandidateFile)]
        if invalid:
            raise MediaUploadError(
                f"Invalid file objects detected. Expected CandidateFile instances, got: {', '.join(invalid)}"
            )

    async def upload_batch(
        self, files: Sequence[CandidateFile], options: UploadOptions
    ) -> BatchUploadResult:
        """
        Validate and upload every file, concurrently.

        Args:
            files: candidate files, at least one
            options: bucket, folder, upsert flag and validation policy

        Returns:
            BatchUploadResult whose outcomes are in input order

        Raises:
            MediaUploadError: empty batch, blank bucket or a malformed element
        """
        self._check_batch(files, options)

        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(file: CandidateFile) -> UploadOutcome:
            async with semaphore:
                return await self._process(file, options)

        outcomes = await asyncio.gather(*(bounded(file) for file in files))
        result = BatchUploadResult.from_outcomes(list(outcomes))

        logger.info(
            "Upload batch completed",
            bucket=options.bucket,
            folder=options.folder,
            success_count=result.success_count,
            failure_count=result.failure_count,
            total_count=result.total_count,
        )
        return result

    async def upload_one(self, file: CandidateFile, options: UploadOptions) -> UploadOutcome:
        result = await self.upload_batch([file], options)
        return result.results[0]

    async def _process(self, file: CandidateFile, options: UploadOptions) -> UploadOutcome:
        try:
            verdict = validate_image_file(file, options.policy)
            if not verdict.is_valid:
                logger.info(
                    "Image rejected by validation",
                    file_name=file.name,
                    rules=sorted(str(rule) for rule in verdict.violated_rules),
                )
                return UploadOutcome(
                    file_name=file.name,
                    success=False,
                    error=f"Validation failed: {'; '.join(verdict.errors)}",
                    verdict=verdict,
                )

            path = build_storage_name(file.name, verdict.detected_extension, options.folder)

            try:
                stored = await self._storage.upload(
                    options.bucket,
                    path,
                    file.data,
                    content_type=verdict.detected_mime_type,
                    cache_control=options.cache_control,
                    upsert=options.upsert,
                )
            except StorageError as e:
                logger.warning("Image upload failed", file_name=file.name, path=path, error=str(e))
                return UploadOutcome(file_name=file.name, success=False, error=str(e))

            stored_path = stored.get("path") or path
            url = self._storage.get_public_url(options.bucket, stored_path)
            return UploadOutcome(file_name=file.name, success=True, url=url, path=stored_path)

        except Exception as e:
            logger.error("Unexpected error uploading image", file_name=file.name, error=str(e))
            return UploadOutcome(
                file_name=file.name, success=False, error=str(e) or "Unknown error occurred"
            )

    async def remove_objects(self, bucket: str, paths: Sequence[str]) -> bool:
        """
        Delete previously uploaded objects.

        Returns:
            True when the store accepted the removal, False otherwise
        """
        if not paths:
            return True
        try:
            await self._storage.remove(bucket, list(paths))
            return True
        except StorageError as e:
            logger.error("Failed to remove uploaded objects", bucket=bucket, paths=list(paths), error=str(e))
            return False
