"""
Listing orchestrator.

Turns a ListingDraft into a persisted clothing item in four strictly
sequential steps:

1. resolve the category (fail fast, nothing uploaded)
2. upload media (fail if files were given and none stored)
3. persist the record
4. increment the owner's items-listed counter (non-critical)

Every attempt yields exactly one CreationResult. There is no rollback: media
stored before a persistence failure stays in storage unless
CLEANUP_ORPHANED_MEDIA is enabled.
"""

from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from rewear.config import settings
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.listing_domain import (
    Category,
    CreationResult,
    ListingDraft,
    ListingRecord,
    UploadStats,
)
from rewear.models.domain.media_domain import BatchUploadResult, UploadOptions, ValidationPolicy
from rewear.services.contracts import RelationalStore
from rewear.services.listings.category_service import get_category_by_slug, slugify_category
from rewear.services.listings.listing_service import LISTINGS_TABLE
from rewear.services.media.media_uploader import MediaUploader

logger = get_logger(__name__)

ITEMS_LISTED_PROCEDURE = "increment_user_items_listed"


def _upload_stats(batch: BatchUploadResult) -> UploadStats:
    return UploadStats(
        success_count=batch.success_count,
        failure_count=batch.failure_count,
        total_count=batch.total_count,
        errors=batch.errors,
    )


def build_listing_row(
    draft: ListingDraft, owner_id: str, category: Category, image_urls: list[str]
) -> dict[str, Any]:
    """Insert payload for clothing_items with moderation defaults and zeroed counters."""
    now = datetime.now(UTC)
    return {
        "owner_id": owner_id,
        "title": draft.title,
        "description": draft.description,
        "category_id": category.id,
        "size": draft.size or None,
        "condition": draft.condition or None,
        "brand": draft.brand or None,
        "color": draft.color or None,
        "material": draft.material or None,
        "tags": draft.tags or None,
        "images": image_urls or None,
        "points_value": draft.points_value or None,
        "exchange_preference": draft.exchange_preference or "both",
        "status": "pending_approval",
        "approval_status": "pending",
        "view_count": 0,
        "favorite_count": 0,
        "is_featured": False,
        "listed_at": None,  # set on approval
        "created_at": now,
        "updated_at": now,
    }


class ListingOrchestrator:
    def __init__(
        self,
        store: RelationalStore,
        uploader: MediaUploader,
        *,
        bucket: str | None = None,
        folder: str | None = None,
        cleanup_orphaned_media: bool | None = None,
    ):
        self._store = store
        self._uploader = uploader
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.folder = settings.STORAGE_LISTINGS_FOLDER if folder is None else folder
        self.cleanup_orphaned_media = (
            settings.CLEANUP_ORPHANED_MEDIA
            if cleanup_orphaned_media is None
            else cleanup_orphaned_media
        )

    def _upload_options(self) -> UploadOptions:
        return UploadOptions(
            bucket=self.bucket,
            folder=self.folder,
            upsert=False,
            cache_control=settings.STORAGE_CACHE_CONTROL,
            policy=ValidationPolicy(max_size_bytes=settings.UPLOAD_MAX_SIZE_BYTES),
        )

    async def create_listing(self, draft: ListingDraft, owner_id: str) -> CreationResult:
        """
        Create one clothing item for ``owner_id``.

        Not idempotent: calling twice with the same draft uploads the media
        twice and creates two records.

        Args:
            draft: validated listing draft
            owner_id: identity subject of the submitting user

        Returns:
            CreationResult; on success ``image_upload_results`` is set whenever
            files were supplied
        """
        logger.info(
            "Creating listing",
            owner_id=owner_id,
            category=draft.category,
            image_count=len(draft.files),
        )

        # 1. Resolve category
        slug = slugify_category(draft.category)
        try:
            category = await get_category_by_slug(slug, store=self._store)
        except Exception as e:
            logger.error("Category lookup failed", slug=slug, error=str(e))
            return CreationResult.failed("resolve_category", f"Failed to resolve category: {e}")

        if category is None:
            return CreationResult.failed("resolve_category", f"Category '{draft.category}' not found")

        # 2. Upload media
        batch: BatchUploadResult | None = None
        upload_stats: UploadStats | None = None
        if draft.files:
            try:
                batch = await self._uploader.upload_batch(draft.files, self._upload_options())
            except Exception as e:
                logger.error("Image upload batch rejected", owner_id=owner_id, error=str(e))
                return CreationResult.failed("upload_media", f"Failed to upload images: {e}")

            upload_stats = _upload_stats(batch)
            if batch.success_count == 0:
                logger.error(
                    "No images uploaded successfully",
                    owner_id=owner_id,
                    failure_count=batch.failure_count,
                )
                return CreationResult.failed(
                    "upload_media",
                    "Failed to upload images: " + ", ".join(batch.errors),
                    upload_stats,
                )

        image_urls = batch.successful_urls if batch else []

        # 3. Persist
        row = build_listing_row(draft, owner_id, category, image_urls)
        try:
            stored = await self._store.insert(LISTINGS_TABLE, row)
        except Exception as e:
            logger.error("Error creating clothing item", owner_id=owner_id, error=str(e))
            result = CreationResult.failed(
                "persist", f"Failed to create clothing item: {e}", upload_stats
            )
            warning = await self._handle_orphaned_media(batch)
            if warning:
                result.warnings.append(warning)
            return result

        # 4. Counter increment (non-critical)
        warnings = []
        warning = await self._non_critical(
            "increment_items_listed",
            self._store.call_procedure(ITEMS_LISTED_PROCEDURE, {"user_id": owner_id}),
        )
        if warning:
            warnings.append(warning)

        try:
            item = ListingRecord.from_row(stored)
        except ValidationError as e:
            logger.error(
                "Stored clothing item could not be read back",
                owner_id=owner_id,
                row_id=str(stored.get("id")),
                error=str(e),
            )
            result = CreationResult.failed(
                "persist", f"Clothing item created but could not be read back: {e}", upload_stats
            )
            result.warnings.extend(warnings)
            return result

        logger.info(
            "Listing created",
            item_id=item.id,
            owner_id=owner_id,
            images_uploaded=len(image_urls),
            images_failed=upload_stats.failure_count if upload_stats else 0,
        )
        return CreationResult(
            success=True, item=item, image_upload_results=upload_stats, warnings=warnings
        )

    async def _non_critical(self, step: str, call: Awaitable[Any]) -> str | None:
        """Await a side effect whose failure is recorded but never changes the outcome."""
        try:
            await call
        except Exception as e:
            logger.warning("Non-critical step failed", step=step, error=str(e))
            return f"{step} failed: {e}"
        return None

    async def _handle_orphaned_media(self, batch: BatchUploadResult | None) -> str | None:
        if batch is None or not batch.successful_paths:
            return None

        paths = batch.successful_paths
        if not self.cleanup_orphaned_media:
            logger.warning("Uploaded media left orphaned", bucket=self.bucket, paths=paths)
            return f"{len(paths)} uploaded image(s) left in storage"

        removed = await self._uploader.remove_objects(self.bucket, paths)
        if removed:
            logger.info("Orphaned media removed", bucket=self.bucket, count=len(paths))
            return None
        return f"Failed to remove {len(paths)} uploaded image(s)"
