"""
Tests for listing creation: category resolution, media upload, persistence
and the non-critical counter update.
"""

import pytest

from rewear.models.domain.listing_domain import ListingDraft
from rewear.services.contracts import StoreError
from rewear.services.listings.listing_orchestrator import ListingOrchestrator
from rewear.services.media.media_uploader import MediaUploader

OWNER_ID = "user-123"

CATEGORY_ROWS = [
    {"id": "cat-tops", "name": "Tops", "slug": "tops", "sort_order": 2},
    {"id": "cat-formal", "name": "Formal Wear", "slug": "formal-wear", "sort_order": 10},
]


@pytest.fixture
def store(fake_store):
    fake_store.seed("categories", *CATEGORY_ROWS)
    return fake_store


def _orchestrator(store, storage, **kwargs):
    return ListingOrchestrator(store, MediaUploader(storage), **kwargs)


def _draft(files=(), **overrides):
    data = {
        "title": "Blue denim jacket",
        "category": "Tops",
        "size": "M",
        "condition": "Good",
        "agreed_to_terms": True,
        "files": list(files),
    }
    data.update(overrides)
    return ListingDraft(**data)


@pytest.mark.asyncio
async def test_unknown_category_fails_before_upload(store, fake_storage, make_image):
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(
        _draft([make_image()], category="unknown-category"), OWNER_ID
    )

    assert result.success is False
    assert result.failed_step == "resolve_category"
    assert result.error == "Category 'unknown-category' not found"
    assert fake_storage.uploads == []
    assert store.calls_to("insert") == 0
    assert store.calls_to("call_procedure") == 0


@pytest.mark.asyncio
async def test_category_lookup_error_fails_resolution(store, fake_storage, store_failure):
    store.failures["fetch_one"] = store_failure("connection reset")
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft(), OWNER_ID)

    assert result.success is False
    assert result.failed_step == "resolve_category"
    assert "connection reset" in result.error
    assert store.calls_to("insert") == 0


@pytest.mark.asyncio
async def test_multi_word_category_resolves_by_slug(store, fake_storage):
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft(category="Formal  Wear"), OWNER_ID)

    assert result.success is True
    assert result.item.category_id == "cat-formal"


@pytest.mark.asyncio
async def test_all_uploads_failing_aborts_before_persist(store, fake_storage, make_image):
    orchestrator = _orchestrator(store, fake_storage)
    files = [make_image("a.bmp", "image/bmp"), make_image("b.tiff", "image/tiff")]

    result = await orchestrator.create_listing(_draft(files), OWNER_ID)

    assert result.success is False
    assert result.failed_step == "upload_media"
    assert result.error.startswith("Failed to upload images: Validation failed")
    assert result.image_upload_results.success_count == 0
    assert result.image_upload_results.failure_count == 2
    assert store.calls_to("insert") == 0


@pytest.mark.asyncio
async def test_partial_upload_still_creates_listing(store, make_storage, make_image):
    """Two valid images, storage rejects one: created with one image."""
    storage = make_storage(fail_markers=["back"])
    orchestrator = _orchestrator(store, storage)

    result = await orchestrator.create_listing(
        _draft([make_image("front.jpg"), make_image("back.jpg")]), OWNER_ID
    )

    assert result.success is True
    assert result.image_upload_results.success_count == 1
    assert result.image_upload_results.failure_count == 1
    assert result.image_upload_results.total_count == 2
    assert len(result.item.images) == 1
    assert "front" in result.item.images[0]


@pytest.mark.asyncio
async def test_listing_without_images_persists_null_images(store, fake_storage):
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft(), OWNER_ID)

    assert result.success is True
    assert result.image_upload_results is None
    assert fake_storage.uploads == []
    inserted = store.tables["clothing_items"][0]
    assert inserted["images"] is None


@pytest.mark.asyncio
async def test_persisted_record_defaults(store, fake_storage, make_image):
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft([make_image()], tags=[]), OWNER_ID)

    row = store.tables["clothing_items"][0]
    assert row["owner_id"] == OWNER_ID
    assert row["category_id"] == "cat-tops"
    assert row["status"] == "pending_approval"
    assert row["approval_status"] == "pending"
    assert row["view_count"] == 0
    assert row["favorite_count"] == 0
    assert row["is_featured"] is False
    assert row["listed_at"] is None
    assert row["exchange_preference"] == "both"
    assert row["tags"] is None
    assert row["images"] == result.item.images


@pytest.mark.asyncio
async def test_uploads_target_listings_folder(store, fake_storage, make_image):
    orchestrator = _orchestrator(store, fake_storage)

    await orchestrator.create_listing(_draft([make_image()]), OWNER_ID)

    upload = fake_storage.uploads[0]
    assert upload["bucket"] == "clothing-items"
    assert upload["path"].startswith("listings/")
    assert upload["upsert"] is False


@pytest.mark.asyncio
async def test_counter_incremented_for_owner(store, fake_storage):
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft(), OWNER_ID)

    assert result.warnings == []
    assert store.procedure_calls == [("increment_user_items_listed", {"user_id": OWNER_ID})]


@pytest.mark.asyncio
async def test_counter_failure_does_not_fail_creation(store, fake_storage):
    store.failures["call_procedure"] = StoreError("function does not exist", operation="call_procedure")
    orchestrator = _orchestrator(store, fake_storage)

    result = await orchestrator.create_listing(_draft(), OWNER_ID)

    assert result.success is True
    assert result.item is not None
    assert len(result.warnings) == 1
    assert "function does not exist" in result.warnings[0]


@pytest.mark.asyncio
async def test_persist_failure_leaves_media_by_default(store, fake_storage, make_image):
    store.failures["insert"] = StoreError("violates check constraint", operation="insert")
    orchestrator = _orchestrator(store, fake_storage, cleanup_orphaned_media=False)

    result = await orchestrator.create_listing(_draft([make_image()]), OWNER_ID)

    assert result.success is False
    assert result.failed_step == "persist"
    assert result.error == "Failed to create clothing item: violates check constraint"
    assert result.image_upload_results.success_count == 1
    assert fake_storage.removed == []
    assert len(fake_storage.objects) == 1
    assert result.warnings == ["1 uploaded image(s) left in storage"]
    assert store.calls_to("call_procedure") == 0


@pytest.mark.asyncio
async def test_persist_failure_removes_media_when_enabled(store, fake_storage, make_image):
    store.failures["insert"] = StoreError("violates check constraint", operation="insert")
    orchestrator = _orchestrator(store, fake_storage, cleanup_orphaned_media=True)

    result = await orchestrator.create_listing(_draft([make_image(), make_image("b.png", "image/png")]), OWNER_ID)

    assert result.success is False
    assert fake_storage.objects == {}
    assert fake_storage.removed[0][0] == "clothing-items"
    assert len(fake_storage.removed[0][1]) == 2
    assert result.warnings == []


@pytest.mark.asyncio
async def test_unreadable_stored_row_keeps_media(store, fake_storage, make_image, monkeypatch):
    insert = store.insert

    async def insert_returning_partial_row(table, row):
        stored = await insert(table, row)
        return {"id": stored["id"], "view_count": "many"}

    monkeypatch.setattr(store, "insert", insert_returning_partial_row)
    orchestrator = _orchestrator(store, fake_storage, cleanup_orphaned_media=True)

    result = await orchestrator.create_listing(_draft([make_image()]), OWNER_ID)

    assert result.success is False
    assert result.failed_step == "persist"
    assert result.error.startswith("Clothing item created but could not be read back")
    assert len(store.tables["clothing_items"]) == 1
    assert fake_storage.removed == []
    assert len(fake_storage.objects) == 1
    assert store.calls_to("call_procedure") == 1


@pytest.mark.asyncio
async def test_not_idempotent(store, fake_storage, make_image):
    orchestrator = _orchestrator(store, fake_storage)
    draft = _draft([make_image()])

    first = await orchestrator.create_listing(draft, OWNER_ID)
    second = await orchestrator.create_listing(draft, OWNER_ID)

    assert first.item.id != second.item.id
    assert len(store.tables["clothing_items"]) == 2
    assert len(fake_storage.uploads) == 2
