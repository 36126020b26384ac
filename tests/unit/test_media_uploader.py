"""
Tests for batch image upload.
"""

import asyncio
import re

import pytest

from rewear.models.domain.media_domain import UploadOptions
from rewear.services.contracts import StorageError
from rewear.services.media.media_uploader import (
    MediaUploader,
    MediaUploadError,
    build_storage_name,
)

MIB = 1024 * 1024

OPTIONS = UploadOptions(bucket="clothing-items", folder="listings")


@pytest.mark.asyncio
async def test_mixed_batch_reports_partial_success(fake_storage, make_image):
    """One oversized file and two valid JPEGs: two stored, one size failure."""
    uploader = MediaUploader(fake_storage)
    files = [
        make_image("big.jpg", size=6 * MIB),
        make_image("front.jpg", size=MIB),
        make_image("back.jpg", size=MIB),
    ]

    result = await uploader.upload_batch(files, OPTIONS)

    assert result.success_count == 2
    assert result.failure_count == 1
    assert result.total_count == 3
    assert len(result.errors) == 1
    assert "File too large" in result.errors[0]
    assert result.errors[0].startswith("Validation failed: ")
    # Invalid files never reach storage
    assert len(fake_storage.uploads) == 2


@pytest.mark.asyncio
async def test_counts_reconcile_with_outcomes(make_image, make_storage):
    storage = make_storage(fail_markers=["broken"])
    uploader = MediaUploader(storage)
    files = [
        make_image("a.jpg"),
        make_image("broken.png", content_type="image/png"),
        make_image("b.gif", content_type="image/jpeg"),
        make_image("c.webp", content_type="image/webp"),
    ]

    result = await uploader.upload_batch(files, OPTIONS)

    assert result.success_count + result.failure_count == result.total_count == 4
    assert len(result.successful_urls) == result.success_count == 2
    assert result.successful_urls == [o.url for o in result.results if o.success]


@pytest.mark.asyncio
async def test_outcomes_keep_input_order(fake_storage, make_image):
    uploader = MediaUploader(fake_storage, concurrency=2)
    names = [f"img{i}.jpg" for i in range(6)]

    result = await uploader.upload_batch([make_image(name) for name in names], OPTIONS)

    assert [outcome.file_name for outcome in result.results] == names


@pytest.mark.asyncio
async def test_validation_failure_carries_verdict(fake_storage, make_image):
    uploader = MediaUploader(fake_storage)

    outcome = await uploader.upload_one(make_image("doc.pdf", "application/pdf"), OPTIONS)

    assert outcome.success is False
    assert outcome.verdict is not None
    assert outcome.verdict.is_valid is False
    assert fake_storage.uploads == []


@pytest.mark.asyncio
async def test_storage_error_surfaces_raw_message(make_image, make_storage):
    storage = make_storage(fail_markers=["dup"])
    uploader = MediaUploader(storage)

    outcome = await uploader.upload_one(make_image("dup.jpg"), OPTIONS)

    assert outcome.success is False
    assert outcome.error == "The resource already exists"
    assert outcome.verdict is None


@pytest.mark.asyncio
async def test_successful_upload_records_path_and_url(fake_storage, make_image):
    uploader = MediaUploader(fake_storage)

    outcome = await uploader.upload_one(make_image("My Jacket!.jpg"), OPTIONS)

    assert outcome.success is True
    assert outcome.path.startswith("listings/My_Jacket__")
    assert outcome.url == f"https://storage.test/object/public/clothing-items/{outcome.path}"
    upload = fake_storage.uploads[0]
    assert upload["cache_control"] == "3600"
    assert upload["upsert"] is False
    assert upload["content_type"] == "image/jpeg"


@pytest.mark.asyncio
async def test_unexpected_error_only_fails_that_file(make_image):
    class FlakyStorage:
        def __init__(self):
            self.calls = 0

        async def upload(self, bucket, path, data, *, content_type, cache_control="3600", upsert=False):
            self.calls += 1
            if "boom" in path:
                raise RuntimeError("socket closed")
            return {"path": path}

        def get_public_url(self, bucket, path):
            return f"https://cdn.test/{path}"

        async def remove(self, bucket, paths):
            return None

    storage = FlakyStorage()
    uploader = MediaUploader(storage)

    result = await uploader.upload_batch([make_image("boom.jpg"), make_image("ok.jpg")], OPTIONS)

    assert storage.calls == 2
    assert result.success_count == 1
    assert result.errors == ["socket closed"]


@pytest.mark.asyncio
async def test_concurrency_is_bounded(make_image):
    class SlowStorage:
        def __init__(self):
            self.in_flight = 0
            self.peak = 0

        async def upload(self, bucket, path, data, *, content_type, cache_control="3600", upsert=False):
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            await asyncio.sleep(0.01)
            self.in_flight -= 1
            return {"path": path}

        def get_public_url(self, bucket, path):
            return path

        async def remove(self, bucket, paths):
            return None

    storage = SlowStorage()
    uploader = MediaUploader(storage, concurrency=2)

    result = await uploader.upload_batch([make_image(f"{i}.jpg") for i in range(5)], OPTIONS)

    assert result.success_count == 5
    assert storage.peak == 2


@pytest.mark.asyncio
async def test_empty_batch_rejected(fake_storage):
    uploader = MediaUploader(fake_storage)

    with pytest.raises(MediaUploadError, match="No images provided"):
        await uploader.upload_batch([], OPTIONS)


@pytest.mark.asyncio
async def test_blank_bucket_rejected(fake_storage, make_image):
    uploader = MediaUploader(fake_storage)

    with pytest.raises(MediaUploadError, match="Bucket name is required"):
        await uploader.upload_batch([make_image()], UploadOptions(bucket="  "))


@pytest.mark.asyncio
async def test_malformed_element_rejected(fake_storage, make_image):
    uploader = MediaUploader(fake_storage)

    with pytest.raises(MediaUploadError, match="Invalid file objects"):
        await uploader.upload_batch([make_image(), b"raw bytes"], OPTIONS)

    assert fake_storage.uploads == []


@pytest.mark.asyncio
async def test_remove_objects_reports_failure(fake_storage):
    uploader = MediaUploader(fake_storage)
    fake_storage.remove_error = StorageError("forbidden", status_code=403)

    assert await uploader.remove_objects("clothing-items", ["listings/a.jpg"]) is False


def test_storage_name_format():
    path = build_storage_name("summer dress.v2.JPG", "jpg", folder="/listings/")

    assert re.fullmatch(r"listings/summer_dress_v2_\d{13}_[0-9a-f]{12}\.jpg", path)


def test_storage_names_do_not_collide():
    names = {build_storage_name("same.jpg", "jpg") for _ in range(50)}

    assert len(names) == 50


def test_storage_name_without_folder():
    assert "/" not in build_storage_name("x.png", "png")
