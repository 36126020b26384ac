"""
Listing domain models.

Covers the catalogue constants used by the listing form, the client-side
draft handed to the orchestrator, the persisted clothing item record and the
result returned by a creation attempt.
"""

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rewear.models.domain.media_domain import CandidateFile

CATEGORIES = (
    "Dresses",
    "Tops",
    "Bottoms",
    "Outerwear",
    "Shoes",
    "Accessories",
    "Bags",
    "Jewelry",
    "Activewear",
    "Formal Wear",
    "Casual Wear",
    "Vintage",
    "Other",
)

CONDITIONS = ("New with tags", "Like new", "Excellent", "Good", "Fair", "Poor")

CLOTHING_SIZES = ("XS", "S", "M", "L", "XL", "XXL", "XXXL")
SHOE_SIZES = tuple(str(n / 2).removesuffix(".0") for n in range(10, 29))  # 5 .. 14
NUMERIC_SIZES = tuple(str(n) for n in range(0, 25, 2))
JEWELRY_SIZES = tuple(str(n) for n in range(3, 14))
ACCESSORY_SIZES = ("One Size", "Small", "Medium", "Large")
NO_SIZE = ("One Size",)

CATEGORY_SIZE_MAP: dict[str, tuple[str, ...]] = {
    "Dresses": CLOTHING_SIZES,
    "Tops": CLOTHING_SIZES,
    "Bottoms": NUMERIC_SIZES,
    "Outerwear": CLOTHING_SIZES,
    "Shoes": SHOE_SIZES,
    "Accessories": ACCESSORY_SIZES,
    "Bags": NO_SIZE,
    "Jewelry": JEWELRY_SIZES,
    "Activewear": CLOTHING_SIZES,
    "Formal Wear": CLOTHING_SIZES,
    "Casual Wear": CLOTHING_SIZES,
    "Vintage": CLOTHING_SIZES,
    "Other": ACCESSORY_SIZES,
}

MAX_TAGS = 10
MAX_TAG_LENGTH = 20
MAX_IMAGES = 5

_TITLE_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-.,!?']+$")

ExchangePreference = Literal["swap_only", "points_only", "both"]


def sizes_for_category(category: str) -> tuple[str, ...]:
    """Sizes offered for a category; unknown categories get accessory sizes."""
    return CATEGORY_SIZE_MAP.get(category, ACCESSORY_SIZES)


class Category(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    slug: str
    description: str | None = None
    emoji: str | None = None
    sort_order: int | None = None
    parent_id: str | None = None
    is_active: bool | None = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Category":
        data = dict(row)
        data["id"] = str(data["id"])
        if data.get("parent_id") is not None:
            data["parent_id"] = str(data["parent_id"])
        return cls.model_validate(data)


class ListingLocation(BaseModel):
    address: str = Field(..., min_length=1)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ListingDraft(BaseModel):
    """User-supplied listing, consumed once by the orchestrator."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    category: str = Field(..., min_length=1)
    size: str | None = None
    condition: str | None = None
    brand: str | None = None
    color: str | None = None
    material: str | None = None
    tags: list[str] | None = None
    files: list[CandidateFile] = Field(default_factory=list, max_length=MAX_IMAGES)
    points_value: int | None = Field(default=None, ge=0)
    exchange_preference: ExchangePreference | None = None
    location: ListingLocation | None = None
    is_available: bool = True
    agreed_to_terms: bool = False

    @field_validator("title")
    @classmethod
    def _title_characters(cls, value: str) -> str:
        if not _TITLE_PATTERN.match(value):
            raise ValueError("Title contains invalid characters")
        return value

    @field_validator("tags")
    @classmethod
    def _tag_limits(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        if len(value) > MAX_TAGS:
            raise ValueError(f"You can add up to {MAX_TAGS} tags")
        too_long = [tag for tag in value if len(tag) > MAX_TAG_LENGTH]
        if too_long:
            raise ValueError(f"Tags cannot exceed {MAX_TAG_LENGTH} characters: {', '.join(too_long)}")
        return value

    @field_validator("agreed_to_terms")
    @classmethod
    def _terms_accepted(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must agree to the terms and conditions")
        return value

    def size_is_valid_for_category(self) -> bool:
        """True when no size is given or the size is offered for the draft's category."""
        if not self.size:
            return True
        return self.size in sizes_for_category(self.category)


class ListingRecord(BaseModel):
    """Persisted clothing item row."""

    model_config = ConfigDict(extra="ignore")

    id: str
    owner_id: str
    category_id: str
    title: str
    description: str | None = None
    size: str | None = None
    condition: str | None = None
    brand: str | None = None
    color: str | None = None
    material: str | None = None
    tags: list[str] | None = None
    images: list[str] | None = None
    points_value: int | None = None
    exchange_preference: str | None = "both"
    status: str | None = "pending_approval"
    approval_status: str | None = "pending"
    view_count: int = 0
    favorite_count: int = 0
    is_featured: bool = False
    listed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ListingRecord":
        data = dict(row)
        for key in ("id", "owner_id", "category_id"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        for counter in ("view_count", "favorite_count"):
            if data.get(counter) is None:
                data[counter] = 0
        if data.get("is_featured") is None:
            data["is_featured"] = False
        return cls.model_validate(data)


class ListingFilters(BaseModel):
    category: str | None = None  # category slug
    brand: str | None = None  # case-insensitive partial match
    size: str | None = None
    condition: str | None = None
    color: str | None = None
    status: str | None = None
    owner_id: str | None = None
    limit: int | None = Field(default=None, ge=1, le=100)
    offset: int | None = Field(default=None, ge=0)


class UploadStats(BaseModel):
    """Image upload breakdown reported alongside a creation result."""

    success_count: int
    failure_count: int
    total_count: int
    errors: list[str] = Field(default_factory=list)


CreationStep = Literal["resolve_category", "upload_media", "persist"]


class CreationResult(BaseModel):
    """One consolidated verdict per listing creation attempt."""

    success: bool
    item: ListingRecord | None = None
    error: str | None = None
    failed_step: CreationStep | None = None
    image_upload_results: UploadStats | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def failed(
        cls, step: CreationStep, error: str, upload_stats: UploadStats | None = None
    ) -> "CreationResult":
        return cls(
            success=False, error=error, failed_step=step, image_upload_results=upload_stats
        )
