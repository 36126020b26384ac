from pydantic import BaseModel, Field

from rewear.models.domain.listing_domain import Category, ListingRecord, UploadStats


class CategoryListResponse(BaseModel):
    categories: list[Category]


class ListingListResponse(BaseModel):
    items: list[ListingRecord]
    count: int


class CreateListingResponse(BaseModel):
    """Response for POST /items on success."""

    item: ListingRecord
    image_upload_results: UploadStats | None = Field(
        default=None, description="Present whenever images were submitted"
    )
    warnings: list[str] = Field(default_factory=list)


class CreateListingError(BaseModel):
    """Body of a 400 from POST /items."""

    error: str
    failed_step: str | None = None
    image_upload_results: UploadStats | None = None
