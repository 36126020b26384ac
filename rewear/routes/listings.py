"""
listings.py
-----------
Purpose:
    Listing submission and catalogue reads.

    - POST /items takes the listing form as multipart data with up to five
      `images` parts and runs the listing orchestrator for the caller.
    - GET /items and GET /items/{item_id} read the catalogue.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import ValidationError

from rewear.auth.verify import current_identity
from rewear.dependencies import get_listing_orchestrator, get_store
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.api.listing_response import (
    CreateListingError,
    CreateListingResponse,
    ListingListResponse,
)
from rewear.models.domain.identity_domain import Identity
from rewear.models.domain.listing_domain import ListingDraft, ListingFilters, ListingRecord
from rewear.models.domain.media_domain import CandidateFile
from rewear.services.contracts import RelationalStore, StoreError
from rewear.services.listings.listing_orchestrator import ListingOrchestrator
from rewear.services.listings.listing_service import get_listing, list_listings

router = APIRouter(prefix="/items", tags=["listings"])
logger = get_logger(__name__)


def _validation_detail(error: ValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in item["loc"]], "msg": item["msg"], "type": item["type"]}
        for item in error.errors()
    ]


async def _candidate_files(images: list[UploadFile]) -> list[CandidateFile]:
    files = []
    for image in images:
        # Browsers send an empty part when no file was picked
        if not image.filename:
            continue
        files.append(
            CandidateFile(
                name=image.filename,
                content_type=image.content_type or "",
                data=await image.read(),
            )
        )
    return files


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=CreateListingResponse,
    responses={400: {"model": CreateListingError}},
)
async def create_item(
    title: str = Form(...),
    category: str = Form(...),
    agreed_to_terms: bool = Form(False),
    description: str | None = Form(None),
    size: str | None = Form(None),
    condition: str | None = Form(None),
    brand: str | None = Form(None),
    color: str | None = Form(None),
    material: str | None = Form(None),
    tags: list[str] | None = Form(None),
    points_value: int | None = Form(None),
    exchange_preference: str | None = Form(None),
    location_address: str | None = Form(None),
    location_lat: float | None = Form(None),
    location_lng: float | None = Form(None),
    is_available: bool = Form(True),
    images: list[UploadFile] = File(default=[]),
    identity: Identity = Depends(current_identity),
    orchestrator: ListingOrchestrator = Depends(get_listing_orchestrator),
):
    location = None
    if location_address is not None or location_lat is not None or location_lng is not None:
        location = {"address": location_address, "lat": location_lat, "lng": location_lng}

    try:
        draft = ListingDraft(
            title=title,
            description=description,
            category=category,
            size=size,
            condition=condition,
            brand=brand,
            color=color,
            material=material,
            tags=tags,
            files=await _candidate_files(images),
            points_value=points_value,
            exchange_preference=exchange_preference,
            location=location,
            is_available=is_available,
            agreed_to_terms=agreed_to_terms,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=_validation_detail(e)
        ) from e

    if not draft.size_is_valid_for_category():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Size '{draft.size}' is not offered for category '{draft.category}'",
        )

    result = await orchestrator.create_listing(draft, identity.subject)
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=CreateListingError(
                error=result.error or "Unknown error occurred",
                failed_step=result.failed_step,
                image_upload_results=result.image_upload_results,
            ).model_dump(),
        )

    return CreateListingResponse(
        item=result.item,
        image_upload_results=result.image_upload_results,
        warnings=result.warnings,
    )


@router.get("", response_model=ListingListResponse)
async def list_items(
    category: str | None = None,
    brand: str | None = None,
    size: str | None = None,
    condition: str | None = None,
    color: str | None = None,
    item_status: str | None = Query(None, alias="status"),
    owner_id: str | None = None,
    limit: int | None = Query(None, ge=1, le=100),
    offset: int | None = Query(None, ge=0),
    store: RelationalStore = Depends(get_store),
):
    filters = ListingFilters(
        category=category,
        brand=brand,
        size=size,
        condition=condition,
        color=color,
        status=item_status,
        owner_id=owner_id,
        limit=limit,
        offset=offset,
    )
    try:
        items = await list_listings(filters, store=store)
    except StoreError as e:
        logger.error("Error listing clothing items", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to list clothing items"
        ) from e

    return ListingListResponse(items=items, count=len(items))


@router.get("/{item_id}", response_model=ListingRecord)
async def get_item(item_id: str, store: RelationalStore = Depends(get_store)):
    try:
        item = await get_listing(item_id, store=store)
    except StoreError as e:
        logger.error("Error fetching clothing item", item_id=item_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to fetch clothing item"
        ) from e

    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item
