from fastapi import APIRouter, Depends, HTTPException, status

from rewear.dependencies import get_store
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.api.listing_response import CategoryListResponse
from rewear.services.contracts import RelationalStore, StoreError
from rewear.services.listings.category_service import list_categories

router = APIRouter()
logger = get_logger(__name__)


@router.get("/categories", response_model=CategoryListResponse)
async def categories(store: RelationalStore = Depends(get_store)):
    try:
        return CategoryListResponse(categories=await list_categories(store))
    except StoreError as e:
        logger.error("Error listing categories", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to fetch categories"
        ) from e
