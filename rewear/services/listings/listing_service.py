"""
Read access to persisted clothing items.
Updates and deletions happen elsewhere.
"""

from rewear.db.store import postgres_store
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.listing_domain import ListingFilters, ListingRecord
from rewear.services.contracts import RecordNotFoundError, RelationalStore
from rewear.services.listings.category_service import get_category_by_slug

logger = get_logger(__name__)

LISTINGS_TABLE = "clothing_items"

DEFAULT_PAGE_SIZE = 10


async def get_listing(item_id: str, store: RelationalStore | None = None) -> ListingRecord | None:
    """
    Fetch one clothing item.

    Args:
        item_id: clothing item id

    Returns:
        ListingRecord, None if not found
    """
    store = store or postgres_store
    try:
        row = await store.fetch_one(LISTINGS_TABLE, {"id": item_id})
    except RecordNotFoundError:
        logger.info("Listing not found", item_id=item_id)
        return None
    return ListingRecord.from_row(row)


async def list_listings(
    filters: ListingFilters | None = None, store: RelationalStore | None = None
) -> list[ListingRecord]:
    """
    List clothing items matching the filters, newest first.

    ``category`` is a category slug; an unknown slug matches nothing. ``brand``
    matches any brand containing it, ignoring case. An offset without a limit
    pages in steps of DEFAULT_PAGE_SIZE.
    """
    store = store or postgres_store
    filters = filters or ListingFilters()

    equality = filters.model_dump(
        include={"size", "condition", "color", "status", "owner_id"}, exclude_none=True
    )
    if filters.category:
        category = await get_category_by_slug(filters.category, store=store)
        if category is None:
            logger.info("Unknown category filter", category=filters.category)
            return []
        equality["category_id"] = category.id

    contains = {"brand": filters.brand} if filters.brand else None

    limit = filters.limit
    if filters.offset and limit is None:
        limit = DEFAULT_PAGE_SIZE

    rows = await store.fetch_all(
        LISTINGS_TABLE,
        equality,
        contains=contains,
        order_by="created_at",
        descending=True,
        limit=limit,
        offset=filters.offset or None,
    )
    logger.debug("Listings fetched", count=len(rows), filters=equality, brand=filters.brand)
    return [ListingRecord.from_row(row) for row in rows]


async def get_user_listings(
    owner_id: str, status: str | None = None, store: RelationalStore | None = None
) -> list[ListingRecord]:
    return await list_listings(ListingFilters(owner_id=owner_id, status=status), store=store)
