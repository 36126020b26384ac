"""
Category catalogue lookups.
"""

import re

from rewear.db.store import postgres_store
from rewear.infrastructure.observability.logging import get_logger
from rewear.models.domain.listing_domain import Category
from rewear.services.contracts import RecordNotFoundError, RelationalStore

logger = get_logger(__name__)

CATEGORIES_TABLE = "categories"

_WHITESPACE = re.compile(r"\s+")


def slugify_category(name: str) -> str:
    """Lower-case the name and turn whitespace runs into single dashes."""
    return _WHITESPACE.sub("-", name.strip().lower())


async def list_categories(store: RelationalStore | None = None) -> list[Category]:
    """
    Fetch every category ordered by sort_order.

    Raises:
        StoreError: if the store call fails
    """
    store = store or postgres_store
    rows = await store.fetch_all(CATEGORIES_TABLE, order_by="sort_order")
    return [Category.from_row(row) for row in rows]


async def get_category_by_slug(slug: str, store: RelationalStore | None = None) -> Category | None:
    """
    Look up one category by slug.

    Returns:
        Category, or None if no category has that slug
    """
    store = store or postgres_store
    try:
        row = await store.fetch_one(CATEGORIES_TABLE, {"slug": slug})
    except RecordNotFoundError:
        logger.info("Category not found", slug=slug)
        return None
    return Category.from_row(row)
