"""
FastAPI dependency providers for the backend adapters.
Routes depend on these so tests can swap in fakes via app.dependency_overrides.
"""

from fastapi import Depends

from rewear.db.store import postgres_store
from rewear.services.contracts import RelationalStore
from rewear.services.infrastructure.supabase_storage import storage_client
from rewear.services.listings.listing_orchestrator import ListingOrchestrator
from rewear.services.media.media_uploader import MediaUploader


def get_store() -> RelationalStore:
    return postgres_store


def get_media_uploader() -> MediaUploader:
    return MediaUploader(storage_client)


def get_listing_orchestrator(
    store: RelationalStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> ListingOrchestrator:
    return ListingOrchestrator(store, uploader)
