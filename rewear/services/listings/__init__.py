"""
Listing creation and catalogue reads.
"""

from .listing_orchestrator import ListingOrchestrator, build_listing_row

__all__ = ["ListingOrchestrator", "build_listing_row"]
