"""Venue Catalog service module.

In-memory corridor lookup over the candidate venue pool.
"""

from .service import CatalogMatch, VenueCatalogIndex, check_availability

__all__ = [
    "CatalogMatch",
    "VenueCatalogIndex",
    "check_availability",
]
