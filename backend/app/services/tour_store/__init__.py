"""Tour Store service module.

Read and write access to tours and the venue catalog, owned outside the optimizer.
"""

from .service import HttpTourStore, InMemoryTourStore, TourStore, VenuePool

__all__ = [
    "HttpTourStore",
    "InMemoryTourStore",
    "TourStore",
    "VenuePool",
]
