"""Cache service module."""

from .service import CachedOptimization, CacheService, OptimizationResultCache, RedisCacheService

__all__ = [
    "CachedOptimization",
    "CacheService",
    "OptimizationResultCache",
    "RedisCacheService",
]
