"""
缓存系统模块
"""

from .base import CacheBackend
from .memory_cache import MemoryCache, PriceCache, RateCache
from .inflight import RequestCoalescer

__all__ = ["CacheBackend", "MemoryCache", "PriceCache", "RateCache", "RequestCoalescer"]
