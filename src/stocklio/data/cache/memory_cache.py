"""
内存缓存后端
进程内的键值缓存，进程重启后数据不保留
"""

import fnmatch
import threading
import time
from datetime import timedelta
from typing import Optional, Any, Dict, List, Tuple

from loguru import logger

from .base import CacheBackend
from ..currency import Currency
from ..models import PriceCacheEntry, RateCacheEntry


class MemoryCache(CacheBackend):
    """
    内存缓存后端

    特点：
    - 所有读写在 threading.Lock 保护下进行，可被多个协程或线程共享
    - 支持过期时间（读取时检查，过期条目在访问时删除）
    - 无容量上限，不做淘汰
    """

    def __init__(self, default_ttl: Optional[timedelta] = None, name: str = "memory"):
        """
        初始化内存缓存

        Args:
            default_ttl: 默认过期时间（None 表示永不过期）
            name: 缓存名称（用于日志和统计）
        """
        super().__init__(default_ttl)
        self.name = name
        # key -> (value, 过期时刻 monotonic 秒 / None)
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _normalize_key(self, key: str) -> str:
        return key

    async def get(self, key: str) -> Optional[Any]:
        """获取缓存值"""
        key = self._normalize_key(key)
        now = time.monotonic()
        with self._lock:
            item = self._entries.get(key)
            if item is None:
                self._misses += 1
                return None

            value, expires_at = item
            if self.is_expired(expires_at, now):
                del self._entries[key]
                self._misses += 1
                logger.debug(f"[{self.name}] 缓存已过期: {key}")
                return None

            self._hits += 1
            return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[timedelta] = None,
    ) -> bool:
        """设置缓存值（同键覆盖）"""
        key = self._normalize_key(key)
        expires_at = self.deadline(ttl)

        with self._lock:
            self._entries[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> bool:
        """删除缓存"""
        key = self._normalize_key(key)
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        """清空所有缓存"""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            logger.debug(f"[{self.name}] 清空缓存 {count} 条")
        return count

    async def keys(self, pattern: str = "*") -> List[str]:
        """获取匹配的缓存键（不含已过期条目）"""
        now = time.monotonic()
        with self._lock:
            return [
                key
                for key, (_, expires_at) in self._entries.items()
                if not self.is_expired(expires_at, now) and fnmatch.fnmatchcase(key, pattern)
            ]

    async def cleanup_expired(self) -> int:
        """清理过期缓存"""
        now = time.monotonic()
        with self._lock:
            expired = [k for k, (_, exp) in self._entries.items() if self.is_expired(exp, now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"[{self.name}] 清理了 {len(expired)} 条过期缓存")
        return len(expired)

    async def stats(self) -> Dict[str, Any]:
        """获取缓存统计信息"""
        now = time.monotonic()
        with self._lock:
            total = len(self._entries)
            expired = sum(1 for _, exp in self._entries.values() if self.is_expired(exp, now))
            hits, misses = self._hits, self._misses

        lookups = hits + misses
        return {
            "name": self.name,
            "total_entries": total,
            "expired_entries": expired,
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / lookups if lookups else 0.0,
            "default_ttl_seconds": self.default_ttl.total_seconds() if self.default_ttl else None,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, entries={len(self)})"


class PriceCache(MemoryCache):
    """
    股价缓存

    键为规范化后的股票代码（去空白、大写）。
    """

    def __init__(self, default_ttl: Optional[timedelta] = None):
        super().__init__(default_ttl, name="price")

    @staticmethod
    def normalize_symbol(symbol: str) -> str:
        return symbol.strip().upper()

    def _normalize_key(self, key: str) -> str:
        return self.normalize_symbol(key)

    async def get_entry(self, symbol: str) -> Optional[PriceCacheEntry]:
        return await self.get(symbol)

    async def put_entry(self, entry: PriceCacheEntry, ttl: Optional[timedelta] = None) -> bool:
        return await self.set(entry.symbol, entry, ttl)


class RateCache(MemoryCache):
    """
    汇率缓存

    键为 "FROM-TO"，区分方向：缓存 USD-TWD 不会推导出 TWD-USD。
    """

    def __init__(self, default_ttl: Optional[timedelta] = None):
        super().__init__(default_ttl, name="rate")

    @staticmethod
    def pair_key(from_currency: Currency, to_currency: Currency) -> str:
        return f"{from_currency.value}-{to_currency.value}"

    async def get_entry(self, from_currency: Currency, to_currency: Currency) -> Optional[RateCacheEntry]:
        return await self.get(self.pair_key(from_currency, to_currency))

    async def put_entry(self, entry: RateCacheEntry, ttl: Optional[timedelta] = None) -> bool:
        return await self.set(entry.pair_key, entry, ttl)
