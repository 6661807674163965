"""
缓存后端基类

行情缓存的最小接口：按键读写、可选过期时间、通配符列举和统计。
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional


class CacheBackend(ABC):
    """
    缓存后端抽象基类

    get 对不存在和已过期的键都返回 None，因此缓存值本身不能为 None。
    """

    def __init__(self, default_ttl: Optional[timedelta] = None):
        """
        Args:
            default_ttl: 默认过期时间（None 表示在进程生命周期内有效）
        """
        self.default_ttl = default_ttl

    def deadline(self, ttl: Optional[timedelta] = None) -> Optional[float]:
        """
        计算过期时刻（time.monotonic 秒）

        未指定 ttl 时使用 default_ttl；两者都为空或为 0 时返回 None（不过期）。
        """
        ttl = ttl or self.default_ttl
        if not ttl:
            return None
        return time.monotonic() + ttl.total_seconds()

    @staticmethod
    def is_expired(deadline: Optional[float], now: Optional[float] = None) -> bool:
        if deadline is None:
            return False
        return (time.monotonic() if now is None else now) >= deadline

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """读取缓存值，未命中或已过期返回 None"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        """写入缓存值，同键覆盖"""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """删除缓存，返回键是否存在"""

    @abstractmethod
    async def clear(self) -> int:
        """清空缓存，返回删除的条目数"""

    @abstractmethod
    async def keys(self, pattern: str = "*") -> List[str]:
        """列出未过期且匹配通配符（* 和 ?）的键"""

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """删除所有已过期条目，返回删除数"""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """条目数、命中 / 未命中次数等统计"""

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Any],
        ttl: Optional[timedelta] = None,
    ) -> Any:
        """
        读取缓存，未命中时调用 factory 生成并写入

        Args:
            key: 缓存键
            factory: 普通函数或协程函数
            ttl: 过期时间

        Returns:
            缓存值
        """
        value = await self.get(key)
        if value is not None:
            return value

        value = factory()
        if asyncio.iscoroutine(value):
            value = await value

        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """批量读取，结果只包含命中的键"""
        found = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                found[key] = value
        return found

    async def set_many(self, mapping: Dict[str, Any], ttl: Optional[timedelta] = None) -> int:
        return sum([await self.set(key, value, ttl) for key, value in mapping.items()])

    async def delete_many(self, keys: Iterable[str]) -> int:
        return sum([await self.delete(key) for key in keys])

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup_expired()
