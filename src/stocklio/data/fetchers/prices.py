"""
股价获取
缓存优先，未命中时请求数据源并写回缓存
"""

import asyncio
import math
from datetime import timedelta
from typing import Dict, Iterable, Optional

from loguru import logger

from ..cache import PriceCache, RequestCoalescer
from ..currency import map_provider_currency
from ..errors import InvalidRequest, MalformedResponse, QuoteError
from ..models import PriceCacheEntry, PriceQuote
from ..providers import QuoteSource


class StockPriceFetcher:
    """
    股价获取器

    - 缓存命中时直接返回，不发起网络请求
    - 失败时返回 price=0.0、currency=USD 的 PriceQuote（error 非空），从不抛出 QuoteError
    - 可选合并同一代码的并发请求
    """

    def __init__(
        self,
        source: QuoteSource,
        cache: Optional[PriceCache] = None,
        coalescer: Optional[RequestCoalescer] = None,
        ttl: Optional[timedelta] = None,
    ):
        """
        Args:
            source: 行情数据源
            cache: 股价缓存（默认新建）
            coalescer: 并发请求合并器（None 表示不合并）
            ttl: 写入缓存的过期时间（None 使用缓存默认值）
        """
        self.source = source
        self.cache = cache if cache is not None else PriceCache()
        self.coalescer = coalescer
        self.ttl = ttl

    async def current_price(self, symbol: str, use_cache: bool = True) -> PriceQuote:
        """
        获取当前股价

        Args:
            symbol: 股票代码（自动去空白并转大写）
            use_cache: 是否优先使用缓存

        Returns:
            PriceQuote，可解包为 (price, currency)
        """
        if not isinstance(symbol, str) or not symbol.strip():
            error = InvalidRequest(f"无效的代码: {symbol!r}", symbol=str(symbol))
            logger.warning(f"获取股价失败: {error.message}")
            return PriceQuote.failed(str(symbol), error)

        key = PriceCache.normalize_symbol(symbol)

        if use_cache:
            entry = await self.cache.get_entry(key)
            if entry is not None:
                logger.debug(f"从缓存获取股价: {key} = {entry.price} {entry.currency.value}")
                return PriceQuote.from_entry(entry, from_cache=True)

        if self.coalescer is not None:
            return await self.coalescer.run(f"price:{key}", lambda: self._fetch(key))
        return await self._fetch(key)

    async def _fetch(self, symbol: str) -> PriceQuote:
        logger.info(f"从 {self.source.name} 获取股价: {symbol}")
        try:
            raw = await self.source.fetch_quote(symbol)
            if not math.isfinite(raw.price):
                raise MalformedResponse(f"价格不是有限数值: {raw.price}", symbol=symbol)
        except QuoteError as e:
            logger.warning(f"获取股价失败: {symbol} [{e.kind}] {e.message}")
            return PriceQuote.failed(symbol, e)

        currency = map_provider_currency(raw.currency_code)
        entry = PriceCacheEntry(symbol=symbol, price=float(raw.price), currency=currency)
        await self.cache.put_entry(entry, self.ttl)

        logger.info(f"获取股价成功: {symbol} = {entry.price} {currency.value}")
        return PriceQuote.from_entry(entry, from_cache=False)

    async def current_prices(
        self,
        symbols: Iterable[str],
        use_cache: bool = True,
    ) -> Dict[str, PriceQuote]:
        """
        并发获取多个股价

        Returns:
            {规范化代码: PriceQuote}
        """
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols))
        quotes = await asyncio.gather(*(self.current_price(s, use_cache) for s in unique))
        return dict(zip(unique, quotes))

    def __repr__(self):
        return f"StockPriceFetcher(source={self.source.name}, cache={self.cache!r})"
