"""
汇率获取
"""

import math
from datetime import timedelta
from typing import Optional, Union

from loguru import logger

from ..cache import RateCache, RequestCoalescer
from ..currency import Currency
from ..errors import MalformedResponse, QuoteError
from ..models import ExchangeRate, RateCacheEntry
from ..providers import QuoteSource, fx_symbol


CurrencyLike = Union[Currency, str]


class ExchangeRateFetcher:
    """
    汇率获取器

    rate(FROM, TO) 表示 1 单位 FROM 兑换多少 TO。
    相同币种直接返回 1.0；失败时 rate=0.0 且 error 非空。
    """

    def __init__(
        self,
        source: QuoteSource,
        cache: Optional[RateCache] = None,
        coalescer: Optional[RequestCoalescer] = None,
        ttl: Optional[timedelta] = None,
    ):
        self.source = source
        self.cache = cache if cache is not None else RateCache()
        self.coalescer = coalescer
        self.ttl = ttl

    async def rate(
        self,
        from_currency: CurrencyLike,
        to_currency: CurrencyLike,
        use_cache: bool = True,
    ) -> ExchangeRate:
        """
        获取汇率

        Args:
            from_currency: 源币种
            to_currency: 目标币种
            use_cache: 是否优先使用缓存

        Returns:
            ExchangeRate（float() 得到汇率）

        Raises:
            ValueError: 不是支持的币种代码
        """
        source_ccy = Currency.parse(from_currency)
        target_ccy = Currency.parse(to_currency)

        if source_ccy == target_ccy:
            return ExchangeRate(source_ccy, target_ccy, rate=1.0)

        key = RateCache.pair_key(source_ccy, target_ccy)

        if use_cache:
            entry = await self.cache.get_entry(source_ccy, target_ccy)
            if entry is not None:
                logger.debug(f"从缓存获取汇率: {key} = {entry.rate}")
                return ExchangeRate(
                    source_ccy,
                    target_ccy,
                    rate=entry.rate,
                    fetched_at=entry.fetched_at,
                    from_cache=True,
                )

        if self.coalescer is not None:
            return await self.coalescer.run(f"rate:{key}", lambda: self._fetch(source_ccy, target_ccy))
        return await self._fetch(source_ccy, target_ccy)

    async def _fetch(self, source_ccy: Currency, target_ccy: Currency) -> ExchangeRate:
        key = RateCache.pair_key(source_ccy, target_ccy)
        symbol = fx_symbol(source_ccy, target_ccy)
        logger.info(f"从 {self.source.name} 获取汇率: {key} ({symbol})")

        try:
            raw = await self.source.fetch_quote(symbol)
            if not math.isfinite(raw.price) or raw.price <= 0:
                raise MalformedResponse(f"汇率无效: {raw.price}", symbol=symbol)
        except QuoteError as e:
            logger.warning(f"获取汇率失败: {key} [{e.kind}] {e.message}")
            return ExchangeRate(source_ccy, target_ccy, rate=0.0, error=e)

        entry = RateCacheEntry(pair_key=key, rate=float(raw.price))
        await self.cache.put_entry(entry, self.ttl)

        logger.info(f"获取汇率成功: {source_ccy.value} → {target_ccy.value} = {entry.rate}")
        return ExchangeRate(
            source_ccy,
            target_ccy,
            rate=entry.rate,
            fetched_at=entry.fetched_at,
        )

    def __repr__(self):
        return f"ExchangeRateFetcher(source={self.source.name}, cache={self.cache!r})"
