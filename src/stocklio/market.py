"""
行情数据服务
组装缓存、数据源、获取器与转换器，对外提供统一入口
"""

from datetime import timedelta
from typing import Any, Dict, Optional, Union

from loguru import logger

from .core.holdings import GroupValuation, HoldingGroup
from .data.aggregation import CandleAggregator, IntervalLike
from .data.cache import PriceCache, RateCache, RequestCoalescer
from .data.converter import CurrencyConverter
from .data.currency import Currency
from .data.fetchers import ExchangeRateFetcher, HistoricalDataFetcher, StockPriceFetcher
from .data.models import CandleSeries, Conversion, ExchangeRate, PriceQuote
from .data.providers import CandleInterval, ChartRange, QuoteSource, YahooChartClient
from .utils.config import Config, get_config
from .utils.logger import setup_logger_from_config


def _ttl(seconds: Optional[float]) -> Optional[timedelta]:
    return timedelta(seconds=seconds) if seconds else None


class MarketDataService:
    """
    行情数据服务

    进程内构造一次，缓存随实例存在；测试中每次新建实例即可得到干净的缓存。

    对外接口：
    - convert(amount, from, to)
    - current_price(symbol)
    - historical_series(symbol)
    - aggregate(series, interval)
    - valuate(group)
    """

    def __init__(
        self,
        source: QuoteSource,
        price_cache: Optional[PriceCache] = None,
        rate_cache: Optional[RateCache] = None,
        coalesce_requests: bool = True,
        default_range: Union[ChartRange, str] = ChartRange.YEAR_1,
        default_interval: Union[CandleInterval, str] = CandleInterval.DAILY,
        aggregator: Optional[CandleAggregator] = None,
        display_currency: Union[Currency, str] = Currency.TWD,
    ):
        self.source = source
        self.price_cache = price_cache if price_cache is not None else PriceCache()
        self.rate_cache = rate_cache if rate_cache is not None else RateCache()
        self.coalescer = RequestCoalescer("market") if coalesce_requests else None

        self.price_fetcher = StockPriceFetcher(source, self.price_cache, self.coalescer)
        self.rate_fetcher = ExchangeRateFetcher(source, self.rate_cache, self.coalescer)
        self.history_fetcher = HistoricalDataFetcher(source)
        self.converter = CurrencyConverter(self.rate_fetcher)
        self.aggregator = aggregator or CandleAggregator()

        self.default_range = ChartRange(default_range)
        self.default_interval = CandleInterval(default_interval)
        self.display_currency = Currency.parse(display_currency)

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        source: Optional[QuoteSource] = None,
        configure_logging: bool = False,
    ) -> "MarketDataService":
        """
        由配置创建服务

        Args:
            config: 配置（默认全局配置）
            source: 数据源（默认按配置创建 YahooChartClient）
            configure_logging: 是否按配置初始化日志
        """
        config = config or get_config()
        if configure_logging:
            setup_logger_from_config(config.logging, debug=config.debug)

        service = cls(
            source=source or YahooChartClient.from_config(config.provider),
            price_cache=PriceCache(default_ttl=_ttl(config.cache.price_ttl)),
            rate_cache=RateCache(default_ttl=_ttl(config.cache.rate_ttl)),
            coalesce_requests=config.cache.coalesce_requests,
            default_range=config.chart.default_range,
            default_interval=config.chart.default_interval,
            display_currency=config.currency,
        )
        logger.debug(f"行情数据服务初始化完成: {service!r}")
        return service

    async def convert(
        self,
        amount: float,
        from_currency: Union[Currency, str],
        to_currency: Union[Currency, str, None] = None,
        use_cache: bool = True,
    ) -> Conversion:
        """货币转换，未指定目标币种时使用显示币种"""
        return await self.converter.convert(amount, from_currency, to_currency or self.display_currency, use_cache)

    async def rate(
        self,
        from_currency: Union[Currency, str],
        to_currency: Union[Currency, str],
        use_cache: bool = True,
    ) -> ExchangeRate:
        """汇率"""
        return await self.rate_fetcher.rate(from_currency, to_currency, use_cache)

    async def current_price(self, symbol: str, use_cache: bool = True) -> PriceQuote:
        """当前股价"""
        return await self.price_fetcher.current_price(symbol, use_cache)

    async def historical_series(
        self,
        symbol: str,
        range_: Union[ChartRange, str, None] = None,
        interval: Union[CandleInterval, str, None] = None,
    ) -> CandleSeries:
        """历史 K 线"""
        return await self.history_fetcher.historical_series(
            symbol,
            range_ or self.default_range,
            interval or self.default_interval,
        )

    async def valuate(
        self,
        group: HoldingGroup,
        currency: Union[Currency, str, None] = None,
        refresh_prices: bool = True,
    ) -> GroupValuation:
        """
        持仓群组估值

        Args:
            group: 持仓群组
            currency: 目标币种（默认显示币种）
            refresh_prices: 是否先刷新股价
        """
        return await group.valuate(
            self.converter,
            currency or self.display_currency,
            price_fetcher=self.price_fetcher if refresh_prices else None,
        )

    def aggregate(self, series: CandleSeries, interval: IntervalLike) -> CandleSeries:
        """K 线聚合"""
        return self.aggregator.aggregate(series, interval)

    async def clear_caches(self) -> int:
        """清空股价与汇率缓存，返回清除条目数"""
        count = await self.price_cache.clear() + await self.rate_cache.clear()
        logger.info(f"已清空行情缓存 {count} 条")
        return count

    async def cache_stats(self) -> Dict[str, Any]:
        return {
            "price": await self.price_cache.stats(),
            "rate": await self.rate_cache.stats(),
        }

    async def close(self) -> None:
        await self.source.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self):
        return f"MarketDataService(source={self.source.name}, coalesce={self.coalescer is not None})"
