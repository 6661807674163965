"""
数据层模块
提供行情获取、缓存、货币转换和 K 线聚合功能
"""

from .currency import Currency, map_provider_currency
from .errors import QuoteError, InvalidRequest, NetworkFailure, MalformedResponse, ProviderError
from .models import (
    Candle,
    CandleSeries,
    PriceCacheEntry,
    RateCacheEntry,
    PriceQuote,
    ExchangeRate,
    Conversion,
)
from .cache import CacheBackend, MemoryCache, PriceCache, RateCache, RequestCoalescer
from .providers import ChartRange, CandleInterval, QuoteSource, YahooChartClient
from .fetchers import StockPriceFetcher, ExchangeRateFetcher, HistoricalDataFetcher
from .converter import CurrencyConverter
from .aggregation import CandleAggregator, aggregate, prepare_chart, series_change

__all__ = [
    "Currency",
    "map_provider_currency",
    "QuoteError",
    "InvalidRequest",
    "NetworkFailure",
    "MalformedResponse",
    "ProviderError",
    "Candle",
    "CandleSeries",
    "PriceCacheEntry",
    "RateCacheEntry",
    "PriceQuote",
    "ExchangeRate",
    "Conversion",
    "CacheBackend",
    "MemoryCache",
    "PriceCache",
    "RateCache",
    "RequestCoalescer",
    "ChartRange",
    "CandleInterval",
    "QuoteSource",
    "YahooChartClient",
    "StockPriceFetcher",
    "ExchangeRateFetcher",
    "HistoricalDataFetcher",
    "CurrencyConverter",
    "CandleAggregator",
    "aggregate",
    "prepare_chart",
    "series_change",
]
