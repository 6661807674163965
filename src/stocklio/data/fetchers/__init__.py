"""
行情获取器

各 Fetcher 在边界处捕获 QuoteError，以带哨兵值的结果对象返回。
"""

from .prices import StockPriceFetcher
from .rates import ExchangeRateFetcher
from .history import HistoricalDataFetcher, build_candles

__all__ = [
    "StockPriceFetcher",
    "ExchangeRateFetcher",
    "HistoricalDataFetcher",
    "build_candles",
]
