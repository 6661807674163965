"""
Stocklio 行情数据层

模块:
- data: 行情获取、缓存、货币转换和 K 线聚合
- core: 持仓与群组估值
- utils: 配置与日志
"""

__version__ = "0.1.0"

from .data import Currency, Candle, CandleSeries, CandleInterval, ChartRange
from .market import MarketDataService

__all__ = [
    "Currency",
    "Candle",
    "CandleSeries",
    "CandleInterval",
    "ChartRange",
    "MarketDataService",
]
