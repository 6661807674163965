"""
数据提供者基类
定义行情获取的统一接口
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


DAY_SECONDS = 86400


class ChartRange(Enum):
    """历史数据时间范围"""
    DAY_1 = "1d"
    DAY_5 = "5d"
    MONTH_1 = "1mo"
    MONTH_3 = "3mo"
    MONTH_6 = "6mo"
    YEAR_1 = "1y"
    YEAR_2 = "2y"
    YEAR_5 = "5y"
    MAX = "max"


class CandleInterval(Enum):
    """K 线间隔，AUTO 表示按时间范围自动选择"""
    AUTO = "auto"
    MINUTE_1 = "1m"
    MINUTE_5 = "5m"
    MINUTE_15 = "15m"
    HOUR_1 = "1h"
    HOUR_4 = "4h"
    DAILY = "1d"
    WEEKLY = "1wk"
    MONTHLY = "1mo"

    @property
    def seconds(self) -> int:
        """间隔秒数（AUTO 为 0，月按 30 天计）"""
        return _INTERVAL_SECONDS[self]


_INTERVAL_SECONDS = {
    CandleInterval.AUTO: 0,
    CandleInterval.MINUTE_1: 60,
    CandleInterval.MINUTE_5: 300,
    CandleInterval.MINUTE_15: 900,
    CandleInterval.HOUR_1: 3600,
    CandleInterval.HOUR_4: 14400,
    CandleInterval.DAILY: DAY_SECONDS,
    CandleInterval.WEEKLY: 7 * DAY_SECONDS,
    CandleInterval.MONTHLY: 30 * DAY_SECONDS,
}


@dataclass
class RawQuote:
    """数据源返回的报价（币种尚未映射）"""
    symbol: str
    price: float
    currency_code: Optional[str]


@dataclass
class RawChart:
    """
    数据源返回的历史数据

    各数组平行对齐，元素可能为 None（数据源缺值）。
    """
    symbol: str
    timestamps: List[float] = field(default_factory=list)
    opens: List[Optional[float]] = field(default_factory=list)
    highs: List[Optional[float]] = field(default_factory=list)
    lows: List[Optional[float]] = field(default_factory=list)
    closes: List[Optional[float]] = field(default_factory=list)
    volumes: Optional[List[Optional[float]]] = None
    currency_code: Optional[str] = None


class QuoteSource(ABC):
    """
    行情数据源抽象基类

    所有方法在失败时抛出 data.errors.QuoteError 的子类，
    由上层 Fetcher 负责捕获。
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """数据源名称"""

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> RawQuote:
        """
        获取即时报价（股票或外汇对）

        Args:
            symbol: 资产代码

        Returns:
            RawQuote
        """

    @abstractmethod
    async def fetch_chart(
        self,
        symbol: str,
        range_: ChartRange = ChartRange.YEAR_1,
        interval: CandleInterval = CandleInterval.DAILY,
    ) -> RawChart:
        """
        获取历史 K 线

        Args:
            symbol: 资产代码
            range_: 时间范围
            interval: 数据间隔（不支持 AUTO）

        Returns:
            RawChart
        """

    async def close(self) -> None:
        """释放网络资源"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self):
        return f"QuoteSource({self.name})"


from .yahoo import YahooChartClient, fx_symbol  # noqa: E402

__all__ = [
    "DAY_SECONDS",
    "ChartRange",
    "CandleInterval",
    "RawQuote",
    "RawChart",
    "QuoteSource",
    "YahooChartClient",
    "fx_symbol",
]
