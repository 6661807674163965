"""
数据模型模块
定义标准化的行情数据结构
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Iterator, Tuple
import pandas as pd
import numpy as np

from .currency import Currency
from .errors import QuoteError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch(seconds: float) -> datetime:
    """Unix 秒 -> UTC datetime"""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def is_valid_price(value: Any) -> bool:
    """价格有效：数值、有限且大于 0"""
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


@dataclass
class Candle:
    """
    K线数据结构

    表示单个时间桶的开高低收及可选成交量。
    """
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None

    @property
    def is_rising(self) -> bool:
        """是否上涨（收盘 >= 开盘）"""
        return self.close >= self.open

    @property
    def change_percent(self) -> float:
        """涨跌幅（%）"""
        if self.open <= 0:
            return 0.0
        return (self.close - self.open) / self.open * 100

    @property
    def epoch(self) -> float:
        """Unix 秒"""
        return self.timestamp.timestamp()

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candle":
        """从字典创建"""
        data = data.copy()
        if isinstance(data["timestamp"], str):
            data["timestamp"] = datetime.fromisoformat(data["timestamp"])
        elif isinstance(data["timestamp"], (int, float)):
            data["timestamp"] = from_epoch(data["timestamp"])
        return cls(**data)


@dataclass
class CandleSeries:
    """
    K线序列

    按时间严格递增排列。请求失败时为空序列，error 记录失败原因。
    """
    symbol: str
    candles: List[Candle] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[QuoteError] = None

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.candles)

    def __getitem__(self, index) -> Candle:
        return self.candles[index]

    @property
    def ok(self) -> bool:
        """请求是否成功（空序列也可能是成功的“无数据”）"""
        return self.error is None

    @property
    def is_empty(self) -> bool:
        return len(self.candles) == 0

    @property
    def first(self) -> Optional[Candle]:
        return self.candles[0] if self.candles else None

    @property
    def last(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def start(self) -> Optional[datetime]:
        """起始时间"""
        return self.candles[0].timestamp if self.candles else None

    @property
    def end(self) -> Optional[datetime]:
        """结束时间"""
        return self.candles[-1].timestamp if self.candles else None

    def with_candles(self, candles: List[Candle], **metadata) -> "CandleSeries":
        """以新的 K 线列表构造同代码序列，保留元数据"""
        merged = dict(self.metadata)
        merged.update(metadata)
        return CandleSeries(symbol=self.symbol, candles=candles, metadata=merged, error=self.error)

    def slice(self, start: datetime, end: datetime) -> "CandleSeries":
        """
        获取时间范围内的数据（闭区间）

        Args:
            start: 开始时间
            end: 结束时间

        Returns:
            切片后的 CandleSeries
        """
        return self.with_candles([c for c in self.candles if start <= c.timestamp <= end])

    def to_dataframe(self) -> pd.DataFrame:
        """
        转换为 Pandas DataFrame

        Returns:
            以 timestamp 为索引的 DataFrame，缺失成交量为 NaN
        """
        columns = ["open", "high", "low", "close", "volume"]
        if self.is_empty:
            return pd.DataFrame(columns=columns, index=pd.DatetimeIndex([], tz="UTC", name="timestamp"))

        records = [
            {
                "timestamp": c.timestamp,
                "open": c.open,
                "high": c.high,
                "low": c.low,
                "close": c.close,
                "volume": np.nan if c.volume is None else c.volume,
            }
            for c in self.candles
        ]

        df = pd.DataFrame(records)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        df.set_index("timestamp", inplace=True)
        df.sort_index(inplace=True, kind="stable")
        return df[columns]

    @classmethod
    def from_dataframe(cls, symbol: str, df: pd.DataFrame, **metadata) -> "CandleSeries":
        """
        从 DataFrame 创建

        Args:
            symbol: 资产代码
            df: 以时间为索引、包含 open/high/low/close[/volume] 列的 DataFrame

        Returns:
            CandleSeries 对象
        """
        candles = []
        for timestamp, row in df.iterrows():
            ts = pd.Timestamp(timestamp)
            if ts.tzinfo is None:
                ts = ts.tz_localize("UTC")
            volume = row.get("volume", np.nan)
            candles.append(Candle(
                timestamp=ts.to_pydatetime(),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=None if pd.isna(volume) else float(volume),
            ))
        return cls(symbol=symbol, candles=candles, metadata=dict(metadata))

    def to_numpy(self) -> Dict[str, np.ndarray]:
        """
        转换为 NumPy 数组

        Returns:
            包含各列数据的字典，缺失成交量为 NaN
        """
        return {
            "timestamp": np.array([c.epoch for c in self.candles], dtype=np.float64),
            "open": np.array([c.open for c in self.candles], dtype=np.float64),
            "high": np.array([c.high for c in self.candles], dtype=np.float64),
            "low": np.array([c.low for c in self.candles], dtype=np.float64),
            "close": np.array([c.close for c in self.candles], dtype=np.float64),
            "volume": np.array(
                [np.nan if c.volume is None else c.volume for c in self.candles],
                dtype=np.float64,
            ),
        }


# =====================================================================
# 缓存条目
# =====================================================================


@dataclass(frozen=True)
class PriceCacheEntry:
    """股价缓存条目，symbol 为规范化后的大写代码"""
    symbol: str
    price: float
    currency: Currency
    fetched_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class RateCacheEntry:
    """
    汇率缓存条目

    rate 表示 1 单位 FROM 兑换 rate 单位 TO，反向汇率不会自动推导。
    """
    pair_key: str
    rate: float
    fetched_at: datetime = field(default_factory=utcnow)


# =====================================================================
# 请求结果
# =====================================================================


@dataclass
class PriceQuote:
    """
    股价查询结果

    失败时 price=0.0、currency=USD，并在 error 中记录原因。
    可直接解包: price, currency = quote
    """
    symbol: str
    price: float
    currency: Currency
    fetched_at: Optional[datetime] = None
    from_cache: bool = False
    error: Optional[QuoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator:
        return iter((self.price, self.currency))

    @classmethod
    def failed(cls, symbol: str, error: QuoteError) -> "PriceQuote":
        return cls(symbol=symbol, price=0.0, currency=Currency.default(), error=error)

    @classmethod
    def from_entry(cls, entry: PriceCacheEntry, from_cache: bool) -> "PriceQuote":
        return cls(
            symbol=entry.symbol,
            price=entry.price,
            currency=entry.currency,
            fetched_at=entry.fetched_at,
            from_cache=from_cache,
        )


@dataclass
class ExchangeRate:
    """
    汇率查询结果

    失败时 rate=0.0（哨兵值），并在 error 中记录原因。
    """
    from_currency: Currency
    to_currency: Currency
    rate: float
    fetched_at: Optional[datetime] = None
    from_cache: bool = False
    error: Optional[QuoteError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def pair(self) -> Tuple[Currency, Currency]:
        return self.from_currency, self.to_currency

    def __float__(self) -> float:
        return float(self.rate)


@dataclass
class Conversion:
    """
    货币转换结果

    汇率获取失败时 amount 为未转换的原金额，stale=True，
    调用方需自行决定如何展示（例如“未换算”标记）。
    """
    amount: float
    original_amount: float
    from_currency: Currency
    to_currency: Currency
    rate: float
    stale: bool = False
    error: Optional[QuoteError] = None

    @property
    def ok(self) -> bool:
        return not self.stale

    @property
    def currency(self) -> Currency:
        """amount 实际所属币种（失败时仍为原币种）"""
        return self.from_currency if self.stale else self.to_currency

    def __float__(self) -> float:
        return float(self.amount)
