"""
历史 K 线获取
请求、校验并排序历史数据
"""

import math
from datetime import datetime
from typing import List, Optional, Tuple, Union

from loguru import logger

from ..errors import InvalidRequest, QuoteError
from ..models import Candle, CandleSeries, from_epoch, is_valid_price
from ..providers import CandleInterval, ChartRange, QuoteSource, RawChart


def _at(values: Optional[list], index: int):
    if values is None or index >= len(values):
        return None
    return values[index]


def _volume(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    number = float(value)
    if not math.isfinite(number) or number < 0:
        return None
    return number


def _timestamp(value) -> Optional[datetime]:
    """Unix 秒 -> UTC datetime；缺失、非有限或超出平台范围时返回 None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = float(value)
        if not math.isfinite(seconds):
            return None
        return from_epoch(seconds)
    except (TypeError, OverflowError, ValueError, OSError):
        return None


def build_candles(raw: RawChart) -> Tuple[List[Candle], int]:
    """
    由平行数组构造 K 线

    - 时间戳缺失、非有限或超出平台范围，或 open/high/low/close 任一缺失、非有限或 <= 0 的记录被丢弃
    - high 至少为 max(open, close)，low 至多为 min(open, close)
    - 按时间稳定排序；时间戳重复时保留最后一条

    Returns:
        (K 线列表, 丢弃的记录数)
    """
    candles: List[Candle] = []
    dropped = 0

    for i, ts in enumerate(raw.timestamps):
        o, h, l, c = (_at(raw.opens, i), _at(raw.highs, i), _at(raw.lows, i), _at(raw.closes, i))
        timestamp = _timestamp(ts)
        if timestamp is None or not all(is_valid_price(v) for v in (o, h, l, c)):
            dropped += 1
            continue

        o, h, l, c = float(o), float(h), float(l), float(c)
        candles.append(Candle(
            timestamp=timestamp,
            open=o,
            high=max(h, o, c),
            low=min(l, o, c),
            close=c,
            volume=_volume(_at(raw.volumes, i)),
        ))

    candles.sort(key=lambda x: x.timestamp)

    unique: List[Candle] = []
    for candle in candles:
        if unique and unique[-1].timestamp == candle.timestamp:
            unique[-1] = candle
            dropped += 1
        else:
            unique.append(candle)

    return unique, dropped


class HistoricalDataFetcher:
    """
    历史 K 线获取器

    请求失败或无有效数据时返回空的 CandleSeries（失败时 error 非空），不抛出 QuoteError。
    """

    def __init__(self, source: QuoteSource):
        self.source = source

    async def historical_series(
        self,
        symbol: str,
        range_: Union[ChartRange, str] = ChartRange.YEAR_1,
        interval: Union[CandleInterval, str] = CandleInterval.DAILY,
    ) -> CandleSeries:
        """
        获取历史 K 线序列

        Args:
            symbol: 资产代码
            range_: 时间范围（默认 1y）
            interval: 数据间隔（默认 1d）

        Returns:
            按时间严格递增的 CandleSeries
        """
        clean = symbol.strip().upper() if isinstance(symbol, str) else str(symbol)

        try:
            range_ = ChartRange(range_)
            interval = CandleInterval(interval)
        except ValueError as e:
            error = InvalidRequest(f"无效的范围或间隔: {e}", symbol=clean)
            logger.warning(f"获取历史数据失败: {clean} [{error.kind}] {error.message}")
            return CandleSeries(symbol=clean, error=error)

        metadata = {"source": self.source.name, "range": range_.value, "interval": interval.value}

        logger.info(f"从 {self.source.name} 获取历史数据: {clean} range={range_.value} interval={interval.value}")
        try:
            raw = await self.source.fetch_chart(clean, range_, interval)
        except QuoteError as e:
            logger.warning(f"获取历史数据失败: {clean} [{e.kind}] {e.message}")
            return CandleSeries(symbol=clean, metadata=metadata, error=e)

        candles, dropped = build_candles(raw)
        if dropped:
            logger.debug(f"{clean} 丢弃 {dropped} 条无效 K 线")

        metadata["currency"] = raw.currency_code
        logger.info(f"获取历史数据成功: {clean} {len(candles)} 条")
        return CandleSeries(symbol=clean, candles=candles, metadata=metadata)

    def __repr__(self):
        return f"HistoricalDataFetcher(source={self.source.name})"
