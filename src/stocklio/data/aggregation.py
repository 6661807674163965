"""
K 线聚合
将 K 线序列合并为更粗的时间粒度，供图表展示
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple, TypeVar, Union

from loguru import logger

from .models import Candle, CandleSeries
from .providers import DAY_SECONDS, CandleInterval


SeriesLike = TypeVar("SeriesLike", CandleSeries, List[Candle])
IntervalLike = Union[int, float, timedelta, CandleInterval]

ANCHOR_FIRST = "first"
ANCHOR_CALENDAR = "calendar"

# 图表时间窗口（天）
CHART_WINDOWS = {
    "1d": 1,
    "1w": 7,
    "1mo": 30,
    "3mo": 90,
    "6mo": 180,
    "1y": 365,
}


def interval_seconds(interval: IntervalLike) -> float:
    """
    统一转换为秒数

    Raises:
        ValueError: 间隔为负数
    """
    if isinstance(interval, CandleInterval):
        seconds = float(interval.seconds)
    elif isinstance(interval, timedelta):
        seconds = interval.total_seconds()
    else:
        seconds = float(interval)

    if seconds < 0:
        raise ValueError(f"聚合间隔不能为负数: {interval}")
    return seconds


def merge_bucket(bucket: Sequence[Candle]) -> Candle:
    """
    合并一个时间桶内的 K 线

    open 取第一根，close 取最后一根，high/low 取极值，
    成交量求和（桶内均无成交量时为 None）。
    """
    ordered = sorted(bucket, key=lambda x: x.timestamp)
    volumes = [c.volume for c in ordered if c.volume is not None]
    return Candle(
        timestamp=ordered[0].timestamp,
        open=ordered[0].open,
        high=max(c.high for c in ordered),
        low=min(c.low for c in ordered),
        close=ordered[-1].close,
        volume=sum(volumes) if volumes else None,
    )


def _aggregate_first(candles: List[Candle], seconds: float) -> List[Candle]:
    """桶起点锚定在开启该桶的 K 线时间戳（非日历对齐）"""
    aggregated: List[Candle] = []
    bucket: List[Candle] = []
    bucket_start: Optional[datetime] = None

    for candle in sorted(candles, key=lambda x: x.timestamp):
        if bucket_start is not None and (candle.timestamp - bucket_start).total_seconds() < seconds:
            bucket.append(candle)
            continue

        if bucket:
            aggregated.append(merge_bucket(bucket))
        bucket = [candle]
        bucket_start = candle.timestamp

    if bucket:
        aggregated.append(merge_bucket(bucket))

    return aggregated


def _aggregate_calendar(candles: List[Candle], seconds: float) -> List[Candle]:
    """桶边界对齐到 UTC 纪元起的整数倍间隔（整点、午夜等）"""
    if not candles:
        return []

    df = CandleSeries(symbol="", candles=candles).to_dataframe()
    resampled = df.resample(
        f"{int(seconds)}s", origin="epoch", label="left", closed="left"
    ).agg({
        "open": "first",
        "high": "max",
        "low": "min",
        "close": "last",
        "volume": lambda s: s.sum(min_count=1),
    })
    resampled = resampled.dropna(subset=["open", "high", "low", "close"])
    return CandleSeries.from_dataframe("", resampled).candles


def aggregate(
    series: SeriesLike,
    interval: IntervalLike,
    anchor: str = ANCHOR_FIRST,
) -> SeriesLike:
    """
    按间隔聚合 K 线

    间隔为 0 或恰好一天时原样返回输入（日 K 即原始粒度）。

    Args:
        series: CandleSeries 或 Candle 列表
        interval: 间隔（秒 / timedelta / CandleInterval）
        anchor: "first" 锚定桶内第一根 K 线；"calendar" 对齐日历边界

    Returns:
        与输入同类型的聚合结果
    """
    seconds = interval_seconds(interval)
    if seconds == 0 or seconds == DAY_SECONDS:
        return series

    candles = series.candles if isinstance(series, CandleSeries) else list(series)

    if anchor == ANCHOR_FIRST:
        aggregated = _aggregate_first(candles, seconds)
    elif anchor == ANCHOR_CALENDAR:
        aggregated = _aggregate_calendar(candles, seconds)
    else:
        raise ValueError(f"未知的锚定方式: {anchor!r}")

    logger.debug(f"K 线聚合: {len(candles)} → {len(aggregated)} (间隔 {seconds:g} 秒, {anchor})")

    if isinstance(series, CandleSeries):
        return series.with_candles(aggregated, aggregated_seconds=seconds, anchor=anchor)
    return aggregated


class CandleAggregator:
    """
    K 线聚合器

    持有锚定方式，便于在图表层以对象形式注入。
    """

    def __init__(self, anchor: str = ANCHOR_FIRST):
        if anchor not in (ANCHOR_FIRST, ANCHOR_CALENDAR):
            raise ValueError(f"未知的锚定方式: {anchor!r}")
        self.anchor = anchor

    def aggregate(self, series: SeriesLike, interval: IntervalLike) -> SeriesLike:
        return aggregate(series, interval, anchor=self.anchor)

    __call__ = aggregate


# =====================================================================
# 图表辅助
# =====================================================================


def window_days(window: Union[int, str]) -> int:
    """时间窗口转换为天数，如 "3mo" -> 90"""
    if isinstance(window, str):
        if window not in CHART_WINDOWS:
            raise ValueError(f"未知的时间窗口: {window!r}，可选值: {', '.join(CHART_WINDOWS)}")
        return CHART_WINDOWS[window]
    return int(window)


def auto_interval(days: Union[int, str]) -> int:
    """
    按时间窗口自动选择 K 线间隔（秒）

    1 天 → 15 分钟，1 周 → 1 小时，半年以内 → 1 天，更长 → 30 天
    """
    days = window_days(days)
    if days <= 1:
        return CandleInterval.MINUTE_15.seconds
    if days <= 7:
        return CandleInterval.HOUR_1.seconds
    if days <= 180:
        return DAY_SECONDS
    return CandleInterval.MONTHLY.seconds


def filter_by_range(
    series: CandleSeries,
    days: Union[int, str],
    now: Optional[datetime] = None,
) -> CandleSeries:
    """保留 [now - days, now] 内的 K 线"""
    end = now or datetime.now(timezone.utc)
    start = end - timedelta(days=window_days(days))
    return series.slice(start, end)


def prepare_chart(
    series: CandleSeries,
    days: Union[int, str],
    interval: Union[CandleInterval, IntervalLike] = CandleInterval.AUTO,
    now: Optional[datetime] = None,
    anchor: str = ANCHOR_FIRST,
) -> CandleSeries:
    """
    图表数据：先按时间窗口过滤，再按间隔聚合

    Args:
        series: 原始日 K 序列
        days: 时间窗口（天数或 "1mo" 等）
        interval: K 线间隔，AUTO 时按窗口自动选择
        now: 窗口结束时间（默认当前 UTC 时间）
        anchor: 聚合锚定方式

    Returns:
        过滤并聚合后的 CandleSeries
    """
    if interval is CandleInterval.AUTO:
        seconds = auto_interval(days)
    else:
        seconds = interval_seconds(interval)

    filtered = filter_by_range(series, days, now)
    return aggregate(filtered, seconds, anchor=anchor)


def series_change(series: Union[CandleSeries, Sequence[Candle]]) -> Tuple[float, float]:
    """
    区间涨跌

    Returns:
        (最后收盘 - 第一根开盘, 涨跌幅 %)；序列为空时为 (0.0, 0.0)
    """
    candles = series.candles if isinstance(series, CandleSeries) else list(series)
    if not candles:
        return 0.0, 0.0

    first, last = candles[0], candles[-1]
    change = last.close - first.open
    percent = change / first.open * 100 if first.open > 0 else 0.0
    return change, percent
