"""
测试全局配置与公共夹具

所有测试均不访问网络：数据源由 FakeSource 替代，HTTP 会话由 FakeSession 替代。
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from stocklio.data.errors import ProviderError
from stocklio.data.providers import CandleInterval, ChartRange, QuoteSource, RawChart, RawQuote
from stocklio.utils.config import reset_config


CONFIG_ENV_VARS = [
    "STOCKLIO_BASE_URL",
    "STOCKLIO_PRICE_TTL",
    "STOCKLIO_RATE_TTL",
    "STOCKLIO_DISPLAY_CURRENCY",
    "LOG_LEVEL",
    "LOG_FILE",
    "DEBUG",
]


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """每个测试使用干净的全局配置与环境变量"""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


def run_async(coro):
    """在同步上下文中执行协程"""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# 响应构造
# ---------------------------------------------------------------------------


def quote_payload(price: Optional[float] = 100.0, currency: Optional[str] = "USD") -> Dict[str, Any]:
    """chart 接口的即时报价响应"""
    meta: Dict[str, Any] = {"symbol": "TEST"}
    if price is not None:
        meta["regularMarketPrice"] = price
    if currency is not None:
        meta["currency"] = currency
    return {"chart": {"result": [{"meta": meta}], "error": None}}


def chart_payload(
    timestamps: List[Any],
    opens: List[Any],
    highs: List[Any],
    lows: List[Any],
    closes: List[Any],
    volumes: Optional[List[Any]] = None,
    currency: str = "USD",
) -> Dict[str, Any]:
    """chart 接口的历史数据响应"""
    quote: Dict[str, Any] = {"open": opens, "high": highs, "low": lows, "close": closes}
    if volumes is not None:
        quote["volume"] = volumes
    return {
        "chart": {
            "result": [{
                "meta": {"currency": currency, "regularMarketPrice": closes[-1] if closes else None},
                "timestamp": timestamps,
                "indicators": {"quote": [quote]},
            }],
            "error": None,
        }
    }


# ---------------------------------------------------------------------------
# 假数据源
# ---------------------------------------------------------------------------


class FakeSource(QuoteSource):
    """
    模拟行情数据源

    记录每次调用，用于验证缓存命中时不发起请求。
    quotes / charts 的值可以是结果对象，也可以是要抛出的 QuoteError。
    """

    def __init__(self, quotes=None, charts=None, latency: float = 0.0):
        self.quotes: Dict[str, Any] = dict(quotes or {})
        self.charts: Dict[str, Any] = dict(charts or {})
        self.latency = latency
        self.quote_calls: List[str] = []
        self.chart_calls: List[tuple] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "fake"

    async def fetch_quote(self, symbol: str) -> RawQuote:
        self.quote_calls.append(symbol)
        if self.latency:
            await asyncio.sleep(self.latency)
        value = self.quotes.get(symbol)
        if value is None:
            raise ProviderError("No data found", symbol=symbol, code="Not Found")
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_chart(
        self,
        symbol: str,
        range_: ChartRange = ChartRange.YEAR_1,
        interval: CandleInterval = CandleInterval.DAILY,
    ) -> RawChart:
        self.chart_calls.append((symbol, range_, interval))
        value = self.charts.get(symbol)
        if value is None:
            raise ProviderError("No data found", symbol=symbol, code="Not Found")
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# 假 HTTP 会话
# ---------------------------------------------------------------------------


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status = status
        self._payload = payload
        self._text = text

    async def json(self, content_type=None):
        if self._text is not None:
            return json.loads(self._text)
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeSession:
    """记录请求的 aiohttp.ClientSession 替身"""

    def __init__(self, response: Optional[FakeResponse] = None, exc: Optional[BaseException] = None):
        self.response = response or FakeResponse(payload=quote_payload())
        self.exc = exc
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        self.requests.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_source():
    return FakeSource(
        quotes={
            "AAPL": RawQuote("AAPL", 190.5, "USD"),
            "2330.TW": RawQuote("2330.TW", 1025.0, "TWD"),
            "USDTWD=X": RawQuote("USDTWD=X", 32.0, "TWD"),
            "TWDUSD=X": RawQuote("TWDUSD=X", 0.03125, "USD"),
            "EURUSD=X": RawQuote("EURUSD=X", 1.1, "USD"),
        }
    )
