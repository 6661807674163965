"""
Yahoo Finance chart 接口客户端
通过 /v8/finance/chart/{symbol} 获取即时报价与历史 K 线
"""

import asyncio
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from . import CandleInterval, ChartRange, QuoteSource, RawChart, RawQuote
from ..currency import Currency
from ..errors import InvalidRequest, MalformedResponse, NetworkFailure, ProviderError, QuoteError


# 代码允许的字符：字母数字及 . - = ^ _（如 2330.TW、USDTWD=X、^GSPC）
_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9.\-=^_]+$")


def fx_symbol(from_currency: Currency, to_currency: Currency) -> str:
    """外汇对代码，如 USD -> TWD 为 USDTWD=X"""
    return f"{from_currency.value}{to_currency.value}=X"


# =====================================================================
# 响应结构（只声明用到的字段，其余忽略）
# =====================================================================


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ChartMeta(_Model):
    regularMarketPrice: Optional[float] = None
    currency: Optional[str] = None


class QuoteIndicator(_Model):
    open: List[Optional[float]] = []
    high: List[Optional[float]] = []
    low: List[Optional[float]] = []
    close: List[Optional[float]] = []
    volume: Optional[List[Optional[float]]] = None


class Indicators(_Model):
    quote: List[QuoteIndicator] = []


class ChartResult(_Model):
    meta: ChartMeta
    timestamp: Optional[List[Optional[float]]] = None
    indicators: Optional[Indicators] = None
    error: Optional[Any] = None


class Chart(_Model):
    result: Optional[List[ChartResult]] = None
    error: Optional[Any] = None


class ChartEnvelope(_Model):
    chart: Chart


def _provider_error(symbol: str, error: Any) -> ProviderError:
    code = description = None
    if isinstance(error, dict):
        code = error.get("code")
        description = error.get("description")
    message = f"数据源返回错误: {code or ''} {description or error}".strip()
    return ProviderError(message, symbol=symbol, code=code, description=description)


def parse_envelope(symbol: str, payload: Any) -> ChartResult:
    """
    校验响应信封并返回 chart.result[0]

    Raises:
        ProviderError: chart.error 或 result[0].error 非空
        MalformedResponse: 缺少 chart / result / meta 或类型不符
    """
    try:
        envelope = ChartEnvelope.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"响应结构不符合预期: {e.error_count()} 处错误", symbol=symbol) from e

    chart = envelope.chart
    if chart.error is not None:
        raise _provider_error(symbol, chart.error)

    if not chart.result:
        raise MalformedResponse("响应中缺少 chart.result", symbol=symbol)

    result = chart.result[0]
    if result.error is not None:
        raise _provider_error(symbol, result.error)

    return result


def parse_quote(symbol: str, payload: Any) -> RawQuote:
    """解析即时报价：chart.result[0].meta.{regularMarketPrice, currency}"""
    result = parse_envelope(symbol, payload)
    price = result.meta.regularMarketPrice
    if price is None:
        raise MalformedResponse("响应中缺少 meta.regularMarketPrice", symbol=symbol)
    return RawQuote(symbol=symbol, price=price, currency_code=result.meta.currency)


def parse_chart(symbol: str, payload: Any) -> RawChart:
    """
    解析历史 K 线：chart.result[0].{timestamp[], indicators.quote[0]}

    没有 timestamp 视为该时间范围内无数据，返回空的 RawChart。
    """
    result = parse_envelope(symbol, payload)

    if not result.timestamp:
        return RawChart(symbol=symbol, currency_code=result.meta.currency)

    if result.indicators is None or not result.indicators.quote:
        raise MalformedResponse("响应中缺少 indicators.quote", symbol=symbol)

    block = result.indicators.quote[0]
    return RawChart(
        symbol=symbol,
        timestamps=[t for t in result.timestamp],
        opens=list(block.open),
        highs=list(block.high),
        lows=list(block.low),
        closes=list(block.close),
        volumes=None if block.volume is None else list(block.volume),
        currency_code=result.meta.currency,
    )


# =====================================================================
# 客户端
# =====================================================================


class YahooChartClient(QuoteSource):
    """
    Yahoo Finance chart 客户端

    - 即时报价超时 10 秒，历史数据超时 15 秒（可配置）
    - 不做自动重试，超时与其他失败一样以 QuoteError 抛出
    - 可注入外部 aiohttp.ClientSession（不负责关闭）
    """

    BASE_URL = "https://query1.finance.yahoo.com"
    CHART_PATH = "/v8/finance/chart/"
    DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; stocklio/0.1)"

    def __init__(
        self,
        base_url: Optional[str] = None,
        quote_timeout: float = 10.0,
        history_timeout: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
        user_agent: Optional[str] = None,
    ):
        """
        初始化客户端

        Args:
            base_url: 数据源地址（默认 query1.finance.yahoo.com）
            quote_timeout: 即时报价请求超时（秒）
            history_timeout: 历史数据请求超时（秒）
            session: 外部 HTTP 会话
            user_agent: 请求 User-Agent
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.quote_timeout = quote_timeout
        self.history_timeout = history_timeout
        self.user_agent = user_agent or self.DEFAULT_USER_AGENT
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_config(cls, provider_config) -> "YahooChartClient":
        """由 utils.config.ProviderConfig 创建"""
        return cls(
            base_url=provider_config.base_url,
            quote_timeout=provider_config.quote_timeout,
            history_timeout=provider_config.history_timeout,
            user_agent=provider_config.user_agent,
        )

    @property
    def name(self) -> str:
        return "yahoo"

    async def _get_session(self) -> aiohttp.ClientSession:
        """获取或创建 HTTP 会话"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers={"User-Agent": self.user_agent})
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """关闭自有的 HTTP 会话"""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    def build_url(self, symbol: str) -> str:
        """
        构造 chart 请求地址

        Raises:
            InvalidRequest: 代码为空或含非法字符
        """
        if not isinstance(symbol, str):
            raise InvalidRequest(f"代码必须为字符串: {symbol!r}", symbol=str(symbol))

        clean = symbol.strip().upper()
        if not clean or not _SYMBOL_PATTERN.match(clean):
            raise InvalidRequest(f"无效的代码: {symbol!r}", symbol=symbol)

        return f"{self.base_url}{self.CHART_PATH}{quote(clean, safe='.-=^_')}"

    async def _request_json(
        self,
        symbol: str,
        url: str,
        timeout: float,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        发送 GET 请求并解码 JSON

        Raises:
            InvalidRequest / NetworkFailure / MalformedResponse
        """
        session = await self._get_session()
        try:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    raise NetworkFailure(
                        f"HTTP 状态码 {response.status}",
                        symbol=symbol,
                        status=response.status,
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponse(f"JSON 解析失败: {e}", symbol=symbol) from e

        except QuoteError:
            raise
        except aiohttp.InvalidURL as e:
            raise InvalidRequest(f"无效的请求地址: {url}", symbol=symbol) from e
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"请求超时（{timeout:g} 秒）", symbol=symbol) from e
        except aiohttp.ClientError as e:
            raise NetworkFailure(f"网络请求错误: {e}", symbol=symbol) from e

    async def fetch_quote(self, symbol: str) -> RawQuote:
        """获取即时报价（股票或外汇对）"""
        url = self.build_url(symbol)
        clean = symbol.strip().upper()
        logger.debug(f"请求报价: {clean}")
        payload = await self._request_json(clean, url, self.quote_timeout)
        return parse_quote(clean, payload)

    async def fetch_chart(
        self,
        symbol: str,
        range_: ChartRange = ChartRange.YEAR_1,
        interval: CandleInterval = CandleInterval.DAILY,
    ) -> RawChart:
        """获取历史 K 线"""
        if interval is CandleInterval.AUTO:
            raise InvalidRequest("历史数据请求不支持 auto 间隔", symbol=symbol)

        url = self.build_url(symbol)
        clean = symbol.strip().upper()
        params = {"range": range_.value, "interval": interval.value}
        logger.debug(f"请求历史数据: {clean} range={range_.value} interval={interval.value}")
        payload = await self._request_json(clean, url, self.history_timeout, params=params)
        return parse_chart(clean, payload)

    def __repr__(self):
        return f"YahooChartClient(base_url={self.base_url!r})"
