"""
行情获取器测试

StockPriceFetcher / ExchangeRateFetcher / HistoricalDataFetcher
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FakeSource, run_async
from stocklio.data.cache import PriceCache, RateCache, RequestCoalescer
from stocklio.data.currency import Currency
from stocklio.data.errors import InvalidRequest, MalformedResponse, NetworkFailure, ProviderError
from stocklio.data.fetchers import (
    ExchangeRateFetcher,
    HistoricalDataFetcher,
    StockPriceFetcher,
    build_candles,
)
from stocklio.data.models import PriceCacheEntry, RateCacheEntry
from stocklio.data.providers import CandleInterval, ChartRange, RawChart, RawQuote


class TestStockPriceFetcher:

    def test_fetch_and_unpack(self, fake_source):
        fetcher = StockPriceFetcher(fake_source)
        price, currency = run_async(fetcher.current_price("2330.TW"))
        assert price == 1025.0
        assert currency == Currency.TWD

    def test_cache_hit_sends_no_request(self, fake_source):
        """缓存命中时不访问数据源"""
        cache = PriceCache()
        fetcher = StockPriceFetcher(fake_source, cache=cache)

        async def _test():
            await cache.put_entry(PriceCacheEntry("AAPL", 188.0, Currency.USD))
            return await fetcher.current_price("aapl")

        quote = run_async(_test())
        assert quote.price == 188.0
        assert quote.from_cache is True
        assert fake_source.quote_calls == []

    def test_second_call_served_from_cache(self, fake_source):
        fetcher = StockPriceFetcher(fake_source)

        async def _test():
            first = await fetcher.current_price("AAPL")
            second = await fetcher.current_price(" aapl ")
            return first, second

        first, second = run_async(_test())
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.price == first.price
        assert fake_source.quote_calls == ["AAPL"]

    def test_bypass_cache(self, fake_source):
        fetcher = StockPriceFetcher(fake_source)

        async def _test():
            await fetcher.current_price("AAPL")
            fake_source.quotes["AAPL"] = RawQuote("AAPL", 200.0, "USD")
            return await fetcher.current_price("AAPL", use_cache=False)

        quote = run_async(_test())
        assert quote.price == 200.0
        assert len(fake_source.quote_calls) == 2
        # 强制刷新也会写回缓存
        entry = run_async(fetcher.cache.get_entry("AAPL"))
        assert entry.price == 200.0

    def test_provider_error_returns_sentinel(self, fake_source):
        fetcher = StockPriceFetcher(fake_source)
        quote = run_async(fetcher.current_price("ZZZZ"))

        price, currency = quote
        assert price == 0.0
        assert currency == Currency.USD
        assert isinstance(quote.error, ProviderError)
        assert quote.ok is False

    def test_failure_not_cached(self, fake_source):
        fake_source.quotes["AAPL"] = NetworkFailure("timeout", symbol="AAPL")
        fetcher = StockPriceFetcher(fake_source)

        async def _test():
            failed = await fetcher.current_price("AAPL")
            fake_source.quotes["AAPL"] = RawQuote("AAPL", 190.0, "USD")
            ok = await fetcher.current_price("AAPL")
            return failed, ok

        failed, ok = run_async(_test())
        assert isinstance(failed.error, NetworkFailure)
        assert ok.price == 190.0
        assert len(fake_source.quote_calls) == 2

    def test_unknown_currency_maps_to_usd(self, fake_source):
        fake_source.quotes["GBPX"] = RawQuote("GBPX", 12.3, "XXX")
        quote = run_async(StockPriceFetcher(fake_source).current_price("GBPX"))
        assert quote.ok
        assert quote.currency == Currency.USD

    def test_non_finite_price_is_malformed(self, fake_source):
        fake_source.quotes["NAN"] = RawQuote("NAN", float("nan"), "USD")
        quote = run_async(StockPriceFetcher(fake_source).current_price("NAN"))
        assert quote.price == 0.0
        assert isinstance(quote.error, MalformedResponse)

    @pytest.mark.parametrize("symbol", ["", "   "])
    def test_empty_symbol(self, fake_source, symbol):
        quote = run_async(StockPriceFetcher(fake_source).current_price(symbol))
        assert isinstance(quote.error, InvalidRequest)
        assert fake_source.quote_calls == []

    def test_ttl_expiry_refetches(self, fake_source):
        fetcher = StockPriceFetcher(fake_source, ttl=timedelta(milliseconds=20))

        async def _test():
            await fetcher.current_price("AAPL")
            await asyncio.sleep(0.05)
            return await fetcher.current_price("AAPL")

        quote = run_async(_test())
        assert quote.from_cache is False
        assert len(fake_source.quote_calls) == 2

    def test_coalesced_concurrent_requests(self):
        source = FakeSource(quotes={"AAPL": RawQuote("AAPL", 190.0, "USD")}, latency=0.02)
        fetcher = StockPriceFetcher(source, coalescer=RequestCoalescer())

        async def _test():
            return await asyncio.gather(*[fetcher.current_price("AAPL") for _ in range(5)])

        quotes = run_async(_test())
        assert [q.price for q in quotes] == [190.0] * 5
        assert source.quote_calls == ["AAPL"]

    def test_uncoalesced_concurrent_requests(self):
        source = FakeSource(quotes={"AAPL": RawQuote("AAPL", 190.0, "USD")}, latency=0.02)
        fetcher = StockPriceFetcher(source)

        async def _test():
            return await asyncio.gather(*[fetcher.current_price("AAPL") for _ in range(3)])

        run_async(_test())
        assert len(source.quote_calls) == 3

    def test_current_prices(self, fake_source):
        fetcher = StockPriceFetcher(fake_source)
        quotes = run_async(fetcher.current_prices(["AAPL", "2330.tw", "aapl", "ZZZZ"]))

        assert list(quotes) == ["AAPL", "2330.TW", "ZZZZ"]
        assert quotes["AAPL"].price == 190.5
        assert quotes["2330.TW"].currency == Currency.TWD
        assert quotes["ZZZZ"].ok is False


class TestExchangeRateFetcher:

    def test_same_currency_no_lookup(self, fake_source):
        fetcher = ExchangeRateFetcher(fake_source)
        rate = run_async(fetcher.rate(Currency.USD, Currency.USD))
        assert float(rate) == 1.0
        assert fake_source.quote_calls == []
        assert run_async(fetcher.cache.keys()) == []

    def test_fetch_uses_fx_symbol(self, fake_source):
        fetcher = ExchangeRateFetcher(fake_source)
        rate = run_async(fetcher.rate("usd", "twd"))
        assert rate.rate == 32.0
        assert rate.pair == (Currency.USD, Currency.TWD)
        assert fake_source.quote_calls == ["USDTWD=X"]

    def test_cache_hit(self, fake_source):
        cache = RateCache()
        fetcher = ExchangeRateFetcher(fake_source, cache=cache)

        async def _test():
            await cache.put_entry(RateCacheEntry("EUR-USD", 1.08))
            return await fetcher.rate(Currency.EUR, Currency.USD)

        rate = run_async(_test())
        assert rate.rate == 1.08
        assert rate.from_cache is True
        assert fake_source.quote_calls == []

    def test_reverse_direction_is_separate(self, fake_source):
        fetcher = ExchangeRateFetcher(fake_source)

        async def _test():
            forward = await fetcher.rate(Currency.USD, Currency.TWD)
            reverse = await fetcher.rate(Currency.TWD, Currency.USD)
            return forward, reverse

        forward, reverse = run_async(_test())
        assert forward.rate == 32.0
        assert reverse.rate == 0.03125
        assert fake_source.quote_calls == ["USDTWD=X", "TWDUSD=X"]

    def test_failure_returns_zero(self, fake_source):
        fetcher = ExchangeRateFetcher(fake_source)
        rate = run_async(fetcher.rate(Currency.JPY, Currency.CNY))
        assert rate.rate == 0.0
        assert isinstance(rate.error, ProviderError)
        assert run_async(fetcher.cache.keys()) == []

    @pytest.mark.parametrize("value", [0.0, -1.0, float("inf")])
    def test_invalid_rate_rejected(self, fake_source, value):
        fake_source.quotes["USDJPY=X"] = RawQuote("USDJPY=X", value, "JPY")
        rate = run_async(ExchangeRateFetcher(fake_source).rate(Currency.USD, Currency.JPY))
        assert rate.rate == 0.0
        assert isinstance(rate.error, MalformedResponse)

    def test_unsupported_currency(self, fake_source):
        with pytest.raises(ValueError):
            run_async(ExchangeRateFetcher(fake_source).rate("GBP", "USD"))


def daily_chart(rows, currency="USD"):
    """rows: [(ts, o, h, l, c, v), ...]"""
    timestamps, opens, highs, lows, closes, volumes = (list(col) for col in zip(*rows))
    return RawChart(
        symbol="TEST",
        timestamps=timestamps,
        opens=opens,
        highs=highs,
        lows=lows,
        closes=closes,
        volumes=volumes,
        currency_code=currency,
    )


class TestBuildCandles:

    def test_drops_invalid_records(self):
        raw = daily_chart([
            (100, 10.0, 11.0, 9.0, 10.5, 1000),
            (200, None, 11.0, 9.0, 10.5, 1000),
            (300, 10.0, 11.0, 0.0, 10.5, 1000),
            (400, 10.0, float("nan"), 9.0, 10.5, 1000),
            (None, 10.0, 11.0, 9.0, 10.5, 1000),
        ])
        candles, dropped = build_candles(raw)
        assert [c.epoch for c in candles] == [100]
        assert dropped == 4

    def test_sorted_and_deduplicated(self):
        raw = daily_chart([
            (300, 3.0, 3.0, 3.0, 3.0, 3),
            (100, 1.0, 1.0, 1.0, 1.0, 1),
            (200, 2.0, 2.0, 2.0, 2.0, 2),
            (100, 1.5, 1.5, 1.5, 1.5, 15),
        ])
        candles, dropped = build_candles(raw)
        assert [c.epoch for c in candles] == [100, 200, 300]
        # 重复时间戳保留后出现的一条
        assert candles[0].close == 1.5
        assert dropped == 1

    def test_high_low_clamped(self):
        raw = daily_chart([(100, 10.0, 9.5, 10.2, 9.8, None)])
        candles, _ = build_candles(raw)
        candle = candles[0]
        assert candle.high == 10.0
        assert candle.low == 9.8
        assert candle.low <= min(candle.open, candle.close)
        assert candle.high >= max(candle.open, candle.close)

    def test_volume_optional(self):
        raw = daily_chart([
            (100, 1.0, 1.0, 1.0, 1.0, None),
            (200, 1.0, 1.0, 1.0, 1.0, -5),
            (300, 1.0, 1.0, 1.0, 1.0, 7),
        ])
        candles, _ = build_candles(raw)
        assert [c.volume for c in candles] == [None, None, 7.0]

    def test_missing_volume_array(self):
        raw = RawChart(symbol="X", timestamps=[1], opens=[1.0], highs=[1.0], lows=[1.0], closes=[1.0])
        candles, _ = build_candles(raw)
        assert candles[0].volume is None

    def test_short_arrays_treated_as_missing(self):
        raw = RawChart(symbol="X", timestamps=[1, 2], opens=[1.0, 1.0], highs=[1.0, 1.0],
                       lows=[1.0, 1.0], closes=[1.0])
        candles, dropped = build_candles(raw)
        assert len(candles) == 1
        assert dropped == 1

    def test_unrepresentable_timestamps_dropped(self):
        raw = daily_chart([
            (1e20, 1.0, 1.0, 1.0, 1.0, 1),
            (float("nan"), 1.0, 1.0, 1.0, 1.0, 1),
            (float("inf"), 1.0, 1.0, 1.0, 1.0, 1),
            (1700000000, 2.0, 2.0, 2.0, 2.0, 2),
        ])
        candles, dropped = build_candles(raw)
        assert [c.epoch for c in candles] == [1700000000]
        assert dropped == 3


class TestHistoricalDataFetcher:

    def test_series_ordered_with_metadata(self):
        source = FakeSource(charts={
            "2330.TW": daily_chart([
                (200, 2.0, 2.5, 1.5, 2.2, 10),
                (100, 1.0, 1.5, 0.5, 1.2, None),
            ], currency="TWD"),
        })
        series = run_async(HistoricalDataFetcher(source).historical_series("2330.tw"))

        assert series.ok
        assert series.symbol == "2330.TW"
        assert [c.epoch for c in series] == [100, 200]
        assert series.metadata == {"source": "fake", "range": "1y", "interval": "1d", "currency": "TWD"}
        assert source.chart_calls == [("2330.TW", ChartRange.YEAR_1, CandleInterval.DAILY)]

    def test_bad_timestamps_do_not_escape(self):
        source = FakeSource(charts={
            "X": daily_chart([
                (1e20, 1.0, 1.0, 1.0, 1.0, 1),
                (float("nan"), 1.0, 1.0, 1.0, 1.0, 1),
                (1700000000, 3.0, 3.5, 2.5, 3.2, 10),
            ]),
        })
        series = run_async(HistoricalDataFetcher(source).historical_series("X"))
        assert series.ok
        assert len(series) == 1
        assert series[0].close == 3.2

    def test_string_range_and_interval(self):
        source = FakeSource(charts={"AAPL": daily_chart([(100, 1.0, 1.0, 1.0, 1.0, 1)])})
        series = run_async(HistoricalDataFetcher(source).historical_series("AAPL", "5d", "1h"))
        assert series.ok
        assert source.chart_calls == [("AAPL", ChartRange.DAY_5, CandleInterval.HOUR_1)]

    def test_invalid_range(self, fake_source):
        series = run_async(HistoricalDataFetcher(fake_source).historical_series("AAPL", "7y"))
        assert series.is_empty
        assert isinstance(series.error, InvalidRequest)
        assert fake_source.chart_calls == []

    def test_error_returns_empty_series(self, fake_source):
        series = run_async(HistoricalDataFetcher(fake_source).historical_series("ZZZZ"))
        assert series.is_empty
        assert isinstance(series.error, ProviderError)
        assert series.metadata["source"] == "fake"

    def test_no_data_is_empty_success(self):
        source = FakeSource(charts={"AAPL": RawChart(symbol="AAPL", currency_code="USD")})
        series = run_async(HistoricalDataFetcher(source).historical_series("AAPL"))
        assert series.is_empty
        assert series.ok
