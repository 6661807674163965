"""
货币转换
"""

import asyncio
from typing import Iterable, List, Tuple, Union

from loguru import logger

from .currency import Currency
from .fetchers.rates import ExchangeRateFetcher
from .models import Conversion


class CurrencyConverter:
    """
    货币转换器

    amount * rate(FROM, TO)。汇率获取失败时统一返回未换算的原金额，
    并标记 stale=True（不会把原币金额当作目标币金额静默返回）。
    """

    def __init__(self, rate_fetcher: ExchangeRateFetcher):
        self.rate_fetcher = rate_fetcher

    async def convert(
        self,
        amount: float,
        from_currency: Union[Currency, str],
        to_currency: Union[Currency, str],
        use_cache: bool = True,
    ) -> Conversion:
        """
        转换金额

        Args:
            amount: 金额
            from_currency: 源币种
            to_currency: 目标币种
            use_cache: 是否优先使用汇率缓存

        Returns:
            Conversion（float() 得到转换后金额）
        """
        source_ccy = Currency.parse(from_currency)
        target_ccy = Currency.parse(to_currency)

        if source_ccy == target_ccy:
            return Conversion(
                amount=amount,
                original_amount=amount,
                from_currency=source_ccy,
                to_currency=target_ccy,
                rate=1.0,
            )

        rate = await self.rate_fetcher.rate(source_ccy, target_ccy, use_cache=use_cache)
        if not rate.ok or rate.rate <= 0:
            logger.warning(
                f"汇率不可用，返回未换算金额: {amount} {source_ccy.value} → {target_ccy.value}"
            )
            return Conversion(
                amount=amount,
                original_amount=amount,
                from_currency=source_ccy,
                to_currency=target_ccy,
                rate=0.0,
                stale=True,
                error=rate.error,
            )

        return Conversion(
            amount=amount * rate.rate,
            original_amount=amount,
            from_currency=source_ccy,
            to_currency=target_ccy,
            rate=rate.rate,
        )

    async def convert_many(
        self,
        items: Iterable[Tuple[float, Union[Currency, str]]],
        to_currency: Union[Currency, str],
        use_cache: bool = True,
    ) -> List[Conversion]:
        """
        并发转换多笔金额到同一目标币种

        Args:
            items: [(金额, 源币种), ...]
            to_currency: 目标币种

        Returns:
            与输入顺序一致的 Conversion 列表
        """
        return list(await asyncio.gather(
            *(self.convert(amount, ccy, to_currency, use_cache) for amount, ccy in items)
        ))
