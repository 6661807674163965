"""
持仓估值模块
以指定显示币种计算现金与股票持仓的价值
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

from loguru import logger

from ..data.converter import CurrencyConverter
from ..data.currency import Currency
from ..data.fetchers.prices import StockPriceFetcher
from ..data.models import Conversion


@dataclass
class Valuation:
    """单项估值结果"""
    amount: float
    currency: Currency
    original_amount: float
    original_currency: Currency
    stale: bool = False

    @classmethod
    def from_conversion(cls, conversion: Conversion) -> "Valuation":
        return cls(
            amount=conversion.amount,
            currency=conversion.currency,
            original_amount=conversion.original_amount,
            original_currency=conversion.from_currency,
            stale=conversion.stale,
        )


class Holding:
    """
    持仓基类

    Attributes:
        name: 账户名称
        currency: 持仓币种
        created_at: 创建时间
    """

    def __init__(self, name: str = "", currency: Union[Currency, str] = Currency.USD):
        self.id = uuid.uuid4()
        self.name = name
        self.currency = Currency.parse(currency)
        self.created_at = datetime.now()

    @property
    def native_balance(self) -> float:
        """原币种价值"""
        return 0.0

    @property
    def native_cost(self) -> float:
        """原币种成本（现金即余额）"""
        return self.native_balance

    async def balance(self, converter: CurrencyConverter, currency: Union[Currency, str]) -> Valuation:
        """
        按目标币种计算当前价值

        汇率不可用时返回原币金额并标记 stale。
        """
        conversion = await converter.convert(self.native_balance, self.currency, currency)
        return Valuation.from_conversion(conversion)

    async def cost_balance(self, converter: CurrencyConverter, currency: Union[Currency, str]) -> Valuation:
        """按目标币种计算成本价值"""
        conversion = await converter.convert(self.native_cost, self.currency, currency)
        return Valuation.from_conversion(conversion)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, currency={self.currency.value})"


class CashHolding(Holding):
    """现金账户"""

    def __init__(
        self,
        name: str = "",
        balance: float = 0.0,
        currency: Union[Currency, str] = Currency.USD,
    ):
        super().__init__(name, currency)
        self.cash = balance

    @property
    def native_balance(self) -> float:
        return self.cash


class StockHolding(Holding):
    """
    股票持仓

    price 与 currency 由 refresh_price 从行情更新；未取得行情前 price 为 0。
    """

    def __init__(
        self,
        name: str = "",
        symbol: str = "",
        shares: float = 0.0,
        cost_price: float = 0.0,
        currency: Union[Currency, str] = Currency.USD,
    ):
        super().__init__(name, currency)
        self.symbol = symbol.strip().upper()
        self.shares = shares
        self.cost_price = cost_price
        self.price = 0.0
        self.price_ok = False

    @property
    def native_balance(self) -> float:
        return self.shares * self.price

    @property
    def native_cost(self) -> float:
        return self.shares * self.cost_price

    @property
    def unrealized_pnl(self) -> float:
        """未实现盈亏（原币种）"""
        return self.native_balance - self.native_cost

    async def refresh_price(self, fetcher: StockPriceFetcher, use_cache: bool = True) -> bool:
        """
        刷新股价

        成功时同时更新持仓币种为行情币种；失败时保留原价格与币种。

        Returns:
            是否成功
        """
        quote = await fetcher.current_price(self.symbol, use_cache=use_cache)
        if not quote.ok:
            logger.warning(f"{self.symbol} 股价刷新失败，保留原价格 {self.price}")
            self.price_ok = False
            return False

        self.price = quote.price
        self.currency = quote.currency
        self.price_ok = True
        logger.debug(f"股票资料加载完成: {self.symbol} 价格={quote.price} 货币={quote.currency.value}")
        return True

    def __repr__(self):
        return f"StockHolding(symbol={self.symbol!r}, shares={self.shares}, currency={self.currency.value})"


@dataclass
class GroupValuation:
    """
    群组估值结果

    total / total_cost 只累计已换算为显示币种的项目；
    汇率不可用的项目按原币种列在 unconverted 中，不混入合计。
    """
    currency: Currency
    balances: Dict[uuid.UUID, Valuation] = field(default_factory=dict)
    costs: Dict[uuid.UUID, Valuation] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(v.amount for v in self.balances.values() if not v.stale)

    @property
    def total_cost(self) -> float:
        return sum(v.amount for v in self.costs.values() if not v.stale)

    @property
    def unconverted(self) -> Dict[Currency, float]:
        """未换算的当前价值，按原币种汇总"""
        amounts: Dict[Currency, float] = {}
        for v in self.balances.values():
            if v.stale:
                amounts[v.currency] = amounts.get(v.currency, 0.0) + v.amount
        return amounts

    @property
    def unrealized_pnl(self) -> float:
        return self.total - self.total_cost

    @property
    def return_percent(self) -> float:
        """总收益率（%）"""
        if self.total_cost <= 0:
            return 0.0
        return self.unrealized_pnl / self.total_cost * 100

    @property
    def stale(self) -> bool:
        """任一项目使用了未换算金额"""
        return any(v.stale for v in self.balances.values()) or any(v.stale for v in self.costs.values())

    def allocation(self) -> Dict[uuid.UUID, float]:
        """各项目占总价值比例（%），未换算的项目为 0"""
        total = self.total
        if total <= 0:
            return {k: 0.0 for k in self.balances}
        return {k: 0.0 if v.stale else v.amount / total * 100 for k, v in self.balances.items()}


class HoldingGroup:
    """持仓群组"""

    def __init__(self, name: str, items: Optional[List[Holding]] = None):
        self.id = uuid.uuid4()
        self.name = name
        self.items: List[Holding] = list(items or [])

    def add(self, item: Holding) -> None:
        self.items.append(item)

    def remove(self, item: Holding) -> None:
        self.items = [i for i in self.items if i.id != item.id]

    def __len__(self) -> int:
        return len(self.items)

    async def valuate(
        self,
        converter: CurrencyConverter,
        currency: Union[Currency, str],
        price_fetcher: Optional[StockPriceFetcher] = None,
    ) -> GroupValuation:
        """
        并发计算群组内所有项目的当前价值与成本

        Args:
            converter: 货币转换器
            currency: 显示币种
            price_fetcher: 提供时先刷新所有股票的股价

        Returns:
            GroupValuation
        """
        target = Currency.parse(currency)

        async def valuate_item(item: Holding):
            if price_fetcher is not None and isinstance(item, StockHolding):
                await item.refresh_price(price_fetcher)
            current, cost = await asyncio.gather(
                item.balance(converter, target),
                item.cost_balance(converter, target),
            )
            return item.id, current, cost

        results = await asyncio.gather(*(valuate_item(item) for item in self.items))

        valuation = GroupValuation(currency=target)
        for item_id, current, cost in results:
            valuation.balances[item_id] = current
            valuation.costs[item_id] = cost

        logger.info(
            f"群组 {self.name} 估值完成: {target.format(valuation.total)} "
            f"(成本 {target.format(valuation.total_cost)}, {len(self.items)} 项)"
        )
        if valuation.stale:
            unconverted = ", ".join(c.format(a) for c, a in valuation.unconverted.items())
            logger.warning(f"群组 {self.name} 存在未换算项目，未计入合计: {unconverted}")
        return valuation

    def __repr__(self):
        return f"HoldingGroup(name={self.name!r}, items={len(self.items)})"
