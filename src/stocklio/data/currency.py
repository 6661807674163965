"""
币种模块
定义支持的币种及数据源币种代码映射
"""

from enum import Enum
from typing import List

from loguru import logger


class Currency(Enum):
    """支持的币种（封闭集合）"""
    TWD = "TWD"
    USD = "USD"
    JPY = "JPY"
    EUR = "EUR"
    CNY = "CNY"

    @property
    def symbol(self) -> str:
        """显示符号"""
        return _SYMBOLS[self]

    @classmethod
    def default(cls) -> "Currency":
        """数据源返回未知币种或请求失败时使用的默认币种"""
        return cls.USD

    @classmethod
    def codes(cls) -> List[str]:
        return [c.value for c in cls]

    @classmethod
    def parse(cls, value) -> "Currency":
        """
        将字符串或 Currency 转换为 Currency

        Raises:
            ValueError: 不是支持的币种代码
        """
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())

    def format(self, amount: float, digits: int = 2) -> str:
        """格式化金额，如 NT$1,234.50"""
        return f"{self.symbol}{amount:,.{digits}f}"


_SYMBOLS = {
    Currency.TWD: "NT$",
    Currency.USD: "$",
    Currency.JPY: "¥",
    Currency.EUR: "€",
    Currency.CNY: "¥",
}

# 数据源币种代码 -> 内部币种（大小写不敏感）
PROVIDER_CURRENCY_MAP = {
    "TWD": Currency.TWD,
    "NTD": Currency.TWD,
    "USD": Currency.USD,
    "JPY": Currency.JPY,
    "EUR": Currency.EUR,
    "CNY": Currency.CNY,
    "RMB": Currency.CNY,
}


def map_provider_currency(code) -> Currency:
    """
    将数据源返回的币种代码映射为内部币种

    未识别的代码映射为 USD 并记录警告，不视为错误。

    Args:
        code: 数据源币种字符串（可能为 None）

    Returns:
        Currency
    """
    normalized = (code or "").strip().upper()
    currency = PROVIDER_CURRENCY_MAP.get(normalized)
    if currency is None:
        logger.warning(f"未知币种: {code!r}，使用 {Currency.default().value} 作为默认")
        return Currency.default()
    return currency
