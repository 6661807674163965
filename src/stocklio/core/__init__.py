"""
核心模块
持仓与群组估值
"""

from .holdings import (
    Valuation,
    Holding,
    CashHolding,
    StockHolding,
    GroupValuation,
    HoldingGroup,
)

__all__ = [
    "Valuation",
    "Holding",
    "CashHolding",
    "StockHolding",
    "GroupValuation",
    "HoldingGroup",
]
