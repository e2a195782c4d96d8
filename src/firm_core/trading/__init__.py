"""
Trading module for the firm core.

Provides share trade execution and dividend distribution.
"""

from firm_core.trading.executor import (
    TradeExecutor,
    calculate_new_acb,
)
from firm_core.trading.dividends import DividendDistributor

__all__ = [
    "TradeExecutor",
    "calculate_new_acb",
    "DividendDistributor",
]
