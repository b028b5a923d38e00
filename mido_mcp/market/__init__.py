"""Market data access used by the bundled tools."""

from .drawdown import DrawdownCalculator, classify_drawdown, compute_drawdown
from .yahoo import YahooChartClient

__all__ = [
    "DrawdownCalculator",
    "YahooChartClient",
    "classify_drawdown",
    "compute_drawdown",
]
