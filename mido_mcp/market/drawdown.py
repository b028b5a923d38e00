"""Drawdown of an index/ETF against its trailing high."""

from __future__ import annotations

from typing import Any

from .yahoo import YahooChartClient

DEFAULT_INDEX = "IWDA.AS"
DEFAULT_LOOKBACK_DAYS = 252
MIN_LOOKBACK_DAYS = 30
MAX_LOOKBACK_DAYS = 504

# (lower bound in percent, label), checked top-down
_PHASES: list[tuple[float, str]] = [
    (-5.0, "Normal"),
    (-10.0, "Minor pullback"),
    (-20.0, "Correction"),
    (-30.0, "Bear market"),
    (-50.0, "Severe crash"),
]


def classify_drawdown(pct: float) -> str:
    for bound, label in _PHASES:
        if pct >= bound:
            return label
    return "System crisis"


def drawdown_ratio(price: float | None, high: float | None) -> float | None:
    """Unrounded percent below ``high``; None when either side is missing or high is 0."""
    if price is None or high is None or high == 0:
        return None
    return (price - high) / high * 100


def compute_drawdown(price: float | None, high: float | None) -> float | None:
    """Percent below ``high`` rounded for display."""
    raw = drawdown_ratio(price, high)
    return round(raw, 2) if raw is not None else None


class DrawdownCalculator:
    """Combines the latest quote with the trailing high."""

    def __init__(self, client: YahooChartClient):
        self.client = client

    async def get_drawdown(
        self,
        ticker: str = DEFAULT_INDEX,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
    ) -> dict[str, Any]:
        lookback_days = max(MIN_LOOKBACK_DAYS, min(MAX_LOOKBACK_DAYS, int(lookback_days)))

        quote = await self.client.fetch_quote(ticker)
        period_high = await self.client.get_period_high(ticker, lookback_days)

        price = quote.get("price")
        high = period_high.get("high")
        raw = drawdown_ratio(price, high)

        return {
            "index": ticker,
            "lookback_days": lookback_days,
            "current_price": round(price, 2) if price is not None else None,
            "high_52w": round(high, 2) if high is not None else None,
            "high_52w_date": period_high.get("date"),
            "drawdown_pct": round(raw, 2) if raw is not None else None,
            "phase": classify_drawdown(raw) if raw is not None else "Unknown",
            "currency": quote.get("currency"),
        }


def format_drawdown_markdown(data: dict[str, Any]) -> str:
    def _fmt(value: Any, suffix: str = "") -> str:
        return "N/A" if value is None else f"{value}{suffix}"

    lines = [
        f"# Drawdown: {data['index']}",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Current Price | {_fmt(data['current_price'])} |",
        f"| {data['lookback_days']}d High | {_fmt(data['high_52w'])} |",
        f"| High Date | {_fmt(data['high_52w_date'])} |",
        f"| Drawdown | {_fmt(data['drawdown_pct'], '%')} |",
        f"| Phase | {data['phase']} |",
    ]
    return "\n".join(lines) + "\n"
