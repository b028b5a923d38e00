"""Yahoo Finance chart API client.

Only the two queries the drawdown tool needs are implemented: the latest quote
and the highest daily high over a lookback window. Both are cached in memory
for ``MARKET_CACHE_TTL_SEC`` so repeated tool calls do not hammer Yahoo.

Failures never raise to the caller: they are logged and reported as ``None``
values, which the tools render as "Unknown".
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Any

import aiohttp

from mido_mcp.config import Settings, get_settings
from mido_mcp.utils import get_logger

# Yahoo rejects requests without a browser-like agent
_HEADERS = {"User-Agent": "Mozilla/5.0"}


class YahooChartClient:
    """Async client for ``/v8/finance/chart/<ticker>``."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.yahoo_chart_url
        self.logger = get_logger("market.yahoo")
        self._session: aiohttp.ClientSession | None = None
        self._cache: dict[str, tuple[float, Any]] = {}

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.market_request_timeout_sec)
            self._session = aiohttp.ClientSession(timeout=timeout, headers=_HEADERS)
        return self._session

    async def close(self) -> None:
        """Close the session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    def _cache_get(self, key: str) -> Any:
        hit = self._cache.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if expires_at <= time.monotonic():
            self._cache.pop(key, None)
            return None
        return value

    def _cache_set(self, key: str, value: Any) -> None:
        self._cache[key] = (time.monotonic() + self.settings.market_cache_ttl_sec, value)

    async def _request(self, ticker: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """GET the chart document and return ``chart.result[0]``.

        Retries transient failures (network errors, 429 and 5xx) with
        exponential backoff.
        """
        session = await self._get_session()
        url = f"{self.base_url}{ticker}"
        max_attempts = 3
        delay = 0.5

        for attempt in range(1, max_attempts + 1):
            try:
                async with session.get(url, params=params) as response:
                    if response.status == 429 or response.status >= 500:
                        raise aiohttp.ClientResponseError(
                            response.request_info,
                            response.history,
                            status=response.status,
                            message=response.reason or "",
                        )
                    data = await response.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt == max_attempts:
                    raise
                self.logger.warning(
                    "yahoo_request_retry",
                    ticker=ticker,
                    attempt=attempt,
                    error=str(e),
                    wait_seconds=delay,
                )
                await asyncio.sleep(delay)
                delay *= 2
                continue

            results = ((data or {}).get("chart") or {}).get("result") or []
            return results[0] if results else None

        return None

    async def fetch_quote(self, ticker: str) -> dict[str, Any]:
        """Latest quote: ``{ticker, price, previous_close, currency}``."""
        key = f"quote:{ticker}"
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        empty = {"ticker": ticker, "price": None, "previous_close": None, "currency": "EUR"}
        try:
            result = await self._request(ticker, {"interval": "1d", "range": "1d"})
        except Exception as e:
            self.logger.warning("yahoo_quote_error", ticker=ticker, error=str(e))
            return empty
        if result is None:
            return empty

        meta = result.get("meta") or {}
        price = meta.get("regularMarketPrice")
        previous = meta.get("previousClose")
        quote = {
            "ticker": ticker,
            "price": float(price) if price is not None else None,
            "previous_close": float(previous) if previous is not None else None,
            "currency": meta.get("currency") or "EUR",
        }
        self._cache_set(key, quote)
        return quote

    async def get_period_high(self, ticker: str, days: int = 252) -> dict[str, Any]:
        """Highest daily high over ``days`` trading days: ``{high, date}``.

        The request window spans ``days * 1.5`` calendar days so weekends and
        holidays do not shorten the sample.
        """
        key = f"high:{ticker}:{days}"
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        end = int(time.time())
        start = end - int(days * 1.5 * 86400)
        empty = {"high": None, "date": None}
        try:
            result = await self._request(
                ticker, {"period1": start, "period2": end, "interval": "1d"}
            )
        except Exception as e:
            self.logger.warning("yahoo_high_error", ticker=ticker, error=str(e))
            return empty
        if result is None:
            return empty

        out = highest_high(result)
        self._cache_set(key, out)
        return out


def highest_high(result: dict[str, Any]) -> dict[str, Any]:
    """Pick the max daily high (and its UTC date) from a chart result."""
    timestamps = result.get("timestamp") or []
    quotes = ((result.get("indicators") or {}).get("quote") or [{}])[0] or {}
    highs = quotes.get("high") or []

    max_high: float | None = None
    max_date: str | None = None
    for i, high in enumerate(highs):
        if high is None:
            continue
        if max_high is None or high > max_high:
            max_high = float(high)
            max_date = (
                datetime.fromtimestamp(int(timestamps[i]), tz=timezone.utc).date().isoformat()
                if i < len(timestamps)
                else None
            )
    return {"high": max_high, "date": max_date}
