"""Alpha Vantage fetch client.

One ``GET /query`` per attempt over ``httpx.AsyncClient``. Without an API
key the client runs on the public ``demo`` credential, which only serves a
handful of symbols and answers everything else with a throttling note; the
resulting ``RATE_LIMITED`` failures are expected in that mode.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

import httpx

from stockfeed.config import DEFAULT_BASE_URL, DEMO_API_KEY
from stockfeed.errors import FeedErrorCode
from stockfeed.events import LogSink
from stockfeed.interval import Interval
from stockfeed.normalizer import parse_payload
from stockfeed.providers.base import BaseFetchClient
from stockfeed.results import FetchFailure, FetchResult

logger = logging.getLogger(__name__)


class AlphaVantageClient(BaseFetchClient):
    """Fetch intraday, daily, weekly and monthly series from Alpha Vantage."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        output_size: str = "compact",
        sink: Optional[LogSink] = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key or os.getenv("ALPHAVANTAGE_API_KEY") or DEMO_API_KEY
        if self.api_key == DEMO_API_KEY:
            logger.info("Alpha Vantage client using the demo credential tier")

        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.output_size = output_size
        self.sink = sink

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
        )

    def build_params(self, symbol: str, interval: Interval) -> dict[str, str]:
        params = {
            "function": interval.upstream_function,
            "symbol": symbol.upper(),
            "outputsize": self.output_size,
            "apikey": self.api_key,
        }
        if interval.upstream_interval is not None:
            params["interval"] = interval.upstream_interval
        return params

    async def fetch(self, symbol: str, interval: Interval | str) -> FetchResult:
        interval = Interval.parse(interval)
        symbol = symbol.upper()
        self._report_start(symbol, interval)
        result = await self._attempt(symbol, interval)
        self._report_result(symbol, interval, result)
        return result

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------ internal

    async def _attempt(self, symbol: str, interval: Interval) -> FetchResult:
        params = self.build_params(symbol, interval)
        try:
            # Expiry cancels the request and releases its connection.
            resp = await asyncio.wait_for(
                self._client.get(self.base_url, params=params),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return FetchFailure(
                FeedErrorCode.TIMEOUT,
                f"No response within {self.timeout_seconds:g}s",
            )
        except httpx.HTTPError as exc:
            return FetchFailure(FeedErrorCode.NETWORK_ERROR, str(exc) or type(exc).__name__)

        if not resp.is_success:
            return FetchFailure(
                FeedErrorCode.HTTP_ERROR,
                resp.reason_phrase,
                status=resp.status_code,
            )

        try:
            payload: Any = resp.json()
        except ValueError:
            return FetchFailure(FeedErrorCode.PARSE_FAILURE, "Response body is not JSON")

        return parse_payload(payload, interval)
