"""Mock fetch client for testing and offline demos, no network required."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Optional

from stockfeed.errors import FeedErrorCode
from stockfeed.events import LogSink
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.normalizer import parse_payload
from stockfeed.providers.base import BaseFetchClient
from stockfeed.results import FetchFailure, FetchResult, FetchSuccess


class MockFetchClient(BaseFetchClient):
    """In-memory client that returns configurable outcomes.

    Resolution order for each attempt: scripted outcomes (consumed in
    order), raw payloads set for the ``(symbol, interval)`` pair (run
    through the real payload parser), bars set for the symbol, then the
    default failure.
    """

    def __init__(
        self,
        *,
        delay: float = 0.0,
        sink: Optional[LogSink] = None,
        default_failure: FetchFailure | None = None,
    ) -> None:
        self.delay = delay
        self.sink = sink
        self.default_failure = default_failure or FetchFailure(
            FeedErrorCode.NOT_FOUND, "No mock data",
        )
        self.attempts = 0
        self.requests: list[tuple[str, Interval]] = []
        self._bars: dict[str, list[Bar]] = {}
        self._payloads: dict[tuple[str, Interval], Any] = {}
        self._script: deque[FetchResult] = deque()

    # --- Pre-load helpers ---

    def set_bars(self, symbol: str, bars: list[Bar]) -> None:
        self._bars[symbol.upper()] = list(bars)

    def set_payload(self, symbol: str, interval: Interval | str, payload: Any) -> None:
        self._payloads[(symbol.upper(), Interval.parse(interval))] = payload

    def script(self, *outcomes: FetchResult | FeedErrorCode) -> None:
        """Queue outcomes for the next attempts; codes become bare failures."""
        for outcome in outcomes:
            if isinstance(outcome, FeedErrorCode):
                outcome = FetchFailure(outcome, f"scripted {outcome.value}")
            self._script.append(outcome)

    # --- Client implementation ---

    async def fetch(self, symbol: str, interval: Interval | str) -> FetchResult:
        interval = Interval.parse(interval)
        key = symbol.upper()
        self.attempts += 1
        self.requests.append((key, interval))
        self._report_start(key, interval)

        if self.delay:
            await asyncio.sleep(self.delay)

        result = self._resolve(key, interval)
        self._report_result(key, interval, result)
        return result

    def _resolve(self, key: str, interval: Interval) -> FetchResult:
        if self._script:
            return self._script.popleft()
        if (key, interval) in self._payloads:
            return parse_payload(self._payloads[(key, interval)], interval)
        if key in self._bars:
            return FetchSuccess(list(self._bars[key]))
        return self.default_failure
