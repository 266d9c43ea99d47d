"""FreshnessCache decides, per (symbol, interval), what series to show now.

Each ``resolve`` call either reuses the cached series, fetches from the
upstream client, or falls back to a synthetic series. Decision order:

1. The caller's key changed since its last request: fetch.
2. Cached series is synthetic and the key has used up its retries: reuse
   (circuit breaker).
3. Last attempt is younger than ``min_fetch_spacing``: reuse.
4. Cached series is younger than the interval's max age: reuse.
5. Otherwise fetch.

Fetch failures of every kind end in a synthetic series; ``resolve`` always
returns something displayable.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from stockfeed.clock import Clock, utcnow
from stockfeed.config import StockFeedConfig
from stockfeed.errors import FeedError, FeedErrorCode
from stockfeed.events import LogSink, emit
from stockfeed.generator import SeriesGenerator
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.models.log_message import MessageType
from stockfeed.providers.base import BaseFetchClient
from stockfeed.quality import has_regular_spacing, validate_bars
from stockfeed.results import FetchFailure, FetchResult, FetchSuccess

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Interval]
DEFAULT_CONSUMER = "default"


class Decision(Enum):
    """Outcome of the staleness check for one ``resolve`` call."""

    FETCH = "fetch"
    CIRCUIT_OPEN = "circuit_open"
    TOO_SOON = "too_soon"
    FRESH = "fresh"


@dataclass
class CacheEntry:
    """Cached state for one (symbol, interval) key.

    Attributes:
        symbol: Upper-cased ticker.
        interval: Bar interval.
        series: Last resolved bars, oldest first.
        fetched_at: When ``series`` was stored.
        is_synthetic: Whether ``series`` is generated (or looks generated).
        retry_count: Attempts since the last successful upstream fetch.
        last_attempt_at: When the last upstream attempt started.
        last_failure: Why the last attempt failed, if it did.
        version: Incremented on every write.
    """

    symbol: str
    interval: Interval
    series: list[Bar] = field(default_factory=list)
    fetched_at: datetime | None = None
    is_synthetic: bool = False
    retry_count: int = 0
    last_attempt_at: datetime | None = None
    last_failure: FetchFailure | None = None
    version: int = 0

    def age(self, now: datetime) -> timedelta | None:
        if self.fetched_at is None:
            return None
        return now - self.fetched_at


class FreshnessCache:
    """Per-key fetch/reuse/synthesize state machine.

    Usage::

        cache = FreshnessCache(AlphaVantageClient())
        bars = await cache.resolve("AAPL", "5min")
        if cache.is_synthetic("AAPL", "5min"):
            ...
    """

    def __init__(
        self,
        client: BaseFetchClient,
        *,
        config: StockFeedConfig | None = None,
        generator: SeriesGenerator | None = None,
        sink: Optional[LogSink] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = client
        self.config = config or StockFeedConfig()
        self.generator = generator or SeriesGenerator(
            max_bars=self.config.max_bars, clock=clock,
        )
        self.sink = sink
        self.clock = clock
        self.fetch_attempts = 0

        self._entries: dict[CacheKey, CacheEntry] = {}
        self._locks: dict[CacheKey, asyncio.Lock] = {}
        self._last_keys: dict[str, CacheKey] = {}

    # --------------------------------------------------------------- resolve

    async def resolve(
        self,
        symbol: str,
        interval: Interval | str,
        *,
        consumer: str = DEFAULT_CONSUMER,
    ) -> list[Bar]:
        """Return the series to display for ``(symbol, interval)``.

        ``consumer`` identifies whose "last requested key" is compared in the
        key-change check; independent subscribers pass distinct ids.
        """
        key = self._key(symbol, interval)
        key_changed = self._last_keys.get(consumer) != key
        self._last_keys[consumer] = key

        existing = self._entries.get(key)
        seen_version = existing.version if existing is not None else 0

        async with self._lock(key):
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = CacheEntry(symbol=key[0], interval=key[1])

            # A resolution finished while this call waited; it is the freshest data.
            # A cleared entry is a new object and goes through the decision.
            if entry is existing and entry.version != seen_version:
                return list(entry.series)

            if key_changed:
                entry.retry_count = 0

            decision = self.decide(entry, key_changed=key_changed, now=self.clock())
            logger.debug("%s %s: %s", entry.symbol, entry.interval.value, decision.value)
            if decision is Decision.FETCH:
                await self._refresh(entry)
            return list(entry.series)

    def decide(
        self,
        entry: CacheEntry,
        *,
        key_changed: bool,
        now: datetime,
    ) -> Decision:
        """Staleness check for ``entry``; has no side effects."""
        if key_changed or entry.fetched_at is None:
            return Decision.FETCH
        if entry.is_synthetic and entry.retry_count >= self.config.max_retries:
            return Decision.CIRCUIT_OPEN
        if (
            entry.last_attempt_at is not None
            and now - entry.last_attempt_at < self.config.min_fetch_spacing
        ):
            return Decision.TOO_SOON
        if now - entry.fetched_at < self.config.max_age_for(entry.interval):
            return Decision.FRESH
        return Decision.FETCH

    # ------------------------------------------------------------ accessors

    def entry(self, symbol: str, interval: Interval | str) -> CacheEntry | None:
        """Snapshot of the entry for a key, or None if never requested."""
        entry = self._entries.get(self._key(symbol, interval))
        if entry is None:
            return None
        return replace(entry, series=list(entry.series))

    def is_synthetic(self, symbol: str, interval: Interval | str) -> bool:
        entry = self._entries.get(self._key(symbol, interval))
        return entry is not None and entry.is_synthetic

    def circuit_open(self, symbol: str, interval: Interval | str) -> bool:
        """True when the key has exhausted its retries."""
        entry = self._entries.get(self._key(symbol, interval))
        return entry is not None and entry.retry_count >= self.config.max_retries

    def keys(self) -> list[CacheKey]:
        return list(self._entries)

    def forget(self, consumer: str) -> None:
        """Drop the last-requested key remembered for ``consumer``."""
        self._last_keys.pop(consumer, None)

    def clear(self, symbol: str) -> None:
        prefix = symbol.strip().upper()
        for key in [k for k in self._entries if k[0] == prefix]:
            del self._entries[key]

    def clear_all(self) -> None:
        self._entries.clear()

    # ------------------------------------------------------------- internal

    async def _refresh(self, entry: CacheEntry) -> None:
        now = self.clock()
        entry.retry_count += 1
        entry.last_attempt_at = now
        self.fetch_attempts += 1

        result = self._check(await self._fetch(entry))

        if isinstance(result, FetchSuccess):
            entry.series = result.bars
            entry.is_synthetic = False
            entry.retry_count = 0
            entry.last_failure = None
        else:
            entry.series = self.generator.generate(entry.symbol, entry.interval, now=now)
            entry.is_synthetic = True
            entry.last_failure = result
            emit(
                self.sink,
                f"{entry.symbol}: showing demo data for {entry.interval.value} "
                f"({result.code.value})",
                MessageType.WARNING,
            )

        if not entry.is_synthetic and has_regular_spacing(
            entry.series, self.config.demo_spacing_tolerance,
        ):
            entry.is_synthetic = True
            emit(
                self.sink,
                f"{entry.symbol}: {entry.interval.value} data has uniform spacing, "
                "treating it as demo data",
                MessageType.WARNING,
            )

        entry.fetched_at = now
        entry.version += 1

    async def _fetch(self, entry: CacheEntry) -> FetchResult:
        try:
            return await self.client.fetch(entry.symbol, entry.interval)
        except Exception as exc:
            logger.exception("%s %s: fetch client raised", entry.symbol, entry.interval.value)
            return FetchFailure(FeedErrorCode.NETWORK_ERROR, str(exc) or type(exc).__name__)

    def _check(self, result: FetchResult) -> FetchResult:
        if not isinstance(result, FetchSuccess):
            return result
        if not result.bars:
            return FetchFailure(FeedErrorCode.NO_DATA, "Upstream returned no bars")
        if self.config.validate:
            check = validate_bars(result.bars)
            if not check.passed:
                return FetchFailure(FeedErrorCode.VALIDATION_FAILED, check.summary())
        return result

    def _lock(self, key: CacheKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    @staticmethod
    def _key(symbol: str, interval: Interval | str) -> CacheKey:
        normalized = symbol.strip().upper() if isinstance(symbol, str) else ""
        if not normalized:
            raise FeedError(
                "symbol must be a non-empty ticker",
                code=FeedErrorCode.INVALID_REQUEST,
            )
        try:
            return normalized, Interval.parse(interval)
        except ValueError as exc:
            raise FeedError(str(exc), code=FeedErrorCode.INVALID_REQUEST) from exc
