"""stockfeed: data-freshness engine for live stock dashboards.

Fetches OHLCV series from Alpha Vantage, caches them per (symbol, interval),
spaces out upstream requests, and falls back to synthetic series whenever the
upstream is unavailable, throttled or untrustworthy.

Quick start::

    from stockfeed import create_cache_from_env
    cache = create_cache_from_env()
    bars = await cache.resolve("AAPL", "5min")
"""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from typing import Optional

from stockfeed.cache import CacheEntry, Decision, FreshnessCache
from stockfeed.config import DEMO_API_KEY, ProviderType, StockFeedConfig
from stockfeed.errors import FeedError, FeedErrorCode
from stockfeed.events import LogBuffer, LogSink
from stockfeed.generator import SeriesGenerator
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.models.log_message import LogMessage, MessageType
from stockfeed.normalizer import normalize, parse_payload
from stockfeed.providers import create_client
from stockfeed.results import FetchFailure, FetchResult, FetchSuccess
from stockfeed.scheduler import (
    CancellableTimer,
    RefreshScheduler,
    Subscription,
    SubscriptionState,
)
from stockfeed.status import Horizon, Status, classify

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Cache
    "FreshnessCache",
    "CacheEntry",
    "Decision",
    "create_cache_from_env",
    # Scheduling
    "RefreshScheduler",
    "Subscription",
    "SubscriptionState",
    "CancellableTimer",
    # Fetching
    "create_client",
    "FetchResult",
    "FetchSuccess",
    "FetchFailure",
    "normalize",
    "parse_payload",
    # Generation and classification
    "SeriesGenerator",
    "classify",
    "Status",
    "Horizon",
    # Config
    "StockFeedConfig",
    "ProviderType",
    "Interval",
    # Errors
    "FeedError",
    "FeedErrorCode",
    # Models
    "Bar",
    "LogMessage",
    "MessageType",
    # Observability
    "LogBuffer",
    "LogSink",
]


def create_cache_from_env(sink: Optional[LogSink] = None) -> FreshnessCache:
    """Zero-config factory that reads the provider and API key from env vars.

    Without a ``sink`` the cache reports into a fresh ``LogBuffer``.

    Environment variables:
        STOCKFEED_PROVIDER: "alphavantage" or "mock" (default: "alphavantage").
        ALPHAVANTAGE_API_KEY: Alpha Vantage API key (default: "demo").
        STOCKFEED_TIMEOUT_SECONDS: Per-attempt timeout (default: 10).
        STOCKFEED_MIN_FETCH_SPACING_SECONDS: Minimum seconds between
            attempts for one key (default: 300).
        STOCKFEED_MAX_RETRIES: Failed attempts before a key stops
            refetching (default: 2).
    """
    config = StockFeedConfig(
        provider=ProviderType(os.getenv("STOCKFEED_PROVIDER", "alphavantage").strip().lower()),
        api_key=os.getenv("ALPHAVANTAGE_API_KEY") or DEMO_API_KEY,
        timeout_seconds=float(os.getenv("STOCKFEED_TIMEOUT_SECONDS", "10")),
        min_fetch_spacing=timedelta(
            seconds=float(os.getenv("STOCKFEED_MIN_FETCH_SPACING_SECONDS", "300")),
        ),
        max_retries=int(os.getenv("STOCKFEED_MAX_RETRIES", "2")),
    )

    if sink is None:
        sink = LogBuffer(config.log_buffer_size)

    kwargs: dict = {"sink": sink}
    if config.provider is ProviderType.ALPHAVANTAGE:
        kwargs.update(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
            output_size=config.output_size,
        )
    client = create_client(config.provider, **kwargs)
    return FreshnessCache(client, config=config, sink=sink)
