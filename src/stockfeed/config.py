"""Stock feed configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from stockfeed.interval import Interval

DEMO_API_KEY = "demo"
DEFAULT_BASE_URL = "https://www.alphavantage.co/query"
MAX_SERIES_BARS = 5000


class ProviderType(Enum):
    """Supported fetch client backends."""

    ALPHAVANTAGE = "alphavantage"
    MOCK = "mock"


@dataclass
class StockFeedConfig:
    """Configuration for FreshnessCache, its fetch client and the scheduler.

    Attributes:
        provider: Fetch client backend.
        api_key: Upstream API key. ``"demo"`` is the restricted free tier.
        base_url: Upstream query endpoint.
        timeout_seconds: Hard limit for one upstream attempt.
        output_size: Upstream ``outputsize`` ("compact" or "full").
        min_fetch_spacing: Minimum time between attempts for one key.
        max_retries: Consecutive failed attempts after which a synthetic
            series stops being refetched.
        demo_spacing_tolerance: Timestamp deltas equal within this tolerance
            mark a series as synthetic.
        max_age: Per-interval cache age overrides.
        max_bars: Upper bound on a generated series.
        validate: Whether to run quality checks on fetched bars.
        log_buffer_size: Messages kept by ``LogBuffer``.
    """

    provider: ProviderType = ProviderType.ALPHAVANTAGE
    api_key: str = DEMO_API_KEY
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 10.0
    output_size: str = "compact"
    min_fetch_spacing: timedelta = timedelta(minutes=5)
    max_retries: int = 2
    demo_spacing_tolerance: timedelta = timedelta(milliseconds=100)
    max_age: dict[Interval, timedelta] = field(default_factory=dict)
    max_bars: int = MAX_SERIES_BARS
    validate: bool = True
    log_buffer_size: int = 15

    def __post_init__(self) -> None:
        if not 0 < self.max_bars <= MAX_SERIES_BARS:
            raise ValueError(f"max_bars must be in 1..{MAX_SERIES_BARS}, got {self.max_bars}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.max_age = {Interval.parse(k): v for k, v in self.max_age.items()}

    @property
    def is_demo_key(self) -> bool:
        return not self.api_key or self.api_key == DEMO_API_KEY

    def max_age_for(self, interval: Interval) -> timedelta:
        return self.max_age.get(interval, interval.default_max_age)

    def refresh_period_for(self, interval: Interval) -> timedelta | None:
        """Auto-refresh period; ``None`` for daily and longer intervals."""
        if not interval.is_intraday:
            return None
        return self.max_age_for(interval)
