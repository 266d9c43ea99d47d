"""Bar (OHLCV) data model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Bar:
    """Single price bar.

    Attributes:
        timestamp: Bar timestamp (start of period, timezone-aware).
        open: Opening price.
        high: High price.
        low: Low price.
        close: Closing price.
        volume: Traded volume (shares).
    """

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int

    @property
    def is_consistent(self) -> bool:
        """True when ``low <= open, close <= high`` and volume is non-negative."""
        return (
            self.low <= min(self.open, self.close)
            and max(self.open, self.close) <= self.high
            and self.volume >= 0
        )
