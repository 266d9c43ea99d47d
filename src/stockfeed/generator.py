"""Synthetic series generation for when no real data is available."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from enum import Enum

from stockfeed.clock import Clock, utcnow
from stockfeed.config import MAX_SERIES_BARS
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar

BASE_PRICES: dict[str, float] = {
    "AAPL": 180.0,
    "MSFT": 410.0,
    "GOOGL": 140.0,
    "GOOG": 141.0,
    "AMZN": 175.0,
    "META": 480.0,
    "TSLA": 240.0,
    "NVDA": 850.0,
    "NFLX": 600.0,
    "AMD": 170.0,
    "IBM": 185.0,
}
DEFAULT_BASE_PRICE = 100.0

VOLATILITY = 0.02        # max noise per step
BAR_SPREAD = 0.01        # max high/low distance from the centre price
TREND_WEIGHT = 0.05      # trend contribution at the newest bar
DAILY_DRIFT = 0.003      # max cumulative factor nudge per simulated day
BASE_VOLUME = (50_000, 500_000)


class TrendMode(Enum):
    UP = "up"
    DOWN = "down"
    MIXED = "mixed"


_TREND_SIGN = {TrendMode.UP: 1, TrendMode.DOWN: -1, TrendMode.MIXED: 0}


def base_price(symbol: str) -> float:
    return BASE_PRICES.get(symbol.upper(), DEFAULT_BASE_PRICE)


class SeriesGenerator:
    """Random-walk OHLCV generator.

    The shape is fixed (base price, drift, noise, bar spread) while the
    values come from ``rng``; pass a seeded ``random.Random`` for
    reproducible output.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        *,
        max_bars: int = MAX_SERIES_BARS,
        clock: Clock = utcnow,
    ) -> None:
        self.rng = rng or random.Random()
        self.max_bars = min(max_bars, MAX_SERIES_BARS)
        self.clock = clock
        self.calls = 0

    def bar_count(self, interval: Interval | str) -> int:
        interval = Interval.parse(interval)
        bars_per_day = 24 * 60 / interval.minutes
        return max(1, min(int(interval.history_days * bars_per_day), self.max_bars))

    def generate(
        self,
        symbol: str,
        interval: Interval | str,
        *,
        now: datetime | None = None,
    ) -> list[Bar]:
        """Return a synthetic series ending at ``now`` (floored to the interval)."""
        self.calls += 1
        interval = Interval.parse(interval)
        rng = self.rng

        base = base_price(symbol)
        mode = rng.choice(list(TrendMode))
        count = self.bar_count(interval)
        step = timedelta(minutes=interval.minutes)
        end = _floor(now or self.clock(), interval)

        bars: list[Bar] = []
        factor = 1.0
        day = None
        prev_price: float | None = None

        # Walk backward from the newest bar.
        for i in range(count):
            ts = end - step * i
            if ts.date() != day:
                day = ts.date()
                direction = _TREND_SIGN[mode] or rng.choice((1, -1))
                factor /= 1 + direction * DAILY_DRIFT * rng.random()

            progress = 1 - i / count
            trend = _TREND_SIGN[mode] * TREND_WEIGHT * progress
            noise = rng.uniform(-VOLATILITY, VOLATILITY)
            price = base * factor * (1 + noise + trend)

            high = price * (1 + rng.random() * BAR_SPREAD)
            low = price * (1 - rng.random() * BAR_SPREAD)
            open_ = low + rng.random() * (high - low)
            close = low + rng.random() * (high - low)

            volume = rng.randint(*BASE_VOLUME)
            if prev_price:
                move = abs(price - prev_price) / prev_price
                if move > VOLATILITY / 2:
                    volume = int(volume * (1 + move * 20))
            prev_price = price

            bars.append(Bar(
                timestamp=ts,
                open=round(open_, 2),
                high=round(high, 2),
                low=round(low, 2),
                close=round(close, 2),
                volume=volume,
            ))

        bars.sort(key=lambda b: b.timestamp)
        return bars


def _floor(moment: datetime, interval: Interval) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if not interval.is_intraday:
        return midnight
    elapsed = (moment - midnight) // timedelta(minutes=interval.minutes)
    return midnight + elapsed * timedelta(minutes=interval.minutes)
