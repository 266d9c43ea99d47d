"""DataFrame helpers for chart collaborators."""

from __future__ import annotations

from datetime import timedelta
from typing import Sequence

import pandas as pd

from stockfeed.models.bar import Bar

COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]

CHART_PERIODS: dict[str, timedelta] = {
    "day": timedelta(days=1),
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}
MIN_CHART_POINTS = 5


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """One row per bar, columns in ``COLUMNS`` order."""
    records = [
        {
            "timestamp": b.timestamp,
            "open": b.open,
            "high": b.high,
            "low": b.low,
            "close": b.close,
            "volume": b.volume,
        }
        for b in bars
    ]
    return pd.DataFrame(records, columns=COLUMNS)


def frame_to_bars(df: pd.DataFrame) -> list[Bar]:
    bars: list[Bar] = []
    for _, row in df.iterrows():
        ts = pd.Timestamp(row["timestamp"])
        if ts.tzinfo is None:
            ts = ts.tz_localize("UTC")
        bars.append(Bar(
            timestamp=ts.to_pydatetime(),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=int(row["volume"]),
        ))
    return bars


def add_moving_averages(
    df: pd.DataFrame,
    windows: Sequence[int] = (5, 20),
) -> pd.DataFrame:
    """Return a copy with ``ma{n}`` close averages; NaN until a window fills."""
    out = df.copy()
    for window in windows:
        out[f"ma{window}"] = out["close"].rolling(window=window, min_periods=window).mean()
    return out


def chart_window(bars: Sequence[Bar], period: str) -> list[Bar]:
    """Bars within ``period`` of the newest bar.

    Falls back to the whole series when fewer than ``MIN_CHART_POINTS``
    bars would remain.
    """
    if period not in CHART_PERIODS:
        raise ValueError(f"Invalid chart period: {period!r}. Valid: {list(CHART_PERIODS)}")
    if not bars:
        return []
    cutoff = bars[-1].timestamp - CHART_PERIODS[period]
    filtered = [b for b in bars if b.timestamp >= cutoff]
    return filtered if len(filtered) >= MIN_CHART_POINTS else list(bars)
