"""Shared fixtures for stockfeed tests."""

from __future__ import annotations

import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# Ensure src/ is on the path for editable-style imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from stockfeed.models.bar import Bar
from stockfeed.providers.mock import MockFetchClient

T0 = datetime(2024, 1, 15, 15, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_bars(minute_offsets: list[int], start: datetime = T0, price: float = 150.0) -> list[Bar]:
    bars = []
    for i, offset in enumerate(minute_offsets):
        p = price + i * 0.1
        bars.append(Bar(
            timestamp=start + timedelta(minutes=offset),
            open=p,
            high=p + 0.5,
            low=p - 0.5,
            close=p + 0.2,
            volume=10_000 + i * 500,
        ))
    return bars


def make_payload(
    label: str = "Time Series (5min)",
    stamps: list[str] | None = None,
    time_zone: str | None = "US/Eastern",
) -> dict[str, Any]:
    """Alpha Vantage-shaped body; entries listed newest first like the real API."""
    stamps = stamps or [
        "2024-01-15 15:55:00",
        "2024-01-15 15:50:00",
        "2024-01-15 15:40:00",
        "2024-01-12 16:00:00",
    ]
    series = {}
    for i, stamp in enumerate(stamps):
        base = 185.0 - i
        series[stamp] = {
            "1. open": f"{base:.4f}",
            "2. high": f"{base + 0.8:.4f}",
            "3. low": f"{base - 0.6:.4f}",
            "4. close": f"{base + 0.3:.4f}",
            "5. volume": str(100_000 + i * 1_000),
        }
    payload: dict[str, Any] = {label: series}
    if time_zone is not None:
        payload["Meta Data"] = {
            "1. Information": "Intraday (5min) open, high, low, close prices and volume",
            "2. Symbol": "AAPL",
            "6. Time Zone": time_zone,
        }
    return payload


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)


@pytest.fixture
def mock_client() -> MockFetchClient:
    return MockFetchClient()


@pytest.fixture
def sample_bars() -> list[Bar]:
    """5 one-minute bars with a gap, so spacing is irregular."""
    return make_bars([0, 1, 2, 4, 5])


@pytest.fixture
def regular_bars() -> list[Bar]:
    """5 bars exactly one minute apart."""
    return make_bars([0, 1, 2, 3, 4])
