"""Sampling intervals and the per-interval lookup tables."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum


class Interval(Enum):
    """Bar granularity supported by the feed."""

    MIN_1 = "1min"
    MIN_5 = "5min"
    MIN_15 = "15min"
    MIN_30 = "30min"
    MIN_60 = "60min"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Interval | str) -> Interval:
        """Accept an ``Interval`` or its string value (``"5min"``, ``"daily"``)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = [i.value for i in cls]
            raise ValueError(f"Invalid interval: {value!r}. Valid: {valid}") from None

    @property
    def is_intraday(self) -> bool:
        return self in _INTRADAY

    @property
    def minutes(self) -> int:
        """Length of one bar in minutes (months count as 30 days)."""
        return _STEP_MINUTES[self]

    @property
    def upstream_function(self) -> str:
        return _UPSTREAM_FUNCTION[self]

    @property
    def upstream_interval(self) -> str | None:
        """The ``interval`` query parameter, only sent for intraday requests."""
        return self.value if self.is_intraday else None

    @property
    def series_label(self) -> str:
        """Key of the bar map inside the upstream payload."""
        return _SERIES_LABEL[self]

    @property
    def default_max_age(self) -> timedelta:
        return _DEFAULT_MAX_AGE[self]

    @property
    def history_days(self) -> int:
        """Days of history the synthetic generator spans."""
        return _HISTORY_DAYS[self]


_INTRADAY = frozenset({
    Interval.MIN_1, Interval.MIN_5, Interval.MIN_15, Interval.MIN_30, Interval.MIN_60,
})

_STEP_MINUTES: dict[Interval, int] = {
    Interval.MIN_1: 1,
    Interval.MIN_5: 5,
    Interval.MIN_15: 15,
    Interval.MIN_30: 30,
    Interval.MIN_60: 60,
    Interval.DAILY: 24 * 60,
    Interval.WEEKLY: 7 * 24 * 60,
    Interval.MONTHLY: 30 * 24 * 60,
}

_UPSTREAM_FUNCTION: dict[Interval, str] = {
    **{i: "TIME_SERIES_INTRADAY" for i in _INTRADAY},
    Interval.DAILY: "TIME_SERIES_DAILY",
    Interval.WEEKLY: "TIME_SERIES_WEEKLY",
    Interval.MONTHLY: "TIME_SERIES_MONTHLY",
}

_SERIES_LABEL: dict[Interval, str] = {
    **{i: f"Time Series ({i.value})" for i in _INTRADAY},
    Interval.DAILY: "Time Series (Daily)",
    Interval.WEEKLY: "Weekly Time Series",
    Interval.MONTHLY: "Monthly Time Series",
}

_DEFAULT_MAX_AGE: dict[Interval, timedelta] = {
    Interval.MIN_1: timedelta(minutes=5),
    Interval.MIN_5: timedelta(minutes=15),
    Interval.MIN_15: timedelta(minutes=60),
    Interval.MIN_30: timedelta(minutes=60),
    Interval.MIN_60: timedelta(minutes=60),
    Interval.DAILY: timedelta(days=1),
    Interval.WEEKLY: timedelta(days=7),
    Interval.MONTHLY: timedelta(days=30),
}

_HISTORY_DAYS: dict[Interval, int] = {
    Interval.MIN_1: 7,
    Interval.MIN_5: 30,
    Interval.MIN_15: 60,
    Interval.MIN_30: 90,
    Interval.MIN_60: 180,
    Interval.DAILY: 365,
    Interval.WEEKLY: 3650,
    Interval.MONTHLY: 7300,
}
