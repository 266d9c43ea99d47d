"""Upstream payload normalization.

The upstream is Alpha Vantage's ``/query`` endpoint. A successful body looks
like::

    {
        "Meta Data": {"...": "...", "6. Time Zone": "US/Eastern"},
        "Time Series (5min)": {
            "2024-01-15 15:55:00": {
                "1. open": "185.10", "2. high": "185.32", "3. low": "185.01",
                "4. close": "185.20", "5. volume": "104233"
            },
            ...
        }
    }

while throttled or invalid requests come back as ``{"Note": ...}``,
``{"Information": ...}`` or ``{"Error Message": ...}``, still with HTTP 200.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from stockfeed.errors import FeedError, FeedErrorCode
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.results import FetchFailure, FetchResult, FetchSuccess

ERROR_KEY = "Error Message"
RATE_LIMIT_KEYS = ("Note", "Information")
META_KEY = "Meta Data"

_FIELDS = ("1. open", "2. high", "3. low", "4. close", "5. volume")


def normalize(payload: dict[str, Any], interval: Interval | str) -> list[Bar]:
    """Convert the series under ``interval``'s label into bars, oldest first.

    Returns an empty list when the label is absent. Raises ``FeedError``
    (``PARSE_FAILURE``) when an entry carries a malformed field.
    """
    interval = Interval.parse(interval)
    raw_series = payload.get(interval.series_label)
    if not isinstance(raw_series, dict):
        return []

    tz = _payload_timezone(payload)
    bars = [_entry_to_bar(stamp, values, tz) for stamp, values in raw_series.items()]
    bars.sort(key=lambda b: b.timestamp)
    return bars


def parse_payload(payload: Any, interval: Interval | str) -> FetchResult:
    """Classify an upstream body. Never raises."""
    interval = Interval.parse(interval)
    if not isinstance(payload, dict):
        return FetchFailure(
            FeedErrorCode.PARSE_FAILURE,
            f"Expected a JSON object, got {type(payload).__name__}",
        )

    if ERROR_KEY in payload:
        return FetchFailure(FeedErrorCode.UPSTREAM_ERROR, str(payload[ERROR_KEY]))

    for key in RATE_LIMIT_KEYS:
        if key in payload:
            return FetchFailure(FeedErrorCode.RATE_LIMITED, str(payload[key]))

    if interval.series_label not in payload:
        return FetchFailure(
            FeedErrorCode.NOT_FOUND,
            f"'{interval.series_label}' missing from response",
        )

    try:
        bars = normalize(payload, interval)
    except FeedError as exc:
        return FetchFailure(exc.code, exc.message)

    if not bars:
        return FetchFailure(
            FeedErrorCode.NO_DATA,
            f"'{interval.series_label}' is empty",
        )
    return FetchSuccess(bars)


# ---- helpers ----

def _payload_timezone(payload: dict[str, Any]) -> tzinfo:
    meta = payload.get(META_KEY)
    if isinstance(meta, dict):
        for key, value in meta.items():
            if key.endswith("Time Zone") and isinstance(value, str):
                try:
                    return ZoneInfo(value)
                except (ZoneInfoNotFoundError, ValueError):
                    break
    return timezone.utc


def _entry_to_bar(stamp: str, values: Any, tz: tzinfo) -> Bar:
    if not isinstance(values, dict):
        raise FeedError(
            f"Entry {stamp!r} is not an object",
            code=FeedErrorCode.PARSE_FAILURE,
        )
    missing = [f for f in _FIELDS if f not in values]
    if missing:
        raise FeedError(
            f"Entry {stamp!r} missing {', '.join(missing)}",
            code=FeedErrorCode.PARSE_FAILURE,
        )

    try:
        ts = datetime.fromisoformat(stamp)
    except (TypeError, ValueError) as exc:
        raise FeedError(
            f"Bad timestamp {stamp!r}",
            code=FeedErrorCode.PARSE_FAILURE,
        ) from exc
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=tz)

    return Bar(
        timestamp=ts.astimezone(timezone.utc),
        open=_to_float(values["1. open"], stamp),
        high=_to_float(values["2. high"], stamp),
        low=_to_float(values["3. low"], stamp),
        close=_to_float(values["4. close"], stamp),
        volume=_to_int(values["5. volume"], stamp),
    )


def _to_float(raw: Any, stamp: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise FeedError(
            f"Bad price {raw!r} at {stamp}",
            code=FeedErrorCode.PARSE_FAILURE,
        ) from exc
    if not math.isfinite(value):
        raise FeedError(
            f"Non-finite price {raw!r} at {stamp}",
            code=FeedErrorCode.PARSE_FAILURE,
        )
    return value


def _to_int(raw: Any, stamp: str) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        try:
            value = int(float(raw))
        except (TypeError, ValueError, OverflowError) as exc:
            raise FeedError(
                f"Bad volume {raw!r} at {stamp}",
                code=FeedErrorCode.PARSE_FAILURE,
            ) from exc
    if value < 0:
        raise FeedError(
            f"Negative volume {raw!r} at {stamp}",
            code=FeedErrorCode.PARSE_FAILURE,
        )
    return value
