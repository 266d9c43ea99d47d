"""Coarse market-movement classification of a series."""

from __future__ import annotations

import math
from enum import Enum
from typing import Sequence

from stockfeed.models.bar import Bar

CRASH_PCT = -3.0
DOWN_PCT = -0.5
UP_PCT = 0.5
SURGE_PCT = 3.0
LONG_LOOKBACK = 5
LONG_ESCALATION_PCT = 5.0


class Status(str, Enum):
    SURGE = "surge"
    UP = "up"
    STABLE = "stable"
    DOWN = "down"
    CRASH = "crash"
    ABNORMAL = "abnormal"
    UNKNOWN = "unknown"


class Horizon(Enum):
    """Which two bars the change is measured between."""

    SHORT = "short"    # two most recent bars
    WHOLE = "whole"    # first and last bar


def percent_change(reference: float, current: float) -> float | None:
    """Percent move from ``reference`` to ``current``; None if undefined."""
    if not (math.isfinite(reference) and math.isfinite(current)) or reference <= 0:
        return None
    return (current - reference) * 100 / reference


def status_for_change(pct: float) -> Status:
    if pct <= CRASH_PCT:
        return Status.CRASH
    if pct <= DOWN_PCT:
        return Status.DOWN
    if pct >= SURGE_PCT:
        return Status.SURGE
    if pct >= UP_PCT:
        return Status.UP
    return Status.STABLE


def classify(
    bars: Sequence[Bar] | None,
    override: str | None = None,
    *,
    horizon: Horizon = Horizon.SHORT,
) -> Status:
    """Classify the latest movement of ``bars``.

    Args:
        bars: Series ordered oldest first.
        override: Forced status (demo mode); returned as-is when it names a
            status, ``UNKNOWN`` otherwise.
        horizon: ``SHORT`` compares the last two closes and may escalate a
            stable read when the close five bars back differs by more than
            5%; ``WHOLE`` compares first and last close.
    """
    if override:
        try:
            return Status(override)
        except ValueError:
            return Status.UNKNOWN

    if not bars or len(bars) < 2:
        return Status.UNKNOWN

    if horizon is Horizon.WHOLE:
        pct = percent_change(bars[0].close, bars[-1].close)
        return Status.ABNORMAL if pct is None else status_for_change(pct)

    pct = percent_change(bars[-2].close, bars[-1].close)
    if pct is None:
        return Status.ABNORMAL
    status = status_for_change(pct)

    if status is Status.STABLE and len(bars) > LONG_LOOKBACK:
        long_pct = percent_change(bars[-1 - LONG_LOOKBACK].close, bars[-1].close)
        if long_pct is not None:
            if long_pct > LONG_ESCALATION_PCT:
                return Status.UP
            if long_pct < -LONG_ESCALATION_PCT:
                return Status.DOWN
    return status
