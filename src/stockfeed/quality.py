"""Data quality validation for bar series."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta

from stockfeed.models.bar import Bar


@dataclass
class ValidationCheck:
    """Single validation check result."""

    name: str
    passed: bool
    message: str = ""


@dataclass
class ValidationResult:
    """Aggregate validation result."""

    checks: list[ValidationCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def failed_checks(self) -> list[ValidationCheck]:
        return [c for c in self.checks if not c.passed]

    def summary(self) -> str:
        return "; ".join(c.message for c in self.failed_checks)


def validate_bars(bars: list[Bar]) -> ValidationResult:
    """Run all quality checks on a series.

    Checks:
        1. Not empty
        2. No NaN/Inf prices
        3. Volume sanity (non-negative)
        4. Timestamp ordering (strictly increasing)
        5. OHLC consistency (low <= open, close <= high)
    """
    result = ValidationResult()

    # 1. Not empty
    if not bars:
        result.checks.append(ValidationCheck("not_empty", False, "No bars provided"))
        return result
    result.checks.append(ValidationCheck("not_empty", True, f"{len(bars)} bars"))

    # 2. No NaN/Inf
    bad_values = sum(
        1
        for b in bars
        for val in (b.open, b.high, b.low, b.close)
        if math.isnan(val) or math.isinf(val)
    )
    if bad_values:
        result.checks.append(ValidationCheck("no_nulls", False, f"{bad_values} NaN/Inf values"))
    else:
        result.checks.append(ValidationCheck("no_nulls", True))

    # 3. Volume sanity
    neg_vol = sum(1 for b in bars if b.volume < 0)
    if neg_vol:
        result.checks.append(
            ValidationCheck("volume_sanity", False, f"{neg_vol} bars with negative volume")
        )
    else:
        result.checks.append(ValidationCheck("volume_sanity", True))

    # 4. Timestamp ordering
    out_of_order = sum(
        1 for prev, cur in zip(bars, bars[1:]) if cur.timestamp <= prev.timestamp
    )
    if out_of_order:
        result.checks.append(
            ValidationCheck("timestamp_order", False, f"{out_of_order} out of order")
        )
    else:
        result.checks.append(ValidationCheck("timestamp_order", True))

    # 5. OHLC consistency
    inconsistent = sum(1 for b in bars if not b.is_consistent)
    if inconsistent:
        result.checks.append(
            ValidationCheck("ohlc_consistency", False, f"{inconsistent} bars with H<L or H<O/C")
        )
    else:
        result.checks.append(ValidationCheck("ohlc_consistency", True))

    return result


def has_regular_spacing(
    bars: list[Bar],
    tolerance: timedelta = timedelta(milliseconds=100),
) -> bool:
    """True when there are >= 3 bars and every consecutive delta matches.

    Real intraday feeds have overnight and weekend gaps; a perfectly even
    grid is what the synthetic generator produces.
    """
    if len(bars) < 3:
        return False
    deltas = [cur.timestamp - prev.timestamp for prev, cur in zip(bars, bars[1:])]
    return max(deltas) - min(deltas) <= tolerance
