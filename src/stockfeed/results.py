"""Outcome of a single upstream attempt."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from stockfeed.errors import FeedErrorCode
from stockfeed.models.bar import Bar


@dataclass(frozen=True)
class FetchSuccess:
    """Upstream returned a usable, normalized series."""

    bars: list[Bar] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    """Upstream attempt failed.

    Attributes:
        code: Failure classification.
        message: Human-readable detail (upstream note, error text, ...).
        status: HTTP status for ``HTTP_ERROR`` failures.
    """

    code: FeedErrorCode
    message: str = ""
    status: int | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def soft(self) -> bool:
        """Rate-limit notices are expected in the demo credential tier."""
        return self.code is FeedErrorCode.RATE_LIMITED

    def describe(self) -> str:
        detail = self.message or self.code.value
        if self.status is not None:
            return f"{self.code.value} ({self.status}): {detail}"
        return f"{self.code.value}: {detail}"


FetchResult = Union[FetchSuccess, FetchFailure]
