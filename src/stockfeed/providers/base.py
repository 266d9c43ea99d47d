"""Abstract base class for fetch clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from stockfeed.events import LogSink, emit
from stockfeed.interval import Interval
from stockfeed.models.log_message import MessageType
from stockfeed.results import FetchResult, FetchSuccess


class BaseFetchClient(ABC):
    """One upstream attempt per ``fetch`` call.

    Implementations classify every outcome into a ``FetchResult`` and never
    raise for upstream trouble (timeouts, HTTP errors, throttling notes).
    Each attempt reports once when it starts and once when it resolves.
    """

    sink: Optional[LogSink] = None

    @abstractmethod
    async def fetch(self, symbol: str, interval: Interval | str) -> FetchResult:
        """Fetch the series for ``symbol`` at ``interval``.

        Returns:
            ``FetchSuccess`` with bars ordered by timestamp ascending, or a
            ``FetchFailure`` describing why no bars are available.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources (default: nothing to release)."""

    async def __aenter__(self) -> "BaseFetchClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Observability ---

    def _report_start(self, symbol: str, interval: Interval) -> None:
        emit(self.sink, f"{symbol}: requesting {interval.value} data")

    def _report_result(self, symbol: str, interval: Interval, result: FetchResult) -> None:
        if isinstance(result, FetchSuccess):
            emit(
                self.sink,
                f"{symbol}: received {len(result.bars)} {interval.value} bars",
                MessageType.SUCCESS,
            )
        else:
            emit(
                self.sink,
                f"{symbol}: {interval.value} fetch failed, {result.describe()}",
                MessageType.WARNING if result.soft else MessageType.ERROR,
            )
