"""RefreshScheduler: periodic re-resolution of mounted subscriptions."""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from stockfeed.cache import FreshnessCache
from stockfeed.errors import FeedError, FeedErrorCode
from stockfeed.events import LogSink, emit
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.models.log_message import MessageType
from stockfeed.status import Status, classify, percent_change

logger = logging.getLogger(__name__)


class SubscriptionState(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class CancellableTimer:
    """One-shot timer running ``callback`` after ``delay`` seconds."""

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        self.delay = delay
        self.callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            raise RuntimeError("Timer already running")
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> asyncio.Task[None] | None:
        """Cancel the pending run; returns its task if it was still running."""
        task, self._task = self._task, None
        if task is None or task.done():
            return None
        task.cancel()
        return task

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        await self.callback()


UpdateCallback = Callable[["Subscription"], Any]


@dataclass(eq=False)
class Subscription:
    """A mounted (symbol, interval) view kept fresh by the scheduler."""

    id: str
    symbol: str
    interval: Interval
    on_update: Optional[UpdateCallback] = None
    state: SubscriptionState = SubscriptionState.ACTIVE
    series: list[Bar] = field(default_factory=list)
    is_synthetic: bool = False
    updated_at: datetime | None = None
    refreshes: int = 0
    _timer: CancellableTimer | None = field(default=None, repr=False)
    _last_close: float | None = field(default=None, repr=False)
    _generation: int = field(default=0, repr=False)

    @property
    def status(self) -> Status:
        return classify(self.series)

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and self._timer.active


class RefreshScheduler:
    """Drive ``FreshnessCache.resolve`` for each subscription on a timer.

    A subscription stays ``ACTIVE`` (timer armed, period = the interval's
    max cache age) while its data is real, retries are left and the interval
    is intraday. Otherwise it is ``PAUSED`` until its symbol or interval
    changes.
    """

    def __init__(
        self,
        cache: FreshnessCache,
        *,
        sink: Optional[LogSink] = None,
    ) -> None:
        self.cache = cache
        self.config = cache.config
        self.sink = sink if sink is not None else cache.sink
        self._subscriptions: dict[str, Subscription] = {}

    @property
    def subscriptions(self) -> list[Subscription]:
        return list(self._subscriptions.values())

    async def subscribe(
        self,
        symbol: str,
        interval: Interval | str,
        on_update: Optional[UpdateCallback] = None,
    ) -> Subscription:
        """Register a subscription and resolve it immediately."""
        symbol = symbol.strip().upper()
        if not symbol:
            raise FeedError("symbol must be a non-empty ticker", code=FeedErrorCode.INVALID_REQUEST)
        sub = Subscription(
            id=uuid.uuid4().hex[:12],
            symbol=symbol,
            interval=Interval.parse(interval),
            on_update=on_update,
        )
        self._subscriptions[sub.id] = sub
        await self._refresh(sub)
        return sub

    async def change(
        self,
        sub: Subscription,
        *,
        symbol: str | None = None,
        interval: Interval | str | None = None,
    ) -> Subscription:
        """Point ``sub`` at a new key; cancels its timer and resolves now."""
        if sub.state is SubscriptionState.CLOSED:
            raise FeedError(f"Subscription {sub.id} is closed", code=FeedErrorCode.INVALID_REQUEST)
        self._cancel_timer(sub)
        sub._generation += 1
        if symbol is not None:
            sub.symbol = symbol.strip().upper()
        if interval is not None:
            sub.interval = Interval.parse(interval)
        sub.state = SubscriptionState.ACTIVE
        sub._last_close = None
        await self._refresh(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Cancel the timer; an in-flight fetch still lands in the cache."""
        self._close(sub)

    async def close(self) -> None:
        """Unsubscribe everything and wait for cancelled timers to finish."""
        current = asyncio.current_task()
        cancelled = [self._close(sub) for sub in self.subscriptions]
        pending = [t for t in cancelled if t is not None and t is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------- internal

    def _close(self, sub: Subscription) -> asyncio.Task[None] | None:
        task = self._cancel_timer(sub)
        sub._generation += 1
        sub.state = SubscriptionState.CLOSED
        self._subscriptions.pop(sub.id, None)
        self.cache.forget(sub.id)
        return task

    async def _refresh(self, sub: Subscription, *, from_timer: bool = False) -> None:
        generation = sub._generation
        resolving = self.cache.resolve(sub.symbol, sub.interval, consumer=sub.id)
        if from_timer:
            # Cancelling the timer must not abort the shared cache update.
            series = await asyncio.shield(resolving)
        else:
            series = await resolving

        # Closed or re-keyed while resolving.
        if sub.state is SubscriptionState.CLOSED or sub._generation != generation:
            return

        sub.series = series
        sub.is_synthetic = self.cache.is_synthetic(sub.symbol, sub.interval)
        sub.updated_at = self.cache.clock()
        sub.refreshes += 1
        self._report_price(sub)

        previous = sub.state
        sub.state = self._next_state(sub)
        if sub.state is SubscriptionState.ACTIVE:
            self._arm(sub)
        elif previous is SubscriptionState.ACTIVE:
            emit(
                self.sink,
                f"{sub.symbol} {sub.interval.value}: auto-refresh paused",
            )

        await self._notify(sub)

    def _next_state(self, sub: Subscription) -> SubscriptionState:
        if self.config.refresh_period_for(sub.interval) is None:
            return SubscriptionState.PAUSED
        if self.cache.is_synthetic(sub.symbol, sub.interval):
            return SubscriptionState.PAUSED
        if self.cache.circuit_open(sub.symbol, sub.interval):
            return SubscriptionState.PAUSED
        return SubscriptionState.ACTIVE

    def _arm(self, sub: Subscription) -> None:
        period = self.config.refresh_period_for(sub.interval)
        if period is None:
            return
        self._cancel_timer(sub)

        async def fire() -> None:
            sub._timer = None
            await self._refresh(sub, from_timer=True)

        sub._timer = CancellableTimer(period.total_seconds(), fire)
        sub._timer.start()

    @staticmethod
    def _cancel_timer(sub: Subscription) -> asyncio.Task[None] | None:
        timer, sub._timer = sub._timer, None
        return timer.cancel() if timer is not None else None

    def _report_price(self, sub: Subscription) -> None:
        if not sub.series:
            return
        latest = sub.series[-1].close
        previous = sub._last_close
        if previous == latest:
            return
        sub._last_close = latest

        change = percent_change(previous, latest) if previous is not None else None
        if change is None or change == 0:
            emit(self.sink, f"{sub.symbol} Latest stock price: ${latest:.2f}")
        elif change > 0:
            emit(
                self.sink,
                f"{sub.symbol} Latest stock price: ${latest:.2f} (↑ +{change:.2f}%)",
                MessageType.SUCCESS,
            )
        else:
            emit(
                self.sink,
                f"{sub.symbol} Latest stock price: ${latest:.2f} (↓ {change:.2f}%)",
                MessageType.WARNING,
            )

    async def _notify(self, sub: Subscription) -> None:
        if sub.on_update is None:
            return
        try:
            result = sub.on_update(sub)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("%s %s: update callback failed", sub.symbol, sub.interval.value)
