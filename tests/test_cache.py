"""Tests for FreshnessCache."""

import asyncio
from datetime import timedelta

import pytest

from conftest import T0, make_bars
from stockfeed.cache import Decision, FreshnessCache
from stockfeed.config import StockFeedConfig
from stockfeed.errors import FeedError, FeedErrorCode
from stockfeed.events import LogBuffer
from stockfeed.generator import SeriesGenerator
from stockfeed.interval import Interval
from stockfeed.models.bar import Bar
from stockfeed.models.log_message import MessageType
from stockfeed.providers.base import BaseFetchClient
from stockfeed.providers.mock import MockFetchClient
from stockfeed.results import FetchSuccess


@pytest.fixture
def config():
    return StockFeedConfig(max_bars=200)


@pytest.fixture
def buf():
    return LogBuffer(max_messages=50)


@pytest.fixture
def generator(rng, clock):
    return SeriesGenerator(rng, max_bars=200, clock=clock)


@pytest.fixture
def cache(mock_client, config, generator, buf, clock):
    mock_client.sink = buf
    return FreshnessCache(mock_client, config=config, generator=generator, sink=buf, clock=clock)


class TestResolve:
    @pytest.mark.asyncio
    async def test_real_data_returned(self, cache, mock_client, sample_bars):
        mock_client.set_bars("AAPL", sample_bars)
        bars = await cache.resolve("aapl", "1min")
        assert bars == sample_bars
        assert not cache.is_synthetic("AAPL", "1min")
        assert cache.entry("AAPL", "1min").fetched_at == T0

    @pytest.mark.asyncio
    async def test_repeat_within_spacing_does_not_fetch(self, cache, mock_client, sample_bars, clock):
        mock_client.set_bars("AAPL", sample_bars)
        first = await cache.resolve("AAPL", "1min")
        clock.advance(minutes=2)
        second = await cache.resolve("AAPL", "1min")
        assert first == second
        assert mock_client.attempts == 1
        assert cache.fetch_attempts == 1

    @pytest.mark.asyncio
    async def test_key_change_bypasses_spacing(self, cache, mock_client, sample_bars):
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min")
        await cache.resolve("AAPL", "5min")
        await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 3

    @pytest.mark.asyncio
    async def test_consumers_tracked_separately(self, cache, mock_client, sample_bars, clock):
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min", consumer="a")
        await cache.resolve("MSFT", "1min", consumer="b")
        clock.advance(minutes=1)
        await cache.resolve("AAPL", "1min", consumer="a")
        assert mock_client.attempts == 2

    @pytest.mark.asyncio
    async def test_stale_entry_refetched(self, cache, mock_client, sample_bars, clock):
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min")
        clock.advance(minutes=6)
        await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 2

    @pytest.mark.asyncio
    async def test_fresh_entry_reused_after_spacing(self, mock_client, generator, clock, sample_bars):
        config = StockFeedConfig(max_bars=200, max_age={"1min": timedelta(minutes=10)})
        cache = FreshnessCache(mock_client, config=config, generator=generator, clock=clock)
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min")
        clock.advance(minutes=6)
        await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 1
        clock.advance(minutes=5)
        await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 2

    @pytest.mark.asyncio
    async def test_returns_copy(self, cache, mock_client, sample_bars):
        mock_client.set_bars("AAPL", sample_bars)
        bars = await cache.resolve("AAPL", "1min")
        bars.clear()
        assert cache.entry("AAPL", "1min").series == sample_bars

    @pytest.mark.asyncio
    async def test_invalid_requests(self, cache):
        with pytest.raises(FeedError) as exc_info:
            await cache.resolve("  ", "1min")
        assert exc_info.value.code is FeedErrorCode.INVALID_REQUEST
        with pytest.raises(FeedError):
            await cache.resolve("AAPL", "2min")


class TestFallback:
    @pytest.mark.asyncio
    async def test_failure_yields_synthetic(self, cache, generator, buf):
        bars = await cache.resolve("AAPL", "1min")
        assert len(bars) == 200
        assert cache.is_synthetic("AAPL", "1min")
        entry = cache.entry("AAPL", "1min")
        assert entry.last_failure.code is FeedErrorCode.NOT_FOUND
        assert entry.retry_count == 1
        assert generator.calls == 1
        assert any("demo data" in m.text and m.type is MessageType.WARNING for m in buf.messages)

    @pytest.mark.asyncio
    async def test_rate_limit_note(self, cache, mock_client, generator, buf):
        mock_client.set_payload("IBM", "5min", {"Note": "Thank you for using Alpha Vantage!"})
        bars = await cache.resolve("IBM", "5min")
        assert bars
        assert generator.calls == 1
        assert cache.entry("IBM", "5min").last_failure.code is FeedErrorCode.RATE_LIMITED
        # soft failure reported as a warning, not an error
        assert not any(m.type is MessageType.ERROR for m in buf.messages)

    @pytest.mark.asyncio
    async def test_empty_series_is_no_data(self, cache, mock_client):
        mock_client.script(FetchSuccess([]))
        await cache.resolve("AAPL", "1min")
        assert cache.entry("AAPL", "1min").last_failure.code is FeedErrorCode.NO_DATA

    @pytest.mark.asyncio
    async def test_inconsistent_bars_rejected(self, cache, mock_client, sample_bars):
        bad = Bar(timestamp=sample_bars[-1].timestamp, open=10, high=5, low=8, close=9, volume=1)
        mock_client.set_bars("AAPL", sample_bars[:-1] + [bad])
        await cache.resolve("AAPL", "1min")
        entry = cache.entry("AAPL", "1min")
        assert entry.is_synthetic
        assert entry.last_failure.code is FeedErrorCode.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(self, mock_client, generator, clock, sample_bars):
        config = StockFeedConfig(max_bars=200, validate=False)
        cache = FreshnessCache(mock_client, config=config, generator=generator, clock=clock)
        bad = Bar(timestamp=sample_bars[-1].timestamp, open=10, high=5, low=8, close=9, volume=1)
        mock_client.set_bars("AAPL", sample_bars[:-1] + [bad])
        await cache.resolve("AAPL", "1min")
        assert not cache.is_synthetic("AAPL", "1min")

    @pytest.mark.asyncio
    async def test_client_exception_contained(self, config, generator, clock):
        class Exploding(BaseFetchClient):
            async def fetch(self, symbol, interval):
                raise RuntimeError("socket closed")

        cache = FreshnessCache(Exploding(), config=config, generator=generator, clock=clock)
        bars = await cache.resolve("AAPL", "1min")
        assert bars
        assert cache.entry("AAPL", "1min").last_failure.code is FeedErrorCode.NETWORK_ERROR

    @pytest.mark.asyncio
    async def test_uniform_spacing_marked_synthetic(self, cache, mock_client, regular_bars, buf):
        mock_client.set_bars("AAPL", regular_bars)
        bars = await cache.resolve("AAPL", "1min")
        entry = cache.entry("AAPL", "1min")
        assert bars == regular_bars
        assert entry.is_synthetic
        assert entry.retry_count == 0
        assert entry.last_failure is None
        assert any("uniform spacing" in m.text for m in buf.messages)


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_stops_after_max_retries(self, cache, mock_client, clock):
        first = await cache.resolve("AAPL", "1min")
        clock.advance(minutes=6)
        second = await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 2
        assert cache.circuit_open("AAPL", "1min")

        clock.advance(minutes=6)
        third = await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 2
        assert third == second
        assert first != second

    @pytest.mark.asyncio
    async def test_key_change_resets_retries(self, cache, mock_client, clock):
        await cache.resolve("AAPL", "1min")
        clock.advance(minutes=6)
        await cache.resolve("AAPL", "1min")
        assert cache.circuit_open("AAPL", "1min")

        await cache.resolve("AAPL", "5min")
        await cache.resolve("AAPL", "1min")
        assert mock_client.attempts == 4
        assert cache.entry("AAPL", "1min").retry_count == 1

    @pytest.mark.asyncio
    async def test_success_resets_retries(self, cache, mock_client, sample_bars, clock):
        mock_client.script(FeedErrorCode.TIMEOUT)
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min")
        assert cache.entry("AAPL", "1min").retry_count == 1
        clock.advance(minutes=6)
        bars = await cache.resolve("AAPL", "1min")
        entry = cache.entry("AAPL", "1min")
        assert bars == sample_bars
        assert entry.retry_count == 0
        assert not entry.is_synthetic


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_fetch(self, config, generator, clock, sample_bars):
        client = MockFetchClient(delay=0.05)
        client.set_bars("AAPL", sample_bars)
        cache = FreshnessCache(client, config=config, generator=generator, clock=clock)
        results = await asyncio.gather(
            cache.resolve("AAPL", "1min"),
            cache.resolve("AAPL", "1min"),
            cache.resolve("AAPL", "1min", consumer="other"),
        )
        assert client.attempts == 1
        assert all(r == sample_bars for r in results)

    @pytest.mark.asyncio
    async def test_clear_while_waiting_still_resolves(self, config, generator, clock, sample_bars):
        client = MockFetchClient(delay=0.05)
        client.set_bars("AAPL", sample_bars)
        cache = FreshnessCache(client, config=config, generator=generator, clock=clock)
        await cache.resolve("AAPL", "1min")
        clock.advance(minutes=6)

        first = asyncio.ensure_future(cache.resolve("AAPL", "1min"))
        second = asyncio.ensure_future(cache.resolve("AAPL", "1min", consumer="other"))
        await asyncio.sleep(0.01)
        cache.clear_all()
        results = await asyncio.gather(first, second)

        assert all(r == sample_bars for r in results)
        assert client.attempts == 3
        assert cache.entry("AAPL", "1min").series == sample_bars

    @pytest.mark.asyncio
    async def test_distinct_keys_fetch_in_parallel(self, config, generator, clock, sample_bars):
        client = MockFetchClient(delay=0.05)
        client.set_bars("AAPL", sample_bars)
        client.set_bars("MSFT", make_bars([0, 2, 3, 7, 8], price=400.0))
        cache = FreshnessCache(client, config=config, generator=generator, clock=clock)
        await asyncio.gather(
            cache.resolve("AAPL", "1min", consumer="a"),
            cache.resolve("MSFT", "1min", consumer="b"),
        )
        assert client.attempts == 2


class TestDecide:
    def test_order(self, cache, clock):
        from stockfeed.cache import CacheEntry

        entry = CacheEntry(symbol="AAPL", interval=Interval.MIN_1)
        assert cache.decide(entry, key_changed=False, now=clock()) is Decision.FETCH

        entry.fetched_at = entry.last_attempt_at = clock()
        assert cache.decide(entry, key_changed=True, now=clock()) is Decision.FETCH
        assert cache.decide(entry, key_changed=False, now=clock()) is Decision.TOO_SOON

        later = clock() + timedelta(minutes=5, seconds=30)
        entry.fetched_at = later - timedelta(minutes=1)
        assert cache.decide(entry, key_changed=False, now=later) is Decision.FRESH

        entry.is_synthetic = True
        entry.retry_count = 2
        assert cache.decide(entry, key_changed=False, now=later) is Decision.CIRCUIT_OPEN


class TestHousekeeping:
    @pytest.mark.asyncio
    async def test_forget_consumer(self, cache, mock_client, sample_bars):
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min", consumer="a")
        await cache.resolve("AAPL", "1min", consumer="a")
        assert mock_client.attempts == 1

        cache.forget("a")
        cache.forget("never-seen")
        await cache.resolve("AAPL", "1min", consumer="a")
        assert mock_client.attempts == 2

    @pytest.mark.asyncio
    async def test_clear(self, cache, mock_client, sample_bars):
        mock_client.set_bars("AAPL", sample_bars)
        await cache.resolve("AAPL", "1min")
        await cache.resolve("AAPL", "5min")
        await cache.resolve("MSFT", "1min")
        cache.clear("aapl")
        assert cache.keys() == [("MSFT", Interval.MIN_1)]
        cache.clear_all()
        assert cache.keys() == []
        assert cache.entry("MSFT", "1min") is None
