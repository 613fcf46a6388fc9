"""
Tests for the key cache: expiry handling and single-flight refresh.
"""

import asyncio

import pytest

from google_signin import KeyCache, KeySet, PublicKey, ServerRejectedError


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeFetcher:
    """
    Returns queued outcomes, one per fetch.

    Each outcome is either (KeySet, max_age or None) or an exception to
    raise. Fetches block on ``gate`` until it is set.
    """

    def __init__(self, clock: FakeClock, outcomes: list) -> None:
        self.clock = clock
        self.outcomes = list(outcomes)
        self.calls = 0
        self.gate = asyncio.Event()
        self.gate.set()

    async def fetch(self) -> tuple[KeySet, float | None]:
        self.calls += 1
        await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        key_set, max_age = outcome
        expiry = None if max_age is None else self.clock() + max_age
        return key_set, expiry


def make_key_set(*kids: str) -> KeySet:
    return KeySet({kid: PublicKey(kid=kid, n="n", e="AQAB") for kid in kids})


def rejected() -> ServerRejectedError:
    return ServerRejectedError("Failed to fetch keys: HTTP 500", status_code=500)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_fetch(clock):
    key_set = make_key_set("k1")
    fetcher = FakeFetcher(clock, [(key_set, 300)])
    fetcher.gate.clear()
    cache = KeyCache(fetcher, clock=clock)

    tasks = [asyncio.create_task(cache.get_or_refresh()) for _ in range(50)]
    await asyncio.sleep(0)
    fetcher.gate.set()
    results = await asyncio.gather(*tasks)

    assert fetcher.calls == 1
    assert cache.fetch_count == 1
    assert all(result is key_set for result in results)


@pytest.mark.asyncio
async def test_fresh_cache_does_not_fetch(clock):
    fetcher = FakeFetcher(clock, [(make_key_set("k1"), 300)])
    cache = KeyCache(fetcher, clock=clock)

    first = await cache.get_or_refresh()
    for _ in range(10):
        assert await cache.get_or_refresh() is first

    assert fetcher.calls == 1
    assert cache.is_valid
    assert cache.expires_in == 300.0


@pytest.mark.parametrize("max_age", [0, None])
@pytest.mark.asyncio
async def test_zero_or_missing_max_age_refetches_next_call(clock, max_age):
    fetcher = FakeFetcher(clock, [(make_key_set("k1"), max_age), (make_key_set("k2"), max_age)])
    cache = KeyCache(fetcher, clock=clock)

    await cache.get_or_refresh()
    second = await cache.get_or_refresh()

    assert fetcher.calls == 2
    assert list(second) == ["k2"]
    assert not cache.is_valid


@pytest.mark.asyncio
async def test_refetches_after_expiry(clock):
    fetcher = FakeFetcher(clock, [(make_key_set("k1"), 60), (make_key_set("k2"), 60)])
    cache = KeyCache(fetcher, clock=clock)

    await cache.get_or_refresh()
    clock.advance(59)
    assert list(await cache.get_or_refresh()) == ["k1"]

    clock.advance(1)
    assert list(await cache.get_or_refresh()) == ["k2"]
    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_failed_refresh_reaches_every_joiner(clock):
    fetcher = FakeFetcher(clock, [rejected()])
    fetcher.gate.clear()
    cache = KeyCache(fetcher, clock=clock)

    tasks = [asyncio.create_task(cache.get_or_refresh()) for _ in range(5)]
    await asyncio.sleep(0)
    fetcher.gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert fetcher.calls == 1
    assert all(isinstance(r, ServerRejectedError) for r in results)
    assert len({id(r) for r in results}) == 1


@pytest.mark.asyncio
async def test_failed_refresh_allows_new_attempt(clock):
    key_set = make_key_set("k1")
    fetcher = FakeFetcher(clock, [rejected(), (key_set, 300)])
    cache = KeyCache(fetcher, clock=clock)

    with pytest.raises(ServerRejectedError):
        await cache.get_or_refresh()
    assert cache.expires_in is None

    assert await cache.get_or_refresh() is key_set
    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_failed_refresh_of_expired_set_raises_by_default(clock):
    fetcher = FakeFetcher(clock, [(make_key_set("k1"), 10), rejected(), (make_key_set("k2"), 10)])
    cache = KeyCache(fetcher, clock=clock)

    await cache.get_or_refresh()
    clock.advance(10)

    with pytest.raises(ServerRejectedError):
        await cache.get_or_refresh()
    assert list(await cache.get_or_refresh()) == ["k2"]


@pytest.mark.asyncio
async def test_stale_if_error_serves_previous_keys(clock):
    old = make_key_set("old")
    fetcher = FakeFetcher(clock, [(old, 10), rejected(), (make_key_set("new"), 10)])
    cache = KeyCache(fetcher, clock=clock, stale_if_error=True)

    await cache.get_or_refresh()
    clock.advance(10)

    assert await cache.get_or_refresh() is old
    assert not cache.is_valid

    # Still expired, so the next call tries again
    assert list(await cache.get_or_refresh()) == ["new"]
    assert fetcher.calls == 3


@pytest.mark.asyncio
async def test_stale_if_error_without_previous_keys_raises(clock):
    fetcher = FakeFetcher(clock, [rejected()])
    cache = KeyCache(fetcher, clock=clock, stale_if_error=True)

    with pytest.raises(ServerRejectedError):
        await cache.get_or_refresh()


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_fetch(clock):
    key_set = make_key_set("k1")
    fetcher = FakeFetcher(clock, [(key_set, 300)])
    fetcher.gate.clear()
    cache = KeyCache(fetcher, clock=clock)

    cancelled = asyncio.create_task(cache.get_or_refresh())
    survivor = asyncio.create_task(cache.get_or_refresh())
    await asyncio.sleep(0)

    cancelled.cancel()
    with pytest.raises(asyncio.CancelledError):
        await cancelled

    fetcher.gate.set()
    assert await survivor is key_set
    assert fetcher.calls == 1
    assert cache.is_valid


@pytest.mark.asyncio
async def test_clear_forces_refetch(clock):
    fetcher = FakeFetcher(clock, [(make_key_set("k1"), 300), (make_key_set("k2"), 300)])
    cache = KeyCache(fetcher, clock=clock)

    await cache.get_or_refresh()
    cache.clear()

    assert not cache.is_valid
    assert cache.expires_in is None
    assert list(await cache.get_or_refresh()) == ["k2"]
    assert fetcher.calls == 2
