import asyncio

import pytest

from cache.query_cache import DASHBOARD, FINANCIAL_GOALS, QueryCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _counting(value="v"):
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0)
        return value

    fetch.calls = calls
    return fetch


@pytest.mark.asyncio
async def test_fresh_result_is_served_from_cache():
    clock = FakeClock()
    cache = QueryCache(stale_time=30, clock=clock)
    fetch = _counting([1, 2])

    first = await cache.fetch((DASHBOARD, "alice"), fetch)
    clock.now += 29
    second = await cache.fetch((DASHBOARD, "alice"), fetch)

    assert first is second
    assert len(fetch.calls) == 1


@pytest.mark.asyncio
async def test_stale_result_is_refetched():
    clock = FakeClock()
    cache = QueryCache(stale_time=30, clock=clock)
    fetch = _counting()

    await cache.fetch((DASHBOARD, "alice"), fetch)
    clock.now += 31
    assert not cache.is_fresh((DASHBOARD, "alice"))
    await cache.fetch((DASHBOARD, "alice"), fetch)

    assert len(fetch.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_reads_share_one_fetch():
    cache = QueryCache()
    fetch = _counting("shared")

    results = await asyncio.gather(*(cache.fetch((DASHBOARD, None), fetch) for _ in range(5)))

    assert results == ["shared"] * 5
    assert len(fetch.calls) == 1


@pytest.mark.asyncio
async def test_invalidate_drops_query_for_every_identity():
    cache = QueryCache()
    for key in [(DASHBOARD, "alice"), (DASHBOARD, "bob"), (FINANCIAL_GOALS, "alice")]:
        await cache.fetch(key, _counting())

    cache.invalidate(DASHBOARD)

    assert not cache.is_fresh((DASHBOARD, "alice"))
    assert not cache.is_fresh((DASHBOARD, "bob"))
    assert cache.is_fresh((FINANCIAL_GOALS, "alice"))


@pytest.mark.asyncio
async def test_result_of_fetch_invalidated_mid_flight_is_not_stored():
    cache = QueryCache()
    gate = asyncio.Event()

    async def slow():
        await gate.wait()
        return "old"

    pending = asyncio.ensure_future(cache.fetch((DASHBOARD, None), slow))
    await asyncio.sleep(0)
    assert cache.is_pending((DASHBOARD, None))
    cache.invalidate(DASHBOARD)
    gate.set()

    assert await pending == "old"
    assert not cache.is_fresh((DASHBOARD, None))
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached():
    cache = QueryCache()

    async def broken():
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        await cache.fetch((DASHBOARD, None), broken)

    assert len(cache) == 0
    assert await cache.fetch((DASHBOARD, None), _counting("ok")) == "ok"
