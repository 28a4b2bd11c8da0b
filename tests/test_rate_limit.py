"""
Unit tests for the sliding-window rate limiters
"""
import pytest

from utils.rate_limit import InMemoryRateLimiter, RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_eleventh_request_in_window_is_rejected():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(10, 60, clock=clock)

    for i in range(10):
        result = await limiter.hit("user:1")
        assert result.allowed is True
        assert result.remaining == 9 - i
        clock.now += 1

    result = await limiter.hit("user:1")
    assert result.allowed is False
    assert result.remaining == 0
    # Oldest hit was at t=1000, so the window frees up at t=1060
    assert result.retry_after == pytest.approx(50.0)


@pytest.mark.asyncio
async def test_window_slides():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(2, 60, clock=clock)

    assert (await limiter.hit("k")).allowed
    clock.now += 30
    assert (await limiter.hit("k")).allowed
    assert not (await limiter.hit("k")).allowed

    # First hit leaves the window
    clock.now += 30
    assert (await limiter.hit("k")).allowed
    assert not (await limiter.hit("k")).allowed


@pytest.mark.asyncio
async def test_rejected_hits_do_not_extend_the_window():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(1, 10, clock=clock)

    assert (await limiter.hit("k")).allowed
    for _ in range(5):
        clock.now += 1
        assert not (await limiter.hit("k")).allowed

    clock.now = 1010
    assert (await limiter.hit("k")).allowed


@pytest.mark.asyncio
async def test_keys_are_independent():
    limiter = InMemoryRateLimiter(1, 60, clock=FakeClock())
    assert (await limiter.hit("user:1")).allowed
    assert (await limiter.hit("user:2")).allowed
    assert not (await limiter.hit("user:1")).allowed


@pytest.mark.asyncio
async def test_sweep_drops_idle_keys():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(5, 60, clock=clock, sweep_interval=60)

    for i in range(20):
        await limiter.hit(f"ip:{i}")
    assert len(limiter) == 20

    clock.now += 120
    await limiter.hit("ip:fresh")
    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_reset():
    limiter = InMemoryRateLimiter(1, 60, clock=FakeClock())
    await limiter.hit("a")
    await limiter.hit("b")

    await limiter.reset("a")
    assert (await limiter.hit("a")).allowed
    assert not (await limiter.hit("b")).allowed

    await limiter.reset()
    assert len(limiter) == 0


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        RateLimiter(0, 60)
