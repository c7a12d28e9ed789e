import pytest

from near_client.utils.retry import RETRY, RetrySignal, backoff_delay, exponential_backoff


class Sleeps:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_retry_signal_is_a_falsy_singleton():
    assert RetrySignal() is RETRY
    assert not RETRY


def test_backoff_delay_schedule():
    assert backoff_delay(1, initial_delay=0.5, multiplier=1.5) == 0.5
    assert backoff_delay(2, initial_delay=0.5, multiplier=1.5) == 0.75
    assert backoff_delay(3, initial_delay=0.5, multiplier=1.5) == pytest.approx(1.125)


@pytest.mark.asyncio
async def test_first_value_is_returned_without_sleeping():
    sleeps = Sleeps()

    async def attempt():
        return {"ok": True}

    assert await exponential_backoff(0.5, 12, 1.5, attempt, sleep=sleeps) == {"ok": True}
    assert sleeps.delays == []


@pytest.mark.asyncio
async def test_retries_until_value_with_growing_delays():
    sleeps = Sleeps()
    results = [RETRY, RETRY, 42]

    async def attempt():
        return results.pop(0)

    assert await exponential_backoff(0.5, 12, 1.5, attempt, sleep=sleeps) == 42
    assert sleeps.delays == [0.5, 0.75]


@pytest.mark.asyncio
async def test_exhaustion_returns_retry_and_skips_final_sleep():
    sleeps = Sleeps()
    calls = []

    async def attempt():
        calls.append(1)
        return RETRY

    observed = []
    result = await exponential_backoff(
        1.0, 4, 2.0, attempt, sleep=sleeps, on_retry=lambda n, d: observed.append((n, d))
    )
    assert result is RETRY
    assert len(calls) == 4
    assert sleeps.delays == [1.0, 2.0, 4.0]
    assert observed == [(1, 1.0), (2, 2.0), (3, 4.0)]


@pytest.mark.asyncio
async def test_exceptions_propagate_without_retry():
    calls = []

    async def attempt():
        calls.append(1)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await exponential_backoff(0.0, 12, 1.5, attempt, sleep=Sleeps())
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_none_is_a_final_value():
    async def attempt():
        return None

    assert await exponential_backoff(0.0, 3, 1.5, attempt, sleep=Sleeps()) is None


@pytest.mark.asyncio
async def test_rejects_zero_attempts():
    async def attempt():
        return 1

    with pytest.raises(ValueError):
        await exponential_backoff(0.5, 0, 1.5, attempt)
