"""
Bounded exponential backoff driven by an explicit retry-signal.

Unlike exception-based retry helpers, the executor here never retries on a
raise: an attempt function asks for another round by returning `RETRY`.
Exceptions propagate immediately. When the attempts are spent the executor
hands `RETRY` back and lets the caller decide which fatal error exhaustion
means (the RPC channel and the submission engine raise different messages).

Schedule
--------
Delay after the n-th retry-signal (1-based):

    initial_delay * multiplier ** (n - 1)

With the defaults used throughout the client (0.5 s, 12 attempts, x1.5)
the worst case sleeps roughly 85 s in total.

Example
-------
from near_client.utils.retry import RETRY, exponential_backoff

async def attempt():
    res = await poll()
    return res if res is not None else RETRY

result = await exponential_backoff(0.5, 12, 1.5, attempt)
if result is RETRY:
    raise TimeoutError("gave up")
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar, Union

__all__ = [
    "RETRY",
    "RetrySignal",
    "RetryState",
    "backoff_delay",
    "exponential_backoff",
]

T = TypeVar("T")


class RetrySignal:
    """Sentinel type returned by an attempt to request another round."""

    __slots__ = ()
    _instance: Optional["RetrySignal"] = None

    def __new__(cls) -> "RetrySignal":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "RETRY"


RETRY = RetrySignal()


class RetryState:
    """
    Attempt-scoped loop state.

    Lives only for the duration of one `exponential_backoff` call.
    """

    __slots__ = ("attempts_remaining", "current_delay", "multiplier")

    def __init__(self, attempts: int, initial_delay: float, multiplier: float) -> None:
        self.attempts_remaining = attempts
        self.current_delay = float(initial_delay)
        self.multiplier = float(multiplier)

    def advance(self) -> float:
        """Consume one attempt and return the delay to sleep before the next one."""
        delay = self.current_delay
        self.attempts_remaining -= 1
        self.current_delay *= self.multiplier
        return delay


def backoff_delay(attempt: int, *, initial_delay: float, multiplier: float) -> float:
    """
    Delay (seconds) that follows the given 1-based attempt.
    """
    if attempt < 1:
        attempt = 1
    return float(initial_delay) * (float(multiplier) ** (attempt - 1))


async def exponential_backoff(
    initial_delay: float,
    max_attempts: int,
    multiplier: float,
    attempt_fn: Callable[[], Awaitable[Union[T, RetrySignal]]],
    *,
    on_retry: Optional[Callable[[int, float], None]] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Union[T, RetrySignal]:
    """
    Await `attempt_fn` until it returns something other than `RETRY`.

    Parameters
    ----------
    initial_delay : float
        Seconds to wait after the first retry-signal.
    max_attempts : int
        Total number of attempts (>= 1).
    multiplier : float
        Growth factor applied to the delay after every retry-signal.
    attempt_fn : async callable
        Returns a final value, returns `RETRY`, or raises (propagated as-is).
    on_retry : callable, optional
        Observer called as ``on_retry(attempt, delay)`` before each sleep.
    sleep : async callable
        Injectable sleeper; tests pass a no-op to keep the schedule instant.

    Returns
    -------
    The first non-`RETRY` result, or `RETRY` once every attempt signalled retry.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    state = RetryState(max_attempts, initial_delay, multiplier)
    attempt = 0
    while state.attempts_remaining > 0:
        attempt += 1
        result = await attempt_fn()
        if result is not RETRY:
            return result

        delay = state.advance()
        if state.attempts_remaining == 0:
            break
        if on_retry is not None:
            on_retry(attempt, delay)
        await sleep(delay)
    return RETRY
