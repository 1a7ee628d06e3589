"""Exponential backoff retry policy."""

import random
from datetime import UTC, datetime, timedelta
from typing import Literal, TypeAlias

from tenacity import (
    RetryCallState,
    Retrying,
    stop_after_attempt,
    stop_before_delay,
    stop_never,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.stop import stop_base

from pyreqchain.retry.types import DoNotRetry, Retry, RetryDecision

Jitter: TypeAlias = Literal["none", "full", "bounded"]


class _BoundedJitterWait(wait_exponential):
    """Uniform between the first delay and the exponential one."""

    def __call__(self, retry_state: RetryCallState) -> float:
        return random.uniform(self.multiplier, super().__call__(retry_state))


class ExponentialBackoff:
    """Retry policy waiting `min_interval * base ** n_past_retries` between attempts, capped to `max_interval`.

    Args:
        max_retries: Maximum number of retries after the first attempt.
        max_duration: Total time budget measured from the first attempt. No retry is scheduled past it.
        min_interval: Delay before the first retry.
        max_interval: Upper bound for a single delay.
        base: Growth factor of the delay.
        jitter: "none" uses the exact delay, "full" picks uniformly in [0, delay],
            "bounded" picks uniformly in [min_interval, delay].

    At least one of max_retries and max_duration is required. The delays and stop conditions are tenacity
    strategies, evaluated against a call state rebuilt from the request start time and the past retry count.
    """

    def __init__(
        self,
        *,
        max_retries: int | None = None,
        max_duration: timedelta | None = None,
        min_interval: timedelta = timedelta(seconds=1),
        max_interval: timedelta = timedelta(minutes=30),
        base: float = 2,
        jitter: Jitter = "full",
    ) -> None:
        if max_retries is None and max_duration is None:
            raise ValueError("max_retries or max_duration is required")
        if max_retries is not None and max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if min_interval < timedelta(0) or min_interval > max_interval:
            raise ValueError("min_interval must be between zero and max_interval")
        if base < 1:
            raise ValueError("base must be >= 1")
        if jitter not in ("none", "full", "bounded"):
            raise ValueError(f"invalid jitter: {jitter!r}")

        self.max_retries = max_retries
        self.max_duration = max_duration
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.base = base
        self.jitter = jitter
        self._retrying = Retrying(stop=self._stop_strategy(), wait=self._wait_strategy(), reraise=True)

    @classmethod
    def with_max_retries(cls, max_retries: int) -> "ExponentialBackoff":
        """Backoff with default intervals stopping after max_retries retries."""
        return cls(max_retries=max_retries)

    def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
        now = datetime.now(UTC)
        state = self._call_state(n_past_retries, elapsed=now - request_start_time)
        state.upcoming_sleep = self._retrying.wait(state)
        if self._retrying.stop(state):
            return DoNotRetry()
        return Retry(now + timedelta(seconds=state.upcoming_sleep))

    def delay(self, n_past_retries: int) -> timedelta:
        """Delay before the retry following n_past_retries retries, jitter applied."""
        return timedelta(seconds=self._retrying.wait(self._call_state(n_past_retries)))

    def _wait_strategy(self) -> wait_exponential:
        params = {
            "multiplier": self.min_interval.total_seconds(),
            "max": self.max_interval.total_seconds(),
            "exp_base": self.base,
        }
        if self.jitter == "full":
            return wait_random_exponential(**params)
        if self.jitter == "bounded":
            return _BoundedJitterWait(**params)
        return wait_exponential(**params)

    def _stop_strategy(self) -> stop_base:
        stop: stop_base = stop_never
        if self.max_retries is not None:
            stop = stop_after_attempt(self.max_retries + 1)
        if self.max_duration is not None:
            stop = stop | stop_before_delay(self.max_duration)
        return stop

    def _call_state(self, n_past_retries: int, elapsed: timedelta = timedelta(0)) -> RetryCallState:
        # attempt_number counts the attempts already made, the first one included
        state = RetryCallState(self._retrying, fn=None, args=(), kwargs={})
        state.attempt_number = n_past_retries + 1
        state.outcome_timestamp = state.start_time + elapsed.total_seconds()
        return state

    def __repr__(self) -> str:
        return (
            f"ExponentialBackoff(max_retries={self.max_retries!r}, max_duration={self.max_duration!r}, "
            f"min_interval={self.min_interval!r}, max_interval={self.max_interval!r}, base={self.base!r}, "
            f"jitter={self.jitter!r})"
        )
