"""Retry policy types and interfaces."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, TypeAlias


@dataclass(frozen=True, slots=True)
class Retry:
    """Retry the request once `execute_after` (timezone-aware) has passed."""

    execute_after: datetime


@dataclass(frozen=True, slots=True)
class DoNotRetry:
    """Stop retrying and raise the latest error."""


RetryDecision: TypeAlias = Retry | DoNotRetry


class RetryPolicy(Protocol):
    """Decides whether a failed request is attempted again."""

    def should_retry(self, request_start_time: datetime, n_past_retries: int) -> RetryDecision:
        """Invoked after every failed attempt.

        Args:
            request_start_time: UTC time when the first attempt was started
            n_past_retries: Number of retries already made, 0 after the first failure

        Returns:
            Retry with the absolute instant of the next attempt, or DoNotRetry.
        """
        ...
