"""Retry policies."""

from pyreqchain.retry.backoff import ExponentialBackoff
from pyreqchain.retry.types import DoNotRetry, Retry, RetryDecision, RetryPolicy

__all__ = ["DoNotRetry", "ExponentialBackoff", "Retry", "RetryDecision", "RetryPolicy"]
