"""Resilience patterns for progress persistence

Retry with backoff, a write outbox for failed upserts, and metrics.
"""

from soulpet.resilience.retry import retry_with_backoff, with_retry, is_retryable_error
from soulpet.resilience.outbox import WriteOutbox, PendingWrite
from soulpet.resilience.metrics import (
    record_completion,
    record_evolution,
    record_persistence_failure,
    record_retry,
    record_pending_writes,
)

__all__ = [
    # Retry
    "retry_with_backoff",
    "with_retry",
    "is_retryable_error",
    # Outbox
    "WriteOutbox",
    "PendingWrite",
    # Metrics
    "record_completion",
    "record_evolution",
    "record_persistence_failure",
    "record_retry",
    "record_pending_writes",
]
