"""Prometheus metrics for pet progression

Counts completions, XP, evolutions, and persistence health.
Recording helpers never raise.
"""

import logging
from prometheus_client import Counter, Gauge

logger = logging.getLogger(__name__)

# Challenge completions
# Labels: pet (dog/cat/fish), period (daily/weekly)
challenge_completions_total = Counter(
    'pet_challenge_completions_total',
    'Total number of first-time challenge completions',
    ['pet', 'period']
)

# XP granted
# Labels: pet
xp_awarded_total = Counter(
    'pet_xp_awarded_total',
    'Total XP awarded to companions',
    ['pet']
)

# Stage transitions
# Labels: pet, to_stage (teen/guardian)
evolutions_total = Counter(
    'pet_evolutions_total',
    'Total number of companion growth stage transitions',
    ['pet', 'to_stage']
)

# Persistence failures
# Labels: operation, error_type
persistence_failures_total = Counter(
    'pet_persistence_failures_total',
    'Total number of failed progress writes',
    ['operation', 'error_type']
)

# Retry attempts
# Labels: operation
persistence_retries_total = Counter(
    'pet_persistence_retries_total',
    'Total number of persistence retry attempts',
    ['operation']
)

# Writes waiting in the outbox
pending_writes = Gauge(
    'pet_pending_writes',
    'Number of progress writes queued for retry'
)


def record_completion(pet: str, period: str, xp: int) -> None:
    """
    Record a first-time challenge completion.

    Args:
        pet: Companion type (dog, cat, fish)
        period: Reset period (daily, weekly)
        xp: XP awarded for the completion
    """
    try:
        challenge_completions_total.labels(pet=pet, period=period).inc()
        xp_awarded_total.labels(pet=pet).inc(xp)
        logger.debug(f"[METRICS] Completion {pet}/{period}: +{xp} XP")
    except Exception as e:
        logger.error(f"Failed to record completion metrics: {e}")


def record_evolution(pet: str, to_stage: str) -> None:
    try:
        evolutions_total.labels(pet=pet, to_stage=to_stage).inc()
        logger.debug(f"[METRICS] Evolution {pet} -> {to_stage}")
    except Exception as e:
        logger.error(f"Failed to record evolution: {e}")


def record_persistence_failure(operation: str, error_type: str) -> None:
    """
    Record a failed write.

    Args:
        operation: Gateway operation (upsert_companion_progress, ...)
        error_type: Exception class name
    """
    try:
        persistence_failures_total.labels(operation=operation, error_type=error_type).inc()
        logger.debug(f"[METRICS] Persistence failure {operation}: {error_type}")
    except Exception as e:
        logger.error(f"Failed to record persistence failure: {e}")


def record_retry(operation: str) -> None:
    try:
        persistence_retries_total.labels(operation=operation).inc()
        logger.debug(f"[METRICS] Retry attempt for {operation}")
    except Exception as e:
        logger.error(f"Failed to record retry: {e}")


def record_pending_writes(count: int) -> None:
    try:
        pending_writes.set(count)
    except Exception as e:
        logger.error(f"Failed to record pending writes: {e}")
