"""Write outbox for progress records that failed to persist

Failed upserts wait here until flush() succeeds or a reconciliation shows the
remote store already holds them. Writes are keyed by the record's natural
key; a newer write replaces an older one for the same key because upserts
are idempotent and carry full state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from soulpet.resilience.metrics import record_pending_writes, record_persistence_failure
from soulpet.resilience.retry import MAX_RETRIES, is_retryable_error, retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass
class PendingWrite:
    """One queued gateway call"""
    key: Tuple
    operation: str          # gateway method name
    args: Tuple[Any, ...]
    queued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 0


class WriteOutbox:
    """Queue of pending upserts, at most one per record key"""

    def __init__(self, max_retries: int = MAX_RETRIES):
        self.max_retries = max_retries
        self._writes: Dict[Tuple, PendingWrite] = {}

    def enqueue(self, key: Tuple, operation: str, *args: Any) -> None:
        previous = self._writes.get(key)
        self._writes[key] = PendingWrite(
            key=key,
            operation=operation,
            args=args,
            attempts=previous.attempts if previous else 0,
        )
        record_pending_writes(len(self._writes))
        logger.warning(f"Queued {operation} for {key} ({len(self._writes)} pending)")

    def discard(self, key: Tuple) -> Optional[PendingWrite]:
        write = self._writes.pop(key, None)
        if write is not None:
            record_pending_writes(len(self._writes))
        return write

    def get(self, key: Tuple) -> Optional[PendingWrite]:
        return self._writes.get(key)

    def keys(self) -> List[Tuple]:
        return list(self._writes)

    def __len__(self) -> int:
        return len(self._writes)

    def __contains__(self, key: Tuple) -> bool:
        return key in self._writes

    async def flush_write(self, key: Tuple, gateway, max_retries: Optional[int] = None) -> bool:
        """
        Send the write currently queued for key

        The entry is read at call time, so a write replaced or discarded
        since the caller listed the keys is never sent.

        Args:
            key: Record key to flush
            gateway: PersistenceGateway to write to
            max_retries: Backoff retries for this attempt (defaults to the outbox setting)

        Returns:
            True if the write was persisted
        """
        write = self._writes.get(key)
        if write is None:
            return False

        method = getattr(gateway, write.operation)
        write.attempts += 1
        retries = self.max_retries if max_retries is None else max_retries
        try:
            await retry_with_backoff(method, *write.args, max_retries=retries)
        except Exception as e:
            record_persistence_failure(write.operation, type(e).__name__)
            if not is_retryable_error(e):
                logger.error(
                    f"Dropping {write.operation} for {key} after permanent failure: {e}"
                )
                self._drop_if_current(key, write)
            return False

        self._drop_if_current(key, write)
        return True

    async def flush(self, gateway, max_retries: Optional[int] = None) -> int:
        """
        Retry every pending write with exponential backoff

        Writes that still fail with a transient error stay queued; writes
        that fail permanently are dropped and logged.

        Args:
            gateway: PersistenceGateway to write to
            max_retries: Backoff retries per write (defaults to the outbox setting)

        Returns:
            Number of writes persisted
        """
        persisted = 0
        for key in self.keys():
            if await self.flush_write(key, gateway, max_retries=max_retries):
                persisted += 1

        record_pending_writes(len(self._writes))
        if persisted:
            logger.info(f"Flushed {persisted} pending writes, {len(self._writes)} remaining")
        return persisted

    def _drop_if_current(self, key: Tuple, write: PendingWrite) -> None:
        # A newer write for the same key may have been queued while awaiting
        if self._writes.get(key) is write:
            del self._writes[key]
            record_pending_writes(len(self._writes))
