"""
Progression Coordinator

Turns challenge progress into companion growth:

1. Resolve the challenge (unknown or other-companion challenges are rejected)
2. Apply the increment through the ChallengeTracker
3. On first-time completion, award XP, count the completion, and recompute
   level and stage (stage never regresses)
4. Upsert the changed records through the persistence gateway
5. Publish an EvolutionEvent when the stage advanced

Local state is updated before any remote write. Failed writes are queued in
the outbox and retried by a background drain task; they are never raised to
the caller.

Calls for the same (user, companion) run one at a time: the per-key lock is
held until the write attempt for the previous call has finished. Outbox
flushes and reconciliation take the same lock, so a queued write is never
sent after a newer one for the same record.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from soulpet.config import PET_TIMEZONE, EvolutionConfig, load_evolution_config
from soulpet.exceptions import ValidationError
from soulpet.gamification.challenge_catalog import definitions_for
from soulpet.gamification.challenge_tracker import (
    ChallengeTracker,
    resolve_definition,
    validate_increment,
)
from soulpet.gamification.evolution import advance_stage, level_of, next_evolution_requirements
from soulpet.gamification.notifier import EvolutionNotifier
from soulpet.gamification.progress_store import ProgressStore
from soulpet.models.pet import (
    ChallengeDefinition,
    ChallengeProgress,
    CompanionProgress,
    CompanionType,
    EvolutionEvent,
    EvolutionRequirements,
    GrowthStage,
    ProgressSnapshot,
    ResetPeriod,
)
from soulpet.resilience.metrics import (
    record_completion,
    record_evolution,
    record_pending_writes,
    record_persistence_failure,
)
from soulpet.resilience.outbox import WriteOutbox
from soulpet.resilience.retry import calculate_backoff
from soulpet.utils.datetime_helpers import now_utc, period_key_of

logger = logging.getLogger(__name__)


def coerce_companion_type(value, user_id: Optional[str] = None) -> CompanionType:
    try:
        return CompanionType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown companion type '{value}'",
            field="companion_type",
            value=value,
            user_id=user_id,
        ) from None


class ProgressionCoordinator:
    """
    Orchestrates challenge progress, XP, and evolution for one user session.

    Args:
        store: Session store (one per authenticated session)
        gateway: PersistenceGateway for durable writes
        config: Evolution thresholds (defaults from environment)
        tracker: ChallengeTracker over the same store
        notifier: EvolutionNotifier the presentation layer listens to
        outbox: WriteOutbox for failed writes
        timezone: Local timezone for period keys
        auto_flush: Drain the outbox in the background after failed writes
        retry_delay: Seconds to wait before drain round n
    """

    def __init__(
        self,
        store: ProgressStore,
        gateway,
        config: Optional[EvolutionConfig] = None,
        tracker: Optional[ChallengeTracker] = None,
        notifier: Optional[EvolutionNotifier] = None,
        outbox: Optional[WriteOutbox] = None,
        timezone: str = PET_TIMEZONE,
        auto_flush: bool = True,
        retry_delay: Callable[[int], float] = calculate_backoff,
    ):
        self.store = store
        self.gateway = gateway
        self.config = config or load_evolution_config()
        self.tracker = tracker or ChallengeTracker(store, timezone=timezone)
        self.notifier = notifier or EvolutionNotifier()
        self.outbox = outbox or WriteOutbox()
        self.timezone = self.tracker.timezone
        self.auto_flush = auto_flush
        self.retry_delay = retry_delay
        self._locks: Dict[Tuple[str, CompanionType], asyncio.Lock] = {}
        self._flush_task: Optional[asyncio.Task] = None

    @property
    def user_id(self) -> str:
        return self.store.user_id

    def _lock_for(self, user_id: str, companion_type: CompanionType) -> asyncio.Lock:
        return self._locks.setdefault((user_id, companion_type), asyncio.Lock())

    def is_busy(self, user_id: str, companion_type: CompanionType) -> bool:
        """True while a call for this companion is in flight (UI should disable its trigger)"""
        lock = self._locks.get((user_id, CompanionType(companion_type)))
        return lock is not None and lock.locked()

    def _check_user(self, user_id: str) -> None:
        if user_id != self.user_id:
            raise ValidationError(
                f"Session belongs to user {self.user_id}",
                field="user_id",
                value=user_id,
                operation="complete_step",
            )

    # ==========================================
    # Main operation
    # ==========================================

    async def complete_step(
        self,
        user_id: str,
        companion_type: CompanionType,
        challenge_id: str,
        amount: int = 1,
        now: Optional[datetime] = None,
    ) -> ProgressSnapshot:
        """
        Record progress on a challenge and grow the companion on completion

        Args:
            user_id: Session user
            companion_type: Companion the challenge belongs to
            challenge_id: Catalog challenge ID
            amount: Positive integer increment (default 1)
            now: Moment of the action (defaults to the tracker clock)

        Returns:
            ProgressSnapshot of the companion and challenge after the call

        Raises:
            ValidationError: Non-positive amount, unknown companion, wrong user
            ChallengeNotFoundError: Unknown challenge or companion mismatch
        """
        companion_type = coerce_companion_type(companion_type, user_id)
        validate_increment(amount, field="amount", user_id=user_id)
        definition = resolve_definition(challenge_id, companion_type)
        self._check_user(user_id)

        async with self._lock_for(user_id, companion_type):
            update = self.tracker.record_progress(
                user_id, companion_type, challenge_id, amount, now=now
            )

            if not update.just_completed:
                if update.changed:
                    await self._persist_challenge(update.record)
                return ProgressSnapshot(
                    companion=self.store.get_companion(companion_type),
                    challenge=update.record,
                )

            current = self.store.get_companion(companion_type)
            new_xp = current.xp + definition.xp_reward
            new_count = current.challenges_completed + 1
            new_stage = advance_stage(current.stage, new_xp, new_count, self.config)
            updated = current.model_copy(update={
                "xp": new_xp,
                "challenges_completed": new_count,
                "level": level_of(new_xp, self.config),
                "stage": new_stage,
                "updated_at": now_utc(),
            })
            self.store.put_companion(updated)
            record_completion(companion_type.value, definition.period.value, definition.xp_reward)

            logger.info(
                f"Awarded {definition.xp_reward} XP to {companion_type.value} of user {user_id} "
                f"for '{definition.title}'. Total: {new_xp} XP, Level: {updated.level}, "
                f"Stage: {new_stage.value}"
            )

            await self._persist_companion(updated)
            await self._persist_challenge(update.record)

            evolution = None
            if new_stage != current.stage:
                evolution = EvolutionEvent(
                    companion_type=companion_type,
                    from_stage=current.stage,
                    to_stage=new_stage,
                    reason=definition.title,
                )
                record_evolution(companion_type.value, new_stage.value)
                self.notifier.publish(evolution)

            return ProgressSnapshot(
                companion=updated,
                challenge=update.record,
                just_completed=True,
                xp_awarded=definition.xp_reward,
                evolution=evolution,
            )

    # ==========================================
    # Persistence
    # ==========================================

    async def _write(self, key: Tuple, operation: str, *args) -> bool:
        method = getattr(self.gateway, operation)
        try:
            await method(*args)
        except Exception as e:
            record_persistence_failure(operation, type(e).__name__)
            logger.warning(f"{operation} failed for {key}, queued for retry: {e}")
            self.outbox.enqueue(key, operation, *args)
            self._schedule_flush()
            return False

        self.outbox.discard(key)
        # Drain writes left over from earlier failures
        self._schedule_flush()
        return True

    async def _persist_companion(self, record: CompanionProgress) -> bool:
        return await self._write(
            record.key,
            "upsert_companion_progress",
            record.user_id,
            record.companion_type,
            record,
        )

    async def _persist_challenge(self, record: ChallengeProgress) -> bool:
        return await self._write(
            record.key,
            "upsert_challenge_progress",
            record.user_id,
            record.companion_type,
            record.challenge_id,
            record.period_key,
            record,
        )

    async def flush_pending(self, max_retries: Optional[int] = None) -> int:
        """
        Retry queued writes with backoff

        Each write is sent while holding its companion's lock, so a
        complete_step for that companion cannot interleave with it.

        Returns:
            Number of writes persisted
        """
        persisted = 0
        for key in self.outbox.keys():
            user_id, companion_type = key[0], CompanionType(key[1])
            async with self._lock_for(user_id, companion_type):
                if await self.outbox.flush_write(key, self.gateway, max_retries=max_retries):
                    persisted += 1

        record_pending_writes(len(self.outbox))
        if persisted:
            logger.info(f"Flushed {persisted} pending writes, {len(self.outbox)} remaining")
        return persisted

    def _schedule_flush(self) -> None:
        if not self.auto_flush or not len(self.outbox):
            return
        if self._flush_task is not None and not self._flush_task.done():
            return
        self._flush_task = asyncio.get_running_loop().create_task(self._drain_outbox())
        self._flush_task.add_done_callback(self._on_flush_done)

    async def _drain_outbox(self) -> None:
        """Flush in rounds until the outbox is empty or the store stays down"""
        failed_rounds = 0
        while len(self.outbox) and failed_rounds <= self.outbox.max_retries:
            await asyncio.sleep(self.retry_delay(failed_rounds))
            # One attempt per write; backoff happens between rounds
            if await self.flush_pending(max_retries=0):
                failed_rounds = 0
            else:
                failed_rounds += 1

        if len(self.outbox):
            logger.warning(
                f"Store still unreachable for user {self.user_id}, "
                f"{len(self.outbox)} writes stay queued until the next write"
            )

    def _on_flush_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background flush failed for user {self.user_id}: {error}", exc_info=error)

    async def wait_for_flush(self) -> None:
        """Wait for the background drain task, if one is running"""
        if self._flush_task is not None and not self._flush_task.done():
            await asyncio.wait([self._flush_task])

    async def close(self) -> None:
        """Stop the background drain task; queued writes stay in the outbox"""
        task, self._flush_task = self._flush_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    async def initialize_companion(self, user_id: str, companion_type: CompanionType) -> CompanionProgress:
        """Make sure a remote row exists for the companion"""
        self._check_user(user_id)
        companion_type = coerce_companion_type(companion_type, user_id)
        async with self._lock_for(user_id, companion_type):
            record = self.store.get_companion(companion_type)
            await self._persist_companion(record)
            return record

    # ==========================================
    # Reconciliation
    # ==========================================

    async def load_session(self, user_id: Optional[str] = None, now: Optional[datetime] = None) -> bool:
        """
        Cold-load remote progress into the session store

        Remote rows replace local defaults. Against local progress they merge
        upward only, so nothing drops below what was already recorded.
        Queued writes the remote store already covers are abandoned.

        Returns:
            True if the remote store was read, False if it was unreachable
        """
        user_id = user_id or self.user_id
        self._check_user(user_id)
        now = now or self.tracker.clock()

        try:
            companions = await self.gateway.load_companion_progress(user_id)
            challenge_rows: List[ChallengeProgress] = []
            for period in ResetPeriod:
                period_key = period_key_of(period, now, self.timezone)
                challenge_rows.extend(await self.gateway.load_challenge_progress(user_id, period_key))
        except Exception as e:
            record_persistence_failure("load_session", type(e).__name__)
            logger.warning(f"Could not load remote progress for user {user_id}, using local state: {e}")
            return False

        # Remote rows may predate an in-flight call; merge under its lock
        for companion_type in CompanionType:
            remote_companions = [r for r in companions if r.companion_type == companion_type]
            remote_challenges = [r for r in challenge_rows if r.companion_type == companion_type]
            if not remote_companions and not remote_challenges:
                continue
            async with self._lock_for(user_id, companion_type):
                for remote in remote_companions:
                    self._reconcile_companion(remote)
                for remote in remote_challenges:
                    self._reconcile_challenge(remote)

        self._schedule_flush()
        logger.info(
            f"Loaded {len(companions)} companions and {len(challenge_rows)} challenge rows "
            f"for user {user_id} ({len(self.outbox)} writes pending)"
        )
        return True

    def _reconcile_companion(self, remote: CompanionProgress) -> None:
        companion_type = remote.companion_type
        if self.store.is_default(companion_type):
            local_stage = self.store.get_companion(companion_type).stage
            merged = remote.model_copy(update={"stage": GrowthStage.max(local_stage, remote.stage)})
        else:
            local = self.store.get_companion(companion_type)
            xp = max(local.xp, remote.xp)
            count = max(local.challenges_completed, remote.challenges_completed)
            merged = local.model_copy(update={
                "xp": xp,
                "challenges_completed": count,
                "level": level_of(xp, self.config),
                "stage": advance_stage(GrowthStage.max(local.stage, remote.stage), xp, count, self.config),
            })
        self.store.put_companion(merged)

        if self._covers(remote, merged):
            self.outbox.discard(merged.key)
        else:
            self.outbox.enqueue(
                merged.key, "upsert_companion_progress",
                merged.user_id, merged.companion_type, merged,
            )

    @staticmethod
    def _covers(remote: CompanionProgress, merged: CompanionProgress) -> bool:
        return (
            remote.xp >= merged.xp
            and remote.challenges_completed >= merged.challenges_completed
            and remote.stage >= merged.stage
        )

    def _reconcile_challenge(self, remote: ChallengeProgress) -> None:
        local = self.store.get_challenge(remote.companion_type, remote.challenge_id, remote.period_key)
        if local is None or remote.progress >= local.progress:
            merged = remote
            if local is not None and local.completed_at and not remote.completed_at:
                merged = remote.model_copy(update={"completed_at": local.completed_at})
        else:
            merged = local
        self.store.put_challenge(merged)

        if merged.progress <= remote.progress:
            self.outbox.discard(merged.key)
        else:
            self.outbox.enqueue(
                merged.key, "upsert_challenge_progress",
                merged.user_id, merged.companion_type, merged.challenge_id,
                merged.period_key, merged,
            )

    # ==========================================
    # Read side for the presentation layer
    # ==========================================

    def companion_progress(self, companion_type: CompanionType) -> CompanionProgress:
        return self.store.get_companion(coerce_companion_type(companion_type))

    def all_companion_progress(self) -> Dict[CompanionType, CompanionProgress]:
        return self.store.companions()

    def challenge_board(
        self,
        companion_type: CompanionType,
        now: Optional[datetime] = None,
    ) -> List[Tuple[ChallengeDefinition, ChallengeProgress]]:
        """Every catalog challenge of the companion with its current-period progress"""
        companion_type = coerce_companion_type(companion_type)
        return [
            (definition, self.tracker.current_progress(definition, now))
            for definition in definitions_for(companion_type)
        ]

    def evolution_requirements(self, companion_type: CompanionType) -> Optional[EvolutionRequirements]:
        record = self.companion_progress(companion_type)
        return next_evolution_requirements(
            record.stage, record.xp, record.challenges_completed, self.config
        )
