"""
Challenge Tracker

Progress state machine for one (user, companion, challenge, period instance):

    in_progress --(progress reaches target)--> completed

Completed is terminal for that period instance. A new period key starts a
fresh row at zero; earlier rows are kept as history.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from soulpet.exceptions import ChallengeNotFoundError, ValidationError
from soulpet.gamification.challenge_catalog import definition_by_id
from soulpet.gamification.progress_store import ProgressStore
from soulpet.models.pet import ChallengeDefinition, ChallengeProgress, CompanionType
from soulpet.utils.datetime_helpers import now_utc, period_key_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeUpdate:
    """Outcome of record_progress"""
    record: ChallengeProgress
    just_completed: bool
    changed: bool

    @property
    def progress(self) -> int:
        return self.record.progress


def validate_increment(delta, field: str = "delta", user_id: Optional[str] = None) -> int:
    """
    Ensure an increment is a positive integer

    Raises:
        ValidationError: For zero, negative, non-integer, or boolean values
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta <= 0:
        raise ValidationError(
            "Increment must be a positive integer",
            field=field,
            value=delta,
            user_id=user_id,
            operation="record_progress",
        )
    return delta


def resolve_definition(challenge_id: str, companion_type: CompanionType) -> ChallengeDefinition:
    """
    Look up a challenge and check it belongs to the companion

    Raises:
        ChallengeNotFoundError: Unknown challenge or companion mismatch
    """
    definition = definition_by_id(challenge_id)
    if definition.companion_type != CompanionType(companion_type):
        raise ChallengeNotFoundError(
            f"Challenge '{challenge_id}' belongs to {definition.companion_type.value}, "
            f"not {CompanionType(companion_type).value}",
            challenge_id=challenge_id,
            companion_type=CompanionType(companion_type).value,
        )
    return definition


class ChallengeTracker:
    """Applies progress increments to the session store"""

    def __init__(
        self,
        store: ProgressStore,
        timezone: str = "UTC",
        clock: Callable[[], datetime] = now_utc
    ):
        self.store = store
        self.timezone = timezone
        self.clock = clock

    def period_key_for(self, definition: ChallengeDefinition, now: Optional[datetime] = None) -> str:
        return period_key_of(definition.period, now or self.clock(), self.timezone)

    def current_progress(
        self,
        definition: ChallengeDefinition,
        now: Optional[datetime] = None
    ) -> ChallengeProgress:
        """
        Progress row for the current period instance

        Returns a zero row (not stored) when nothing was recorded yet.
        """
        period_key = self.period_key_for(definition, now)
        record = self.store.get_challenge(definition.companion_type, definition.id, period_key)
        if record is not None:
            return record
        return ChallengeProgress(
            user_id=self.store.user_id,
            companion_type=definition.companion_type,
            challenge_id=definition.id,
            period=definition.period,
            period_key=period_key,
            target=definition.target,
        )

    def record_progress(
        self,
        user_id: str,
        companion_type: CompanionType,
        challenge_id: str,
        delta: int,
        now: Optional[datetime] = None
    ) -> ChallengeUpdate:
        """
        Apply a progress increment for the current period instance

        Args:
            user_id: Session user
            companion_type: Companion the challenge belongs to
            challenge_id: Catalog challenge ID
            delta: Positive integer increment
            now: Moment of the action (defaults to the tracker clock)

        Returns:
            ChallengeUpdate with just_completed=True only on the call that
            first reaches the target in this period instance

        Raises:
            ValidationError: Non-positive delta or wrong user
            ChallengeNotFoundError: Unknown challenge or companion mismatch
        """
        validate_increment(delta, user_id=user_id)
        definition = resolve_definition(challenge_id, companion_type)
        if user_id != self.store.user_id:
            raise ValidationError(
                f"Tracker belongs to user {self.store.user_id}",
                field="user_id",
                value=user_id,
            )

        now = now or self.clock()
        current = self.current_progress(definition, now)

        if current.completed:
            logger.debug(
                f"Challenge {challenge_id} already completed for {current.period_key}, ignoring +{delta}"
            )
            return ChallengeUpdate(record=current, just_completed=False, changed=False)

        new_progress = min(max(current.progress + delta, 0), definition.target)
        updated = current.model_copy(update={"progress": new_progress})
        just_completed = updated.completed
        if just_completed:
            updated = updated.model_copy(update={"completed_at": now})
            logger.info(
                f"User {user_id} completed challenge '{challenge_id}' "
                f"for period {updated.period_key}"
            )

        self.store.put_challenge(updated)
        return ChallengeUpdate(record=updated, just_completed=just_completed, changed=True)
