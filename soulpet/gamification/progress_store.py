"""
Session Progress Store

In-memory progression state for one authenticated user session. Created once
per session and passed to the tracker and coordinator; nothing here is
module-global.

Holds the optimistic local view. The persistence gateway is the durable copy.
"""

import logging
from typing import Dict, List, Optional, Tuple

from soulpet.exceptions import ValidationError
from soulpet.models.pet import (
    ChallengeProgress,
    CompanionProgress,
    CompanionType,
)

logger = logging.getLogger(__name__)

ChallengeKey = Tuple[CompanionType, str, str]


class ProgressStore:
    """Per-session store of companion and challenge progress"""

    def __init__(self, user_id: str):
        if not user_id:
            raise ValidationError("user_id is required", field="user_id", value=user_id)
        self.user_id = user_id
        self._companions: Dict[CompanionType, CompanionProgress] = {}
        self._challenges: Dict[ChallengeKey, ChallengeProgress] = {}
        logger.debug(f"ProgressStore initialized for user {user_id}")

    def _check_owner(self, user_id: str) -> None:
        if user_id != self.user_id:
            raise ValidationError(
                f"Record belongs to user {user_id}, store is for {self.user_id}",
                field="user_id",
                value=user_id,
                user_id=self.user_id,
            )

    # ---------- Companion progress ----------

    def get_companion(self, companion_type: CompanionType) -> CompanionProgress:
        """Get companion progress, creating the default row on first read"""
        companion_type = CompanionType(companion_type)
        record = self._companions.get(companion_type)
        if record is None:
            record = CompanionProgress.default(self.user_id, companion_type)
            self._companions[companion_type] = record
        return record

    def put_companion(self, record: CompanionProgress) -> None:
        self._check_owner(record.user_id)
        self._companions[record.companion_type] = record

    def has_companion(self, companion_type: CompanionType) -> bool:
        return CompanionType(companion_type) in self._companions

    def is_default(self, companion_type: CompanionType) -> bool:
        """True if the companion has no recorded progress yet"""
        record = self._companions.get(CompanionType(companion_type))
        return record is None or (record.xp == 0 and record.challenges_completed == 0)

    def companions(self) -> Dict[CompanionType, CompanionProgress]:
        """Progress for every companion type (defaults for untouched ones)"""
        return {ct: self.get_companion(ct) for ct in CompanionType}

    # ---------- Challenge progress ----------

    def get_challenge(
        self,
        companion_type: CompanionType,
        challenge_id: str,
        period_key: str
    ) -> Optional[ChallengeProgress]:
        return self._challenges.get((CompanionType(companion_type), challenge_id, period_key))

    def put_challenge(self, record: ChallengeProgress) -> None:
        self._check_owner(record.user_id)
        key = (record.companion_type, record.challenge_id, record.period_key)
        self._challenges[key] = record

    def challenges_for_period(self, period_key: str) -> List[ChallengeProgress]:
        return [c for c in self._challenges.values() if c.period_key == period_key]

    def all_challenges(self) -> List[ChallengeProgress]:
        return list(self._challenges.values())
