"""Pet progression models"""
from enum import Enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class CompanionType(str, Enum):
    """Companion kinds, each tracked independently"""
    DOG = "dog"     # Calm & relaxation
    CAT = "cat"     # Focus & productivity
    FISH = "fish"   # Reflection & hope


class ResetPeriod(str, Enum):
    """How often a recurring challenge resets"""
    DAILY = "daily"
    WEEKLY = "weekly"


_STAGE_ORDER = ("baby", "teen", "guardian")


class GrowthStage(str, Enum):
    """Companion maturity tiers, ordered baby < teen < guardian"""
    BABY = "baby"
    TEEN = "teen"
    GUARDIAN = "guardian"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self.value)

    def __lt__(self, other):
        if not isinstance(other, GrowthStage):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, GrowthStage):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, GrowthStage):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, GrowthStage):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def max(cls, *stages: "GrowthStage") -> "GrowthStage":
        return max((cls(s) for s in stages), key=lambda s: s.rank)

    def next(self) -> Optional["GrowthStage"]:
        if self.rank + 1 >= len(_STAGE_ORDER):
            return None
        return GrowthStage(_STAGE_ORDER[self.rank + 1])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChallengeDefinition(BaseModel):
    """Recurring challenge definition (static catalog data)"""
    model_config = ConfigDict(frozen=True)

    id: str
    companion_type: CompanionType
    period: ResetPeriod
    title: str
    description: str
    target: int = Field(gt=0)
    xp_reward: int = Field(gt=0)
    icon: str = ""


class ChallengeProgress(BaseModel):
    """
    Progress on one challenge within one reset-window instance

    Keyed by (user_id, companion_type, challenge_id, period_key).
    """
    user_id: str
    companion_type: CompanionType
    challenge_id: str
    period: ResetPeriod
    period_key: str
    target: int = Field(gt=0)
    progress: int = Field(default=0, ge=0)
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _clamp_progress(self) -> "ChallengeProgress":
        if self.progress > self.target:
            self.progress = self.target
        return self

    @computed_field
    @property
    def completed(self) -> bool:
        return self.progress >= self.target

    @property
    def key(self) -> tuple:
        return (self.user_id, self.companion_type.value, self.challenge_id, self.period_key)


class CompanionProgress(BaseModel):
    """
    Cumulative progress of one companion for one user

    Keyed by (user_id, companion_type). xp, challenges_completed and stage
    never decrease.
    """
    user_id: str
    companion_type: CompanionType
    xp: int = Field(default=0, ge=0)
    challenges_completed: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)
    stage: GrowthStage = GrowthStage.BABY
    updated_at: Optional[datetime] = None

    @classmethod
    def default(cls, user_id: str, companion_type: CompanionType) -> "CompanionProgress":
        return cls(user_id=user_id, companion_type=companion_type)

    @property
    def key(self) -> tuple:
        return (self.user_id, self.companion_type.value)


class EvolutionEvent(BaseModel):
    """Stage transition notification, shown once by the presentation layer"""
    model_config = ConfigDict(frozen=True)

    companion_type: CompanionType
    from_stage: GrowthStage
    to_stage: GrowthStage
    reason: str
    occurred_at: datetime = Field(default_factory=_utcnow)


class ProgressSnapshot(BaseModel):
    """State after a complete_step call"""
    companion: CompanionProgress
    challenge: ChallengeProgress
    just_completed: bool = False
    xp_awarded: int = 0
    evolution: Optional[EvolutionEvent] = None


class CompanionInfo(BaseModel):
    """Display information for a companion type"""
    model_config = ConfigDict(frozen=True)

    type: CompanionType
    name: str
    emoji: str
    role: str
    description: str
    evolution_names: dict[GrowthStage, str]


class EvolutionRequirements(BaseModel):
    """What a companion still needs to reach its next stage"""
    next_stage: GrowthStage
    xp_needed: int
    challenges_needed: int
    xp_progress: float        # percent, capped at 100
    challenge_progress: float  # percent, capped at 100
