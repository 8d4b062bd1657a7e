"""
Evolution Calculator

Derives a companion's level and growth stage from its progress.

Leveling Curve (flat):
- level = xp // xp_per_level + 1 (50 XP per level by default)

Growth Stages (both conditions required per tier):
- Teen: 100 XP and 5 completed challenges
- Guardian: 300 XP and 15 completed challenges

A single large XP grant cannot skip the challenge requirement, and many
zero-reward interactions cannot replace XP.

All functions are pure; thresholds come from EvolutionConfig.
"""

from typing import Optional

from soulpet.config import EvolutionConfig
from soulpet.models.pet import EvolutionRequirements, GrowthStage

DEFAULT_CONFIG = EvolutionConfig()


def level_of(xp: int, config: EvolutionConfig = DEFAULT_CONFIG) -> int:
    """
    Calculate level from total XP

    Negative XP is treated as zero (level 1).
    """
    return max(xp, 0) // config.xp_per_level + 1


def stage_of(
    xp: int,
    challenges_completed: int,
    config: EvolutionConfig = DEFAULT_CONFIG
) -> GrowthStage:
    """
    Raw growth stage for the given progress, ignoring history

    Args:
        xp: Total XP of the companion
        challenges_completed: Number of completed challenges
        config: Evolution thresholds

    Returns:
        Highest stage whose XP and challenge thresholds are both met
    """
    if xp >= config.xp_guardian and challenges_completed >= config.count_guardian:
        return GrowthStage.GUARDIAN
    if xp >= config.xp_teen and challenges_completed >= config.count_teen:
        return GrowthStage.TEEN
    return GrowthStage.BABY


def advance_stage(
    current: GrowthStage,
    xp: int,
    challenges_completed: int,
    config: EvolutionConfig = DEFAULT_CONFIG
) -> GrowthStage:
    """Stage after new progress; never lower than the current stage"""
    return GrowthStage.max(current, stage_of(xp, challenges_completed, config))


def _thresholds(stage: GrowthStage, config: EvolutionConfig) -> tuple:
    if stage == GrowthStage.TEEN:
        return config.xp_teen, config.count_teen
    return config.xp_guardian, config.count_guardian


def next_evolution_requirements(
    stage: GrowthStage,
    xp: int,
    challenges_completed: int,
    config: EvolutionConfig = DEFAULT_CONFIG
) -> Optional[EvolutionRequirements]:
    """
    What remains before the next growth stage

    Returns:
        EvolutionRequirements, or None when already a guardian
    """
    next_stage = GrowthStage(stage).next()
    if next_stage is None:
        return None

    xp_target, count_target = _thresholds(next_stage, config)

    def _percent(value: int, target: int) -> float:
        if target <= 0:
            return 100.0
        return min(100.0, max(value, 0) / target * 100)

    return EvolutionRequirements(
        next_stage=next_stage,
        xp_needed=max(0, xp_target - xp),
        challenges_needed=max(0, count_target - challenges_completed),
        xp_progress=_percent(xp, xp_target),
        challenge_progress=_percent(challenges_completed, count_target),
    )
