"""
Pet progression for SoulPet

This module implements companion growth from wellbeing challenges:
- Challenge catalog (daily and weekly challenges per companion)
- Evolution calculator (level and growth stage)
- Challenge tracker (per-period progress, one reward per period)
- Progression coordinator (XP awards, stage changes, persistence)
"""

from soulpet.gamification.challenge_catalog import (
    definitions_for,
    definition_by_id,
    companion_info,
    evolution_name,
)
from soulpet.gamification.evolution import level_of, stage_of, next_evolution_requirements
from soulpet.gamification.challenge_tracker import ChallengeTracker, ChallengeUpdate
from soulpet.gamification.notifier import EvolutionNotifier
from soulpet.gamification.progress_store import ProgressStore
from soulpet.gamification.progression import ProgressionCoordinator

__all__ = [
    "definitions_for",
    "definition_by_id",
    "companion_info",
    "evolution_name",
    "level_of",
    "stage_of",
    "next_evolution_requirements",
    "ChallengeTracker",
    "ChallengeUpdate",
    "EvolutionNotifier",
    "ProgressStore",
    "ProgressionCoordinator",
]
