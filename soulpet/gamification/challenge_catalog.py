"""
Challenge Catalog

Pre-built recurring wellbeing challenges for each companion, plus companion
display information.

Each companion grows from its own challenges:
- Dog (Calm): breathing, grounding, stress relief
- Cat (Focus): focus sessions, tasks, daily check-ins
- Fish (Hope): journaling, reflection, talking about emotions

Catalog data is loaded once at import and never mutated.
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

from soulpet.exceptions import ChallengeNotFoundError
from soulpet.models.pet import (
    ChallengeDefinition,
    CompanionInfo,
    CompanionType,
    GrowthStage,
    ResetPeriod,
)

logger = logging.getLogger(__name__)


# ============================================
# Companion Info
# ============================================

COMPANION_INFO: Dict[CompanionType, CompanionInfo] = MappingProxyType({
    CompanionType.DOG: CompanionInfo(
        type=CompanionType.DOG,
        name="Calm Pet",
        emoji="🐕",
        role="Calm & Relaxation",
        description="Grows when you practice breathing, grounding, or stress relief",
        evolution_names={
            GrowthStage.BABY: "Puppy",
            GrowthStage.TEEN: "Golden Retriever",
            GrowthStage.GUARDIAN: "Winged Celestial Dog",
        },
    ),
    CompanionType.CAT: CompanionInfo(
        type=CompanionType.CAT,
        name="Focus Pet",
        emoji="🐈",
        role="Focus & Productivity",
        description="Grows when you complete focus, productivity, or consistency challenges",
        evolution_names={
            GrowthStage.BABY: "Kitten",
            GrowthStage.TEEN: "Calico",
            GrowthStage.GUARDIAN: "Nine-tailed Zen Cat",
        },
    ),
    CompanionType.FISH: CompanionInfo(
        type=CompanionType.FISH,
        name="Hope Pet",
        emoji="🐟",
        role="Reflection & Hope",
        description="Grows when you journal, reflect, or talk about emotions",
        evolution_names={
            GrowthStage.BABY: "Small Fry",
            GrowthStage.TEEN: "Goldfish",
            GrowthStage.GUARDIAN: "Dragon Fish",
        },
    ),
})


# ============================================
# Pre-Built Challenge Library
# ============================================

_DOG, _CAT, _FISH = CompanionType.DOG, CompanionType.CAT, CompanionType.FISH
_DAILY, _WEEKLY = ResetPeriod.DAILY, ResetPeriod.WEEKLY

CHALLENGE_LIBRARY: Tuple[ChallengeDefinition, ...] = (
    # ========== DOG (Calm) ==========
    ChallengeDefinition(
        id="dog_breathing_daily", companion_type=_DOG, period=_DAILY,
        title="Deep Breaths", description="Complete 3 breathing sessions",
        target=3, xp_reward=15, icon="🌬️",
    ),
    ChallengeDefinition(
        id="dog_grounding_daily", companion_type=_DOG, period=_DAILY,
        title="Stay Grounded", description="Practice grounding exercise",
        target=1, xp_reward=10, icon="🌿",
    ),
    ChallengeDefinition(
        id="dog_calm_daily", companion_type=_DOG, period=_DAILY,
        title="Moment of Calm", description="Use stress relief tool",
        target=2, xp_reward=12, icon="☮️",
    ),
    ChallengeDefinition(
        id="dog_zen_weekly", companion_type=_DOG, period=_WEEKLY,
        title="Zen Master", description="Complete 10 calm sessions",
        target=10, xp_reward=50, icon="🧘",
    ),
    ChallengeDefinition(
        id="dog_peace_weekly", companion_type=_DOG, period=_WEEKLY,
        title="Inner Peace", description="Log 5 calm moods",
        target=5, xp_reward=40, icon="✨",
    ),

    # ========== CAT (Focus) ==========
    ChallengeDefinition(
        id="cat_focus_daily", companion_type=_CAT, period=_DAILY,
        title="Focus Session", description="Complete 2 focus sessions",
        target=2, xp_reward=15, icon="🎯",
    ),
    ChallengeDefinition(
        id="cat_task_daily", companion_type=_CAT, period=_DAILY,
        title="Task Master", description="Complete 3 daily tasks",
        target=3, xp_reward=12, icon="✅",
    ),
    ChallengeDefinition(
        id="cat_streak_daily", companion_type=_CAT, period=_DAILY,
        title="Consistency Check", description="Check in with your mood",
        target=1, xp_reward=10, icon="📊",
    ),
    ChallengeDefinition(
        id="cat_productive_weekly", companion_type=_CAT, period=_WEEKLY,
        title="Productivity Pro", description="Complete 15 focus sessions",
        target=15, xp_reward=60, icon="🏆",
    ),
    ChallengeDefinition(
        id="cat_discipline_weekly", companion_type=_CAT, period=_WEEKLY,
        title="Discipline", description="Check in 7 days straight",
        target=7, xp_reward=45, icon="🔥",
    ),

    # ========== FISH (Hope) ==========
    ChallengeDefinition(
        id="fish_journal_daily", companion_type=_FISH, period=_DAILY,
        title="Daily Reflection", description="Write in your journal",
        target=1, xp_reward=15, icon="📝",
    ),
    ChallengeDefinition(
        id="fish_chat_daily", companion_type=_FISH, period=_DAILY,
        title="Open Up", description="Have 2 chat conversations",
        target=2, xp_reward=12, icon="💬",
    ),
    ChallengeDefinition(
        id="fish_emotion_daily", companion_type=_FISH, period=_DAILY,
        title="Name Your Feeling", description="Log mood with emotion tags",
        target=1, xp_reward=10, icon="💭",
    ),
    ChallengeDefinition(
        id="fish_reflect_weekly", companion_type=_FISH, period=_WEEKLY,
        title="Deep Thinker", description="Write 5 journal entries",
        target=5, xp_reward=50, icon="🌊",
    ),
    ChallengeDefinition(
        id="fish_share_weekly", companion_type=_FISH, period=_WEEKLY,
        title="Heart to Heart", description="Have 10 meaningful chats",
        target=10, xp_reward=55, icon="💝",
    ),
)


def _index_library(library) -> Dict[str, ChallengeDefinition]:
    index: Dict[str, ChallengeDefinition] = {}
    for definition in library:
        if definition.id in index:
            raise ValueError(f"Duplicate challenge id '{definition.id}' in catalog")
        index[definition.id] = definition
    return index


_BY_ID = MappingProxyType(_index_library(CHALLENGE_LIBRARY))


# ============================================
# Lookup Functions
# ============================================

def all_definitions() -> List[ChallengeDefinition]:
    """Get every challenge in the library"""
    return list(CHALLENGE_LIBRARY)


def definitions_for(
    companion_type: CompanionType,
    period: Optional[ResetPeriod] = None
) -> List[ChallengeDefinition]:
    """
    Get challenges for a companion, optionally for one reset period

    Args:
        companion_type: Companion to filter by
        period: daily or weekly (None for both)

    Returns:
        Matching challenge definitions in catalog order
    """
    companion_type = CompanionType(companion_type)
    filtered = [c for c in CHALLENGE_LIBRARY if c.companion_type == companion_type]
    if period is not None:
        period = ResetPeriod(period)
        filtered = [c for c in filtered if c.period == period]
    return filtered


def daily_definitions(companion_type: CompanionType) -> List[ChallengeDefinition]:
    return definitions_for(companion_type, ResetPeriod.DAILY)


def weekly_definitions(companion_type: CompanionType) -> List[ChallengeDefinition]:
    return definitions_for(companion_type, ResetPeriod.WEEKLY)


def definition_by_id(challenge_id: str) -> ChallengeDefinition:
    """
    Get a specific challenge by ID

    Raises:
        ChallengeNotFoundError: If no challenge has this ID
    """
    definition = _BY_ID.get(challenge_id)
    if definition is None:
        raise ChallengeNotFoundError(
            f"Challenge '{challenge_id}' not found",
            challenge_id=challenge_id,
            operation="definition_by_id",
        )
    return definition


def companion_info(companion_type: CompanionType) -> CompanionInfo:
    return COMPANION_INFO[CompanionType(companion_type)]


def evolution_name(companion_type: CompanionType, stage: GrowthStage) -> str:
    """Display name of a companion at a growth stage (e.g. "Puppy")"""
    return companion_info(companion_type).evolution_names[GrowthStage(stage)]


def format_challenge_display(definition: ChallengeDefinition) -> str:
    """
    Format challenge for display

    Args:
        definition: Challenge to format

    Returns:
        Formatted challenge description
    """
    return (
        f"{definition.icon} **{definition.title}**\n"
        f"{definition.description}\n\n"
        f"**Goal:** {definition.target}\n"
        f"**Resets:** {definition.period.value.title()}\n"
        f"**Reward:** {definition.xp_reward} XP"
    )
