"""Unit tests for pet progression models"""
import pytest
from pydantic import ValidationError

from soulpet.models.pet import (
    ChallengeDefinition,
    ChallengeProgress,
    CompanionProgress,
    CompanionType,
    GrowthStage,
    ResetPeriod,
)


class TestGrowthStage:
    """Test stage ordering"""

    def test_ordering(self):
        """Test baby < teen < guardian"""
        assert GrowthStage.BABY < GrowthStage.TEEN < GrowthStage.GUARDIAN
        assert GrowthStage.GUARDIAN >= GrowthStage.TEEN
        assert sorted([GrowthStage.GUARDIAN, GrowthStage.BABY, GrowthStage.TEEN]) == [
            GrowthStage.BABY, GrowthStage.TEEN, GrowthStage.GUARDIAN,
        ]

    def test_max(self):
        """Test max picks the most mature stage"""
        assert GrowthStage.max(GrowthStage.TEEN, "baby") == GrowthStage.TEEN
        assert GrowthStage.max(GrowthStage.GUARDIAN, GrowthStage.TEEN) == GrowthStage.GUARDIAN

    def test_next(self):
        """Test next stage"""
        assert GrowthStage.BABY.next() == GrowthStage.TEEN
        assert GrowthStage.TEEN.next() == GrowthStage.GUARDIAN
        assert GrowthStage.GUARDIAN.next() is None


class TestChallengeProgress:
    """Test challenge progress rows"""

    def _row(self, **overrides):
        data = dict(
            user_id="user-123",
            companion_type=CompanionType.CAT,
            challenge_id="cat_task_daily",
            period=ResetPeriod.DAILY,
            period_key="2026-10-19",
            target=3,
        )
        data.update(overrides)
        return ChallengeProgress(**data)

    def test_completed_derived_from_progress(self):
        """Test completed is progress >= target"""
        assert self._row(progress=2).completed is False
        assert self._row(progress=3).completed is True

    def test_progress_clamped_to_target(self):
        """Test progress never exceeds target"""
        assert self._row(progress=7).progress == 3

    def test_negative_progress_rejected(self):
        """Test negative progress is invalid"""
        with pytest.raises(ValidationError):
            self._row(progress=-1)

    def test_key(self):
        """Test natural key"""
        assert self._row().key == ("user-123", "cat", "cat_task_daily", "2026-10-19")

    def test_completed_serialized(self):
        """Test completed appears in dumps"""
        assert self._row(progress=3).model_dump()["completed"] is True


class TestCompanionProgress:
    """Test companion progress rows"""

    def test_default(self):
        """Test default row"""
        record = CompanionProgress.default("user-123", CompanionType.FISH)
        assert record.xp == 0
        assert record.challenges_completed == 0
        assert record.level == 1
        assert record.stage == GrowthStage.BABY
        assert record.key == ("user-123", "fish")

    def test_negative_xp_rejected(self):
        """Test xp cannot be negative"""
        with pytest.raises(ValidationError):
            CompanionProgress(user_id="u", companion_type=CompanionType.DOG, xp=-5)


def test_challenge_definition_requires_positive_target():
    """Test definitions need a positive target and reward"""
    with pytest.raises(ValidationError):
        ChallengeDefinition(
            id="x", companion_type=CompanionType.DOG, period=ResetPeriod.DAILY,
            title="X", description="", target=0, xp_reward=10,
        )
