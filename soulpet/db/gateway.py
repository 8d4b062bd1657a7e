"""
Persistence Gateway

Idempotent upserts and reads of pet progression records, keyed by natural
composite keys:

- pet_progress:   (user_id, pet_type)
- pet_challenges: (user_id, pet_type, challenge_id, reset_at)

reset_at holds the period key ("2026-10-19" daily, "2026-W43" weekly).
Writing the same record twice converges to the same row, so failed writes
can be retried freely.
"""
import logging
from typing import Dict, List, Protocol, Tuple, runtime_checkable

import psycopg

from soulpet.db.connection import Database
from soulpet.exceptions import wrap_external_exception
from soulpet.models.pet import (
    ChallengeProgress,
    CompanionProgress,
    CompanionType,
    GrowthStage,
    ResetPeriod,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class PersistenceGateway(Protocol):
    """Remote store of progression records"""

    async def upsert_companion_progress(
        self, user_id: str, companion_type: CompanionType, record: CompanionProgress
    ) -> None: ...

    async def upsert_challenge_progress(
        self,
        user_id: str,
        companion_type: CompanionType,
        challenge_id: str,
        period_key: str,
        record: ChallengeProgress,
    ) -> None: ...

    async def load_companion_progress(self, user_id: str) -> List[CompanionProgress]: ...

    async def load_challenge_progress(self, user_id: str, period_key: str) -> List[ChallengeProgress]: ...


# ==========================================
# Row mapping
# ==========================================

def companion_from_row(row: dict) -> CompanionProgress:
    return CompanionProgress(
        user_id=str(row["user_id"]),
        companion_type=CompanionType(row["pet_type"]),
        xp=row["xp"],
        challenges_completed=row["challenges_completed"],
        level=row["level"],
        stage=GrowthStage(row["evolution_stage"]),
        updated_at=row.get("updated_at"),
    )


def challenge_from_row(row: dict) -> ChallengeProgress:
    return ChallengeProgress(
        user_id=str(row["user_id"]),
        companion_type=CompanionType(row["pet_type"]),
        challenge_id=row["challenge_id"],
        period=ResetPeriod(row["challenge_type"]),
        period_key=row["reset_at"],
        target=row["target"],
        progress=row["progress"],
        completed_at=row.get("completed_at"),
    )


# ==========================================
# PostgreSQL implementation
# ==========================================

class PostgresGateway:
    """Gateway over the pet_progress and pet_challenges tables"""

    def __init__(self, database: Database):
        self.db = database

    async def upsert_companion_progress(
        self, user_id: str, companion_type: CompanionType, record: CompanionProgress
    ) -> None:
        """
        Insert or update a companion progress row (last writer wins)

        Raises:
            PersistenceError: On storage failure
        """
        companion_type = CompanionType(companion_type)
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO pet_progress
                            (user_id, pet_type, xp, level, evolution_stage, challenges_completed)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        ON CONFLICT (user_id, pet_type) DO UPDATE
                        SET xp = EXCLUDED.xp,
                            level = EXCLUDED.level,
                            evolution_stage = EXCLUDED.evolution_stage,
                            challenges_completed = EXCLUDED.challenges_completed,
                            updated_at = CURRENT_TIMESTAMP
                        """,
                        (
                            user_id,
                            companion_type.value,
                            record.xp,
                            record.level,
                            record.stage.value,
                            record.challenges_completed,
                        )
                    )
                    await conn.commit()
        except (psycopg.Error, OSError) as e:
            raise wrap_external_exception(
                e,
                operation="upsert_companion_progress",
                user_id=user_id,
                record_key=(user_id, companion_type.value),
            ) from e

        logger.debug(f"Upserted pet_progress for user {user_id}, pet {companion_type.value}")

    async def upsert_challenge_progress(
        self,
        user_id: str,
        companion_type: CompanionType,
        challenge_id: str,
        period_key: str,
        record: ChallengeProgress,
    ) -> None:
        """
        Insert or update a challenge progress row for one period instance

        Raises:
            PersistenceError: On storage failure
        """
        companion_type = CompanionType(companion_type)
        record_key = (user_id, companion_type.value, challenge_id, period_key)
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO pet_challenges
                            (user_id, pet_type, challenge_id, challenge_type, progress,
                             target, completed, completed_at, reset_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                        ON CONFLICT (user_id, pet_type, challenge_id, reset_at) DO UPDATE
                        SET progress = EXCLUDED.progress,
                            target = EXCLUDED.target,
                            completed = EXCLUDED.completed,
                            completed_at = EXCLUDED.completed_at
                        """,
                        (
                            user_id,
                            companion_type.value,
                            challenge_id,
                            record.period.value,
                            record.progress,
                            record.target,
                            record.completed,
                            record.completed_at,
                            period_key,
                        )
                    )
                    await conn.commit()
        except (psycopg.Error, OSError) as e:
            raise wrap_external_exception(
                e,
                operation="upsert_challenge_progress",
                user_id=user_id,
                record_key=record_key,
            ) from e

        logger.debug(f"Upserted pet_challenges row {record_key}")

    async def load_companion_progress(self, user_id: str) -> List[CompanionProgress]:
        """Get every companion progress row of a user"""
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT user_id, pet_type, xp, level, evolution_stage,
                               challenges_completed, updated_at
                        FROM pet_progress
                        WHERE user_id = %s
                        """,
                        (user_id,)
                    )
                    rows = await cur.fetchall()
        except (psycopg.Error, OSError) as e:
            raise wrap_external_exception(e, operation="load_companion_progress", user_id=user_id) from e

        return [companion_from_row(row) for row in rows]

    async def load_challenge_progress(self, user_id: str, period_key: str) -> List[ChallengeProgress]:
        """Get a user's challenge rows for one period instance"""
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT user_id, pet_type, challenge_id, challenge_type, progress,
                               target, completed, completed_at, reset_at
                        FROM pet_challenges
                        WHERE user_id = %s AND reset_at = %s
                        """,
                        (user_id, period_key)
                    )
                    rows = await cur.fetchall()
        except (psycopg.Error, OSError) as e:
            raise wrap_external_exception(
                e, operation="load_challenge_progress", user_id=user_id,
                context={"period_key": period_key}
            ) from e

        return [challenge_from_row(row) for row in rows]


# ==========================================
# In-memory implementation
# ==========================================

class InMemoryGateway:
    """Dict-backed gateway for local development and tests"""

    def __init__(self):
        self.companions: Dict[Tuple[str, str], CompanionProgress] = {}
        self.challenges: Dict[Tuple[str, str, str, str], ChallengeProgress] = {}
        self.write_count = 0

    async def upsert_companion_progress(
        self, user_id: str, companion_type: CompanionType, record: CompanionProgress
    ) -> None:
        self.write_count += 1
        self.companions[(user_id, CompanionType(companion_type).value)] = record.model_copy()

    async def upsert_challenge_progress(
        self,
        user_id: str,
        companion_type: CompanionType,
        challenge_id: str,
        period_key: str,
        record: ChallengeProgress,
    ) -> None:
        self.write_count += 1
        key = (user_id, CompanionType(companion_type).value, challenge_id, period_key)
        self.challenges[key] = record.model_copy()

    async def load_companion_progress(self, user_id: str) -> List[CompanionProgress]:
        return [r.model_copy() for (uid, _), r in self.companions.items() if uid == user_id]

    async def load_challenge_progress(self, user_id: str, period_key: str) -> List[ChallengeProgress]:
        return [
            r.model_copy()
            for (uid, _, _, key), r in self.challenges.items()
            if uid == user_id and key == period_key
        ]
