"""Achievement definition, award and progress queries"""
import json
import logging
from typing import Any, Optional

from volunteer_achievements.db.connection import db
from volunteer_achievements.models.achievement import (
    AchievementDefinition,
    AchievementProgress,
    UserAchievementAward,
)

logger = logging.getLogger(__name__)

_DEFINITION_COLUMNS = "id, title, rule_kind, criteria, is_milestone, is_enabled, organization_id"
_AWARD_COLUMNS = "id, user_id, achievement_id, awarded_at, metadata, granted_by, grant_reason"
_PROGRESS_COLUMNS = "user_id, achievement_id, current_value, target_value, percentage, last_evaluated_at"


# ==========================================
# Achievement Definitions
# ==========================================

async def list_enabled_achievements(achievement_id: Optional[int] = None) -> list[AchievementDefinition]:
    """
    Get enabled achievement definitions

    Args:
        achievement_id: Restrict to a single achievement

    Returns:
        Definitions ordered by ID
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if achievement_id is not None:
                await cur.execute(
                    f"""
                    SELECT {_DEFINITION_COLUMNS}
                    FROM achievements
                    WHERE is_enabled = true AND id = %s
                    """,
                    (achievement_id,)
                )
            else:
                await cur.execute(
                    f"""
                    SELECT {_DEFINITION_COLUMNS}
                    FROM achievements
                    WHERE is_enabled = true
                    ORDER BY id
                    """
                )
            rows = await cur.fetchall()
            return [AchievementDefinition.model_validate(dict(row)) for row in rows]


async def get_achievement(achievement_id: int) -> Optional[AchievementDefinition]:
    """Get an achievement definition regardless of its enabled flag"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_DEFINITION_COLUMNS}
                FROM achievements
                WHERE id = %s
                """,
                (achievement_id,)
            )
            row = await cur.fetchone()
            return AchievementDefinition.model_validate(dict(row)) if row else None


async def find_achievement_title(achievement_id: int) -> str:
    """Display title of an achievement (empty string if unknown)"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT title FROM achievements WHERE id = %s",
                (achievement_id,)
            )
            row = await cur.fetchone()
            return row['title'] if row else ""


# ==========================================
# Awards
# ==========================================

async def find_award(user_id: int, achievement_id: int) -> Optional[UserAchievementAward]:
    """Get the award for a (user, achievement) pair"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_AWARD_COLUMNS}
                FROM user_achievements
                WHERE user_id = %s AND achievement_id = %s
                """,
                (user_id, achievement_id)
            )
            row = await cur.fetchone()
            return UserAchievementAward.model_validate(dict(row)) if row else None


async def find_award_by_id(award_id: int) -> Optional[UserAchievementAward]:
    """Get an award by its ID"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_AWARD_COLUMNS}
                FROM user_achievements
                WHERE id = %s
                """,
                (award_id,)
            )
            row = await cur.fetchone()
            return UserAchievementAward.model_validate(dict(row)) if row else None


async def create_award(
    user_id: int,
    achievement_id: int,
    metadata: Optional[dict[str, Any]] = None,
    granted_by: Optional[int] = None,
    grant_reason: Optional[str] = None
) -> tuple[UserAchievementAward, bool]:
    """
    Create an award unless one already exists for the pair

    Relies on the (user_id, achievement_id) unique constraint, so two
    racing evaluations can never both insert.

    Returns:
        (award, created) - created is False when the existing row is returned
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO user_achievements (user_id, achievement_id, metadata, granted_by, grant_reason)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (user_id, achievement_id) DO NOTHING
                RETURNING {_AWARD_COLUMNS}
                """,
                (
                    user_id,
                    achievement_id,
                    json.dumps(metadata, default=str) if metadata is not None else None,
                    granted_by,
                    grant_reason
                )
            )
            row = await cur.fetchone()
            await conn.commit()

    if row:
        return UserAchievementAward.model_validate(dict(row)), True

    existing = await find_award(user_id, achievement_id)
    if existing is None:
        # Conflicting row was revoked between the insert and the re-read
        return await create_award(user_id, achievement_id, metadata, granted_by, grant_reason)
    return existing, False


async def delete_award(award_id: int) -> bool:
    """
    Delete an award

    Returns:
        True if a row was deleted
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "DELETE FROM user_achievements WHERE id = %s",
                (award_id,)
            )
            deleted = cur.rowcount > 0
            await conn.commit()
            return deleted


# ==========================================
# Progress
# ==========================================

async def upsert_progress(
    user_id: int,
    achievement_id: int,
    current_value: float,
    target_value: float,
    percentage: int
) -> AchievementProgress:
    """Create or refresh the progress row for a (user, achievement) pair"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                INSERT INTO achievement_progress (user_id, achievement_id, current_value, target_value, percentage, last_evaluated_at)
                VALUES (%s, %s, %s, %s, %s, CURRENT_TIMESTAMP)
                ON CONFLICT (user_id, achievement_id) DO UPDATE
                SET current_value = EXCLUDED.current_value,
                    target_value = EXCLUDED.target_value,
                    percentage = EXCLUDED.percentage,
                    last_evaluated_at = EXCLUDED.last_evaluated_at
                RETURNING {_PROGRESS_COLUMNS}
                """,
                (user_id, achievement_id, current_value, target_value, percentage)
            )
            row = await cur.fetchone()
            await conn.commit()
            return AchievementProgress.model_validate(dict(row))


async def list_progress(user_id: int, achievement_id: Optional[int] = None) -> list[AchievementProgress]:
    """Get a user's progress rows, optionally for one achievement"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            if achievement_id is not None:
                await cur.execute(
                    f"""
                    SELECT {_PROGRESS_COLUMNS}
                    FROM achievement_progress
                    WHERE user_id = %s AND achievement_id = %s
                    """,
                    (user_id, achievement_id)
                )
            else:
                await cur.execute(
                    f"""
                    SELECT {_PROGRESS_COLUMNS}
                    FROM achievement_progress
                    WHERE user_id = %s
                    ORDER BY percentage DESC, achievement_id
                    """,
                    (user_id,)
                )
            rows = await cur.fetchall()
            return [AchievementProgress.model_validate(dict(row)) for row in rows]
