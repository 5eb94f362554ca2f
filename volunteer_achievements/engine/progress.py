"""
Progress Tracker

Keeps one progress row per (user, achievement) for milestone
achievements that are not yet earned.
"""

import logging
import math
from typing import Optional

from volunteer_achievements.engine.interfaces import AchievementStore
from volunteer_achievements.models.achievement import AchievementProgress

logger = logging.getLogger(__name__)


def calculate_percentage(current_value: float, target_value: float) -> int:
    """
    Percentage of target reached, rounded half up and clamped to [0, 100]

    A zero or negative target yields 0 instead of dividing by zero.
    """
    if target_value <= 0:
        return 0
    percentage = math.floor(current_value / target_value * 100 + 0.5)
    return max(0, min(100, percentage))


class ProgressTracker:
    """Upserts milestone progress"""

    def __init__(self, store: AchievementStore):
        self.store = store

    async def update_progress(
        self,
        user_id: int,
        achievement_id: int,
        current_value: float,
        target_value: float
    ) -> AchievementProgress:
        """Create or refresh progress for a milestone achievement"""
        if target_value <= 0:
            logger.debug(
                f"Achievement {achievement_id} has no positive target; "
                f"recording 0% progress for user {user_id}"
            )

        percentage = calculate_percentage(current_value, target_value)
        progress = await self.store.upsert_progress(
            user_id,
            achievement_id,
            current_value,
            target_value,
            percentage
        )

        logger.debug(
            f"Progress for user {user_id} on achievement {achievement_id}: "
            f"{current_value}/{target_value} ({percentage}%)"
        )
        return progress

    async def get_progress(self, user_id: int, achievement_id: Optional[int] = None) -> list[AchievementProgress]:
        """User's progress rows, optionally for a single achievement"""
        return await self.store.list_progress(user_id, achievement_id)
