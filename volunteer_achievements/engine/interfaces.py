"""
Collaborator interfaces consumed by the engine

`volunteer_achievements.db.queries` (the module itself) and
`volunteer_achievements.db.memory_store.MemoryStore` both satisfy
AchievementStore; the sink protocols are satisfied by the
Database*Sink and Memory*Sink classes.
"""
from typing import Any, Optional, Protocol, runtime_checkable

from volunteer_achievements.models.achievement import (
    AchievementDefinition,
    AchievementProgress,
    MonthlyHours,
    UserAchievementAward,
)


@runtime_checkable
class ActivityQueries(Protocol):
    async def sum_approved_hours(
        self, user_id: int, organization_id: Optional[int] = None, since_days: Optional[int] = None
    ) -> float: ...

    async def count_present_events(
        self, user_id: int, organization_id: Optional[int] = None, since_days: Optional[int] = None
    ) -> int: ...

    async def approved_certification_types(self, user_id: int, types: list[str]) -> set[str]: ...

    async def monthly_approved_hours(self, user_id: int) -> list[MonthlyHours]:
        """Most recent month first"""
        ...


@runtime_checkable
class AchievementStore(ActivityQueries, Protocol):
    async def list_enabled_achievements(
        self, achievement_id: Optional[int] = None
    ) -> list[AchievementDefinition]: ...

    async def get_achievement(self, achievement_id: int) -> Optional[AchievementDefinition]: ...

    async def find_achievement_title(self, achievement_id: int) -> str: ...

    async def find_award(self, user_id: int, achievement_id: int) -> Optional[UserAchievementAward]: ...

    async def find_award_by_id(self, award_id: int) -> Optional[UserAchievementAward]: ...

    async def create_award(
        self,
        user_id: int,
        achievement_id: int,
        metadata: Optional[dict[str, Any]] = None,
        granted_by: Optional[int] = None,
        grant_reason: Optional[str] = None,
    ) -> tuple[UserAchievementAward, bool]:
        """
        Insert-or-ignore on (user_id, achievement_id). Returns the stored
        award and whether this call created it.
        """
        ...

    async def delete_award(self, award_id: int) -> bool: ...

    async def upsert_progress(
        self,
        user_id: int,
        achievement_id: int,
        current_value: float,
        target_value: float,
        percentage: int,
    ) -> AchievementProgress: ...

    async def list_progress(
        self, user_id: int, achievement_id: Optional[int] = None
    ) -> list[AchievementProgress]: ...

    async def count_users(self) -> int: ...

    async def list_user_ids(self, offset: int = 0, limit: int = 50) -> list[int]: ...


@runtime_checkable
class NotificationSink(Protocol):
    async def notify(self, user_id: int, kind: str, payload: dict[str, Any]) -> None: ...


@runtime_checkable
class AuditSink(Protocol):
    async def record(
        self,
        actor_user_id: Optional[int],
        action: str,
        target_type: str,
        target_id: Optional[int],
        payload: dict[str, Any],
    ) -> None: ...
