"""
In-memory store

Implements the same query surface as volunteer_achievements.db.queries
without PostgreSQL. Used for local dry runs and throughout the tests.
The (user_id, achievement_id) uniqueness of awards and progress rows is
enforced inside the store under a lock, mirroring the unique constraints
in migrations/001_achievement_engine.sql.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from volunteer_achievements.models.achievement import (
    AchievementDefinition,
    AchievementProgress,
    MonthlyHours,
    UserAchievementAward,
)

logger = logging.getLogger(__name__)


class MemoryStore:
    """In-memory activity, definition, award and progress storage"""

    def __init__(self, today: Optional[date] = None):
        self.today = today
        self._lock = asyncio.Lock()
        self._users: set[int] = set()
        self._achievements: dict[int, AchievementDefinition] = {}
        self._hours: list[dict] = []
        self._attendance: list[dict] = []
        self._certifications: list[dict] = []
        self._awards: dict[tuple[int, int], UserAchievementAward] = {}
        self._progress: dict[tuple[int, int], AchievementProgress] = {}
        self._next_award_id = 1

    def _today(self) -> date:
        return self.today or date.today()

    def _in_window(self, on: date, since_days: Optional[int]) -> bool:
        return not since_days or on >= self._today() - timedelta(days=since_days)

    # ==========================================
    # Seeding
    # ==========================================

    def add_user(self, user_id: int) -> None:
        self._users.add(user_id)

    def add_achievement(self, definition: AchievementDefinition) -> AchievementDefinition:
        self._achievements[definition.id] = definition
        return definition

    def add_hours(
        self,
        user_id: int,
        hours: float,
        on: date,
        organization_id: Optional[int] = None,
        status: str = "Approved"
    ) -> None:
        self._users.add(user_id)
        self._hours.append({
            "user_id": user_id,
            "hours": hours,
            "date": on,
            "organization_id": organization_id,
            "status": status,
        })

    def add_attendance(
        self,
        user_id: int,
        on: date,
        organization_id: Optional[int] = None,
        status: str = "Present"
    ) -> None:
        """organization_id is the organization running the attended event"""
        self._users.add(user_id)
        self._attendance.append({
            "user_id": user_id,
            "date": on,
            "organization_id": organization_id,
            "status": status,
        })

    def add_certification(
        self,
        user_id: int,
        document_type: str,
        status: str = "Approved",
        expires_at: Optional[datetime] = None
    ) -> None:
        """A naive expires_at is taken as UTC"""
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        self._users.add(user_id)
        self._certifications.append({
            "user_id": user_id,
            "document_type": document_type,
            "status": status,
            "expires_at": expires_at,
        })

    # ==========================================
    # Activity aggregation
    # ==========================================

    async def sum_approved_hours(
        self,
        user_id: int,
        organization_id: Optional[int] = None,
        since_days: Optional[int] = None
    ) -> float:
        return float(sum(
            entry["hours"] for entry in self._hours
            if entry["user_id"] == user_id
            and entry["status"] == "Approved"
            and (not organization_id or entry["organization_id"] == organization_id)
            and self._in_window(entry["date"], since_days)
        ))

    async def monthly_approved_hours(self, user_id: int) -> list[MonthlyHours]:
        totals: dict[date, float] = {}
        for entry in self._hours:
            if entry["user_id"] == user_id and entry["status"] == "Approved":
                month = entry["date"].replace(day=1)
                totals[month] = totals.get(month, 0) + entry["hours"]
        return [
            MonthlyHours(month=month, hours=hours)
            for month, hours in sorted(totals.items(), reverse=True)
        ]

    async def count_present_events(
        self,
        user_id: int,
        organization_id: Optional[int] = None,
        since_days: Optional[int] = None
    ) -> int:
        return sum(
            1 for record in self._attendance
            if record["user_id"] == user_id
            and record["status"] == "Present"
            and (not organization_id or record["organization_id"] == organization_id)
            and self._in_window(record["date"], since_days)
        )

    async def approved_certification_types(self, user_id: int, types: list[str]) -> set[str]:
        now = datetime.now(timezone.utc)
        return {
            doc["document_type"] for doc in self._certifications
            if doc["user_id"] == user_id
            and doc["status"] == "Approved"
            and doc["document_type"] in types
            and (doc["expires_at"] is None or doc["expires_at"] > now)
        }

    async def count_users(self) -> int:
        return len(self._users)

    async def list_user_ids(self, offset: int = 0, limit: int = 50) -> list[int]:
        return sorted(self._users)[offset:offset + limit]

    # ==========================================
    # Achievement definitions
    # ==========================================

    async def list_enabled_achievements(self, achievement_id: Optional[int] = None) -> list[AchievementDefinition]:
        return [
            definition for definition_id, definition in sorted(self._achievements.items())
            if definition.is_enabled
            and (achievement_id is None or definition_id == achievement_id)
        ]

    async def get_achievement(self, achievement_id: int) -> Optional[AchievementDefinition]:
        return self._achievements.get(achievement_id)

    async def find_achievement_title(self, achievement_id: int) -> str:
        definition = self._achievements.get(achievement_id)
        return definition.title if definition else ""

    # ==========================================
    # Awards
    # ==========================================

    async def find_award(self, user_id: int, achievement_id: int) -> Optional[UserAchievementAward]:
        return self._awards.get((user_id, achievement_id))

    async def find_award_by_id(self, award_id: int) -> Optional[UserAchievementAward]:
        for award in self._awards.values():
            if award.id == award_id:
                return award
        return None

    async def create_award(
        self,
        user_id: int,
        achievement_id: int,
        metadata: Optional[dict[str, Any]] = None,
        granted_by: Optional[int] = None,
        grant_reason: Optional[str] = None
    ) -> tuple[UserAchievementAward, bool]:
        async with self._lock:
            existing = self._awards.get((user_id, achievement_id))
            if existing is not None:
                return existing, False

            award = UserAchievementAward(
                id=self._next_award_id,
                user_id=user_id,
                achievement_id=achievement_id,
                awarded_at=datetime.now(timezone.utc),
                metadata=metadata,
                granted_by=granted_by,
                grant_reason=grant_reason,
            )
            self._next_award_id += 1
            self._awards[(user_id, achievement_id)] = award
            return award, True

    async def delete_award(self, award_id: int) -> bool:
        async with self._lock:
            for key, award in list(self._awards.items()):
                if award.id == award_id:
                    del self._awards[key]
                    return True
            return False

    def awards(self) -> list[UserAchievementAward]:
        return sorted(self._awards.values(), key=lambda award: award.id)

    # ==========================================
    # Progress
    # ==========================================

    async def upsert_progress(
        self,
        user_id: int,
        achievement_id: int,
        current_value: float,
        target_value: float,
        percentage: int
    ) -> AchievementProgress:
        async with self._lock:
            progress = AchievementProgress(
                user_id=user_id,
                achievement_id=achievement_id,
                current_value=current_value,
                target_value=target_value,
                percentage=percentage,
                last_evaluated_at=datetime.now(timezone.utc),
            )
            self._progress[(user_id, achievement_id)] = progress
            return progress

    async def list_progress(self, user_id: int, achievement_id: Optional[int] = None) -> list[AchievementProgress]:
        rows = [
            progress for (row_user, row_achievement), progress in self._progress.items()
            if row_user == user_id and (achievement_id is None or row_achievement == achievement_id)
        ]
        rows.sort(key=lambda progress: (-progress.percentage, progress.achievement_id))
        return rows


class MemoryNotificationSink:
    """Collects notifications instead of delivering them"""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []

    async def notify(self, user_id: int, kind: str, payload: dict[str, Any]) -> None:
        self.sent.append({"user_id": user_id, "kind": kind, "payload": payload})
        logger.debug(f"Queued {kind} notification for user {user_id} (not delivered)")


class MemoryAuditSink:
    """Collects audit entries in memory"""

    def __init__(self):
        self.entries: list[dict[str, Any]] = []

    async def record(
        self,
        actor_user_id: Optional[int],
        action: str,
        target_type: str,
        target_id: Optional[int],
        payload: dict[str, Any]
    ) -> None:
        self.entries.append({
            "actor_user_id": actor_user_id,
            "action": action,
            "target_type": target_type,
            "target_id": target_id,
            "payload": payload,
        })
