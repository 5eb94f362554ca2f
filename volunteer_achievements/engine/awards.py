"""
Award Manager

Creates and revokes awards. An award exists at most once per
(user, achievement); awarding an existing pair returns the stored award
without re-firing notification or audit side effects.
"""

import logging
from typing import Any, Optional

from volunteer_achievements import config
from volunteer_achievements.engine.interfaces import AchievementStore, AuditSink, NotificationSink
from volunteer_achievements.exceptions import (
    AchievementEngineError,
    NotFoundError,
    wrap_external_exception,
)
from volunteer_achievements.models.achievement import UserAchievementAward
from volunteer_achievements.observability import metrics

logger = logging.getLogger(__name__)

NOTIFICATION_ACHIEVEMENT_EARNED = "achievement_earned"

AUDIT_ACHIEVEMENT_EARNED = "achievement_earned"
AUDIT_ACHIEVEMENT_GRANTED = "achievement_granted"
AUDIT_ACHIEVEMENT_REVOKED = "achievement_revoked"
AUDIT_TARGET_TYPE = "achievement"


class AwardManager:
    """Awards, grants and revokes achievements"""

    def __init__(self, store: AchievementStore, notifier: NotificationSink, auditor: AuditSink):
        self.store = store
        self.notifier = notifier
        self.auditor = auditor

    async def award(
        self,
        user_id: int,
        achievement_id: int,
        metadata: Optional[dict[str, Any]] = None,
        granted_by: Optional[int] = None,
        grant_reason: Optional[str] = None
    ) -> UserAchievementAward:
        """
        Award an achievement to a user

        Args:
            user_id: Recipient user ID
            achievement_id: Achievement ID
            metadata: Snapshot stored with the award (evaluation result)
            granted_by: Admin user ID for manual grants; None for automatic awards
            grant_reason: Free-form reason for manual grants

        Returns:
            The new award, or the existing one if the pair was already awarded

        Raises:
            EvaluationError: persisting the award or emitting a side effect failed
        """
        try:
            existing = await self.store.find_award(user_id, achievement_id)
            if existing:
                logger.info(f"Achievement {achievement_id} already awarded to user {user_id}")
                return existing

            award, created = await self.store.create_award(
                user_id,
                achievement_id,
                metadata=metadata,
                granted_by=granted_by,
                grant_reason=grant_reason
            )
            if not created:
                # Lost a race with a concurrent evaluation; the other one fired the side effects
                logger.info(f"Achievement {achievement_id} already awarded to user {user_id}")
                return award

            title = await self.store.find_achievement_title(achievement_id)

            await self.notifier.notify(
                user_id,
                NOTIFICATION_ACHIEVEMENT_EARNED,
                {
                    "title": "🏆 Achievement Unlocked!",
                    "message": f'You\'ve earned the "{title}" achievement!',
                    "achievement_id": achievement_id,
                    "achievement_title": title,
                    "action_url": config.ACHIEVEMENTS_ACTION_URL,
                    "action_text": "View Achievements",
                }
            )

            audit_payload = {
                "recipient_user_id": user_id,
                "achievement_title": title,
                "automatic": granted_by is None,
            }
            if granted_by is not None:
                audit_payload["granted_by"] = granted_by
            if grant_reason:
                audit_payload["grant_reason"] = grant_reason

            await self.auditor.record(
                granted_by if granted_by is not None else user_id,
                AUDIT_ACHIEVEMENT_GRANTED if granted_by is not None else AUDIT_ACHIEVEMENT_EARNED,
                AUDIT_TARGET_TYPE,
                achievement_id,
                audit_payload
            )

        except AchievementEngineError:
            raise
        except Exception as e:
            raise wrap_external_exception(
                e,
                operation="award_achievement",
                user_id=user_id,
                achievement_id=achievement_id
            ) from e

        metrics.achievements_awarded_total.labels(
            grant_type="automatic" if granted_by is None else "manual"
        ).inc()
        logger.info(f"Achievement {achievement_id} awarded to user {user_id}")
        return award

    async def grant(
        self,
        user_id: int,
        achievement_id: int,
        granted_by: int,
        reason: Optional[str] = None
    ) -> UserAchievementAward:
        """
        Manually grant an achievement

        Raises:
            NotFoundError: the achievement does not exist
        """
        try:
            achievement = await self.store.get_achievement(achievement_id)
        except AchievementEngineError:
            raise
        except Exception as e:
            raise wrap_external_exception(
                e,
                operation="grant_achievement",
                user_id=user_id,
                achievement_id=achievement_id
            ) from e

        if achievement is None:
            raise NotFoundError(
                f"Achievement {achievement_id} not found",
                record_type="achievement",
                record_id=achievement_id,
                user_id=user_id,
                operation="grant_achievement"
            )

        return await self.award(
            user_id,
            achievement_id,
            metadata={"manually_granted": True},
            granted_by=granted_by,
            grant_reason=reason
        )

    async def revoke(self, award_id: int, revoked_by: int, reason: Optional[str] = None) -> None:
        """
        Revoke an award

        The audit entry is written before the award row is deleted. There is
        no tombstone: a later evaluation may award the achievement again.

        Raises:
            NotFoundError: no award with this ID exists
        """
        try:
            award = await self.store.find_award_by_id(award_id)
        except AchievementEngineError:
            raise
        except Exception as e:
            raise wrap_external_exception(e, operation="revoke_achievement", context={"award_id": award_id}) from e

        if award is None:
            raise NotFoundError(
                f"Award {award_id} not found",
                record_type="user_achievement",
                record_id=award_id,
                operation="revoke_achievement"
            )

        try:
            title = await self.store.find_achievement_title(award.achievement_id)

            await self.auditor.record(
                revoked_by,
                AUDIT_ACHIEVEMENT_REVOKED,
                AUDIT_TARGET_TYPE,
                award.achievement_id,
                {
                    "recipient_user_id": award.user_id,
                    "achievement_title": title,
                    "revoked_by": revoked_by,
                    "reason": reason,
                }
            )

            await self.store.delete_award(award.id)

        except AchievementEngineError:
            raise
        except Exception as e:
            raise wrap_external_exception(
                e,
                operation="revoke_achievement",
                user_id=award.user_id,
                achievement_id=award.achievement_id,
                context={"award_id": award_id}
            ) from e

        metrics.achievements_revoked_total.inc()
        logger.info(f"Achievement {award.achievement_id} revoked from user {award.user_id}")
