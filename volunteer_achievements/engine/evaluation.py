"""
AchievementEvaluationService - Batch Orchestrator

Evaluates a user's enabled achievements one at a time and routes each
result to the Award Manager (earned) or the Progress Tracker (milestone,
not yet earned).
"""

import logging
import time
from typing import Optional

from volunteer_achievements import config
from volunteer_achievements.engine.awards import AwardManager
from volunteer_achievements.engine.interfaces import AchievementStore, AuditSink, NotificationSink
from volunteer_achievements.engine.progress import ProgressTracker
from volunteer_achievements.engine.rules import RuleEvaluator
from volunteer_achievements.exceptions import (
    AchievementEngineError,
    EvaluationError,
    wrap_external_exception,
)
from volunteer_achievements.models.achievement import (
    AchievementDefinition,
    AchievementProgress,
    EvaluationSummary,
    SweepSummary,
    UserAchievementAward,
)
from volunteer_achievements.observability import metrics

logger = logging.getLogger(__name__)


class AchievementEvaluationService:
    """
    Service for evaluating and awarding achievements.

    Responsibilities:
    - Per-user evaluation of every enabled achievement
    - Routing earned results to awards and the rest to milestone progress
    - Sweeping all users in pages
    - Manual grant, revoke and progress lookup
    """

    def __init__(
        self,
        store: Optional[AchievementStore] = None,
        notifier: Optional[NotificationSink] = None,
        auditor: Optional[AuditSink] = None
    ):
        """
        Initialize AchievementEvaluationService.

        Args:
            store: Activity, definition, award and progress store
                (defaults to the PostgreSQL queries)
            notifier: Notification sink (defaults to the notifications table)
            auditor: Audit sink (defaults to the audit_logs table)
        """
        if store is None or notifier is None or auditor is None:
            from volunteer_achievements.db import queries
            store = store or queries
            notifier = notifier or queries.DatabaseNotificationSink()
            auditor = auditor or queries.DatabaseAuditSink()

        self.store = store
        self.rules = RuleEvaluator(store)
        self.progress = ProgressTracker(store)
        self.awards = AwardManager(store, notifier, auditor)
        logger.debug("AchievementEvaluationService initialized")

    async def evaluate_for_user(
        self,
        user_id: int,
        achievement_id: Optional[int] = None
    ) -> EvaluationSummary:
        """
        Evaluate all enabled achievements (or one) for a user.

        Achievements are processed in order. The first failure aborts the
        rest of the batch; awards and progress committed before it stay.

        Args:
            user_id: Volunteer's user ID
            achievement_id: Only evaluate this achievement

        Returns:
            EvaluationSummary with awarded and updated counts

        Raises:
            EvaluationError: carrying the counts committed before the failure
        """
        awarded = 0
        updated = 0
        current: Optional[AchievementDefinition] = None
        started = time.perf_counter()

        try:
            achievements = await self.store.list_enabled_achievements(achievement_id)

            for achievement in achievements:
                current = achievement

                # Skip if user already has this achievement
                if await self.store.find_award(user_id, achievement.id):
                    continue

                result = await self.rules.evaluate(user_id, achievement)

                if result.earned:
                    await self.awards.award(user_id, achievement.id, result.metadata)
                    awarded += 1
                elif achievement.is_milestone and result.progress is not None:
                    await self.progress.update_progress(
                        user_id,
                        achievement.id,
                        result.progress.current,
                        result.progress.target
                    )
                    metrics.achievement_progress_updates_total.labels(rule_kind=achievement.kind.value).inc()
                    updated += 1

        except Exception as e:
            failed_id = current.id if current else achievement_id
            logger.error(
                f"Achievement evaluation error for user {user_id} "
                f"(achievement {failed_id}): {e}. "
                f"Committed before failure: {awarded} awarded, {updated} updated",
                exc_info=True
            )
            metrics.achievement_evaluations_total.labels(status="error").inc()

            if isinstance(e, EvaluationError):
                error = e
            elif isinstance(e, AchievementEngineError):
                error = EvaluationError(
                    message=f"evaluate_for_user failed: {e.message}",
                    user_id=user_id,
                    achievement_id=failed_id,
                    operation="evaluate_for_user",
                    cause=e
                )
            else:
                error = wrap_external_exception(
                    e,
                    operation="evaluate_for_user",
                    user_id=user_id,
                    achievement_id=failed_id
                )

            error.awarded = awarded
            error.updated = updated
            if error is e:
                raise
            raise error from e

        finally:
            metrics.achievement_evaluation_duration_seconds.observe(time.perf_counter() - started)

        metrics.achievement_evaluations_total.labels(status="success").inc()
        logger.info(f"Evaluated achievements for user {user_id}: {awarded} awarded, {updated} updated")
        return EvaluationSummary(awarded=awarded, updated=updated)

    async def evaluate_all_users(
        self,
        achievement_id: Optional[int] = None,
        batch_size: Optional[int] = None
    ) -> SweepSummary:
        """
        Evaluate achievements for every user, a page of users at a time.

        A failure for one user is logged and counted; the sweep moves on
        to the next user.

        Raises:
            EvaluationError: counting or paging users failed
        """
        batch_size = batch_size or config.EVALUATION_BATCH_SIZE
        summary = SweepSummary()

        try:
            total = await self.store.count_users()
        except AchievementEngineError:
            raise
        except Exception as e:
            raise wrap_external_exception(e, operation="evaluate_all_users") from e

        logger.info(f"Evaluating achievements for {total} users...")

        for offset in range(0, total, batch_size):
            try:
                user_ids = await self.store.list_user_ids(offset, batch_size)
            except AchievementEngineError:
                raise
            except Exception as e:
                raise wrap_external_exception(
                    e,
                    operation="evaluate_all_users",
                    context={"offset": offset, "users_processed": summary.users}
                ) from e

            for user_id in user_ids:
                summary.users += 1
                try:
                    result = await self.evaluate_for_user(user_id, achievement_id)
                except EvaluationError as e:
                    summary.failed += 1
                    summary.awarded += e.awarded
                    summary.updated += e.updated
                    logger.error(f"Error evaluating user {user_id}: {e.message}")
                    continue

                summary.awarded += result.awarded
                summary.updated += result.updated

                if result.awarded > 0:
                    logger.info(f"  User {user_id}: {result.awarded} awarded, {result.updated} updated")

            logger.info(f"Progress: {summary.users}/{total} users processed")

        logger.info(
            f"Evaluation complete: {summary.awarded} achievements awarded, "
            f"{summary.updated} progress records updated, {summary.failed} users failed"
        )
        return summary

    async def grant(
        self,
        user_id: int,
        achievement_id: int,
        granted_by: int,
        reason: Optional[str] = None
    ) -> UserAchievementAward:
        """Manually grant an achievement (see AwardManager.grant)"""
        return await self.awards.grant(user_id, achievement_id, granted_by, reason)

    async def revoke(self, award_id: int, revoked_by: int, reason: Optional[str] = None) -> None:
        """Revoke an award (see AwardManager.revoke)"""
        await self.awards.revoke(award_id, revoked_by, reason)

    async def get_progress(self, user_id: int, achievement_id: Optional[int] = None) -> list[AchievementProgress]:
        """User's milestone progress rows"""
        return await self.progress.get_progress(user_id, achievement_id)
