"""
Rule Evaluator

Decides whether a user's activity satisfies an achievement's criteria.
One evaluator per rule kind:
- hours: approved hours >= threshold
- events: attended events >= threshold
- frequency: consecutive qualifying months >= required months
- certification: every required certification held (no partial credit)
- custom: placeholder, never earned
- legacy: untyped definitions, re-dispatched on criteria['type']
"""

from datetime import datetime, timezone
import logging

from volunteer_achievements.engine.interfaces import ActivityQueries
from volunteer_achievements.engine.streaks import max_consecutive_months
from volunteer_achievements.models.achievement import (
    AchievementDefinition,
    CertificationCriteria,
    EvaluationResult,
    EventsCriteria,
    FrequencyCriteria,
    HoursCriteria,
    LegacyCriteria,
    ProgressValue,
    RuleKind,
)

logger = logging.getLogger(__name__)


def _evaluated_at() -> str:
    return datetime.now(timezone.utc).isoformat()


class RuleEvaluator:
    """Evaluates achievement definitions against a user's activity"""

    def __init__(self, activity: ActivityQueries):
        self.activity = activity
        self._evaluators = {
            RuleKind.HOURS: self.evaluate_hours,
            RuleKind.EVENTS: self.evaluate_events,
            RuleKind.FREQUENCY: self.evaluate_frequency,
            RuleKind.CERTIFICATION: self.evaluate_certification,
            RuleKind.CUSTOM: self.evaluate_custom,
            RuleKind.LEGACY: self.evaluate_legacy,
        }

    async def evaluate(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """Evaluate one achievement for one user"""
        return await self._evaluators[achievement.kind](user_id, achievement)

    async def evaluate_hours(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """
        Hour-based achievement

        Criteria format: { threshold: 50, organizationId?: 3, withinDays?: 90 }
        """
        criteria = HoursCriteria.parse(achievement.criteria)
        total_hours = await self.activity.sum_approved_hours(
            user_id,
            organization_id=criteria.organization_id or achievement.organization_id,
            since_days=criteria.within_days,
        )

        return EvaluationResult(
            earned=total_hours >= criteria.threshold,
            progress=ProgressValue(current=total_hours, target=criteria.threshold),
            metadata={
                "total_hours": total_hours,
                "threshold": criteria.threshold,
                "evaluated_at": _evaluated_at(),
            },
        )

    async def evaluate_events(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """
        Event participation achievement

        Criteria format: { threshold: 10, organizationId?: 3, withinDays?: 90 }
        """
        criteria = EventsCriteria.parse(achievement.criteria)
        total_events = await self.activity.count_present_events(
            user_id,
            organization_id=criteria.organization_id or achievement.organization_id,
            since_days=criteria.within_days,
        )

        return EvaluationResult(
            earned=total_events >= criteria.threshold,
            progress=ProgressValue(current=total_events, target=criteria.threshold),
            metadata={
                "total_events": total_events,
                "threshold": criteria.threshold,
                "evaluated_at": _evaluated_at(),
            },
        )

    async def evaluate_frequency(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """
        Frequency achievement (e.g. 3 consecutive months of participation)

        Criteria format: { consecutiveMonths: 3, minHoursPerMonth: 5 }
        """
        criteria = FrequencyCriteria.parse(achievement.criteria)
        monthly_hours = await self.activity.monthly_approved_hours(user_id)
        max_consecutive = max_consecutive_months(monthly_hours, criteria.min_hours_per_month)

        return EvaluationResult(
            earned=max_consecutive >= criteria.consecutive_months,
            progress=ProgressValue(current=max_consecutive, target=criteria.consecutive_months),
            metadata={
                "max_consecutive_months": max_consecutive,
                "required_months": criteria.consecutive_months,
                "evaluated_at": _evaluated_at(),
            },
        )

    async def evaluate_certification(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """
        Certification achievement, all-or-nothing with no progress

        Criteria format: { requiredCertifications: ['First Aid', 'CPR'] }
        """
        criteria = CertificationCriteria.parse(achievement.criteria)
        required = criteria.required_certifications

        if not required:
            return EvaluationResult(earned=False)

        held = await self.activity.approved_certification_types(user_id, required)

        return EvaluationResult(
            earned=all(certification in held for certification in required),
            metadata={
                "required_certifications": required,
                "has_certifications": sorted(held),
                "evaluated_at": _evaluated_at(),
            },
        )

    async def evaluate_custom(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """Extension point for pluggable rules; never earned for now"""
        logger.warning(f"Custom rule evaluation not yet implemented for achievement {achievement.id}")
        return EvaluationResult(earned=False)

    async def evaluate_legacy(self, user_id: int, achievement: AchievementDefinition) -> EvaluationResult:
        """
        Definitions created before rule kinds existed

        Criteria format: { type: 'hours' | 'events', ... }
        """
        criteria = LegacyCriteria.parse(achievement.criteria)

        if criteria.type == RuleKind.HOURS.value:
            return await self.evaluate_hours(user_id, achievement)
        elif criteria.type == RuleKind.EVENTS.value:
            return await self.evaluate_events(user_id, achievement)

        # Default: not earned
        return EvaluationResult(earned=False)
