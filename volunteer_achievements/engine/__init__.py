"""
Achievement rule evaluation engine

Decides whether a volunteer's activity satisfies configurable achievements:
- Rule evaluation (hours, events, frequency, certification, custom, legacy)
- Consecutive-month streak detection
- Milestone progress tracking
- Idempotent, audited awards and revokes
- Per-user and all-users evaluation
"""

from volunteer_achievements.engine.streaks import max_consecutive_months
from volunteer_achievements.engine.rules import RuleEvaluator
from volunteer_achievements.engine.progress import ProgressTracker, calculate_percentage
from volunteer_achievements.engine.awards import AwardManager
from volunteer_achievements.engine.evaluation import AchievementEvaluationService

__all__ = [
    "max_consecutive_months",
    "RuleEvaluator",
    "ProgressTracker",
    "calculate_percentage",
    "AwardManager",
    "AchievementEvaluationService",
]
