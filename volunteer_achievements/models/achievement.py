"""Achievement models for rule evaluation"""
import json
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from volunteer_achievements import config


class RuleKind(str, Enum):
    """Evaluation algorithm selected by an achievement definition"""
    HOURS = "hours"
    EVENTS = "events"
    FREQUENCY = "frequency"
    CERTIFICATION = "certification"
    CUSTOM = "custom"
    LEGACY = "legacy"  # definitions created before rule kinds existed


# ==========================================
# Coercion helpers
# ==========================================

def _to_number(value: Any) -> Optional[float]:
    """Return value as a float, or None when it isn't numeric"""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


def _to_positive_int(value: Any) -> Optional[int]:
    number = _to_number(value)
    if number is None or number <= 0:
        return None
    return int(number)


# ==========================================
# Criteria
# ==========================================

class Criteria(BaseModel):
    """
    Typed view over an achievement's loosely-typed criteria bag.

    Parsing never fails: missing or malformed fields resolve to defaults
    instead of aborting the batch. A missing or malformed threshold is 0,
    so such an hours or events achievement is earned immediately.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def parse(cls, bag: Any) -> "Criteria":
        return cls.model_validate(bag if isinstance(bag, dict) else {})


class ThresholdCriteria(Criteria):
    """Criteria shared by the hours and events rules"""
    threshold: float = 0
    organization_id: Optional[int] = Field(default=None, alias="organizationId")
    within_days: Optional[int] = Field(default=None, alias="withinDays")

    @field_validator("threshold", mode="before")
    @classmethod
    def _threshold(cls, value: Any) -> float:
        number = _to_number(value)
        return number if number is not None and number > 0 else 0

    @field_validator("organization_id", "within_days", mode="before")
    @classmethod
    def _positive_id(cls, value: Any) -> Optional[int]:
        return _to_positive_int(value)


class HoursCriteria(ThresholdCriteria):
    """{ threshold: 50, organizationId?: 3, withinDays?: 90 }"""


class EventsCriteria(ThresholdCriteria):
    """{ threshold: 10, organizationId?: 3, withinDays?: 90 }"""


class FrequencyCriteria(Criteria):
    """{ consecutiveMonths: 3, minHoursPerMonth: 5 }"""
    consecutive_months: int = Field(default_factory=lambda: config.DEFAULT_CONSECUTIVE_MONTHS, alias="consecutiveMonths")
    min_hours_per_month: float = Field(default_factory=lambda: config.DEFAULT_MIN_HOURS_PER_MONTH, alias="minHoursPerMonth")

    @field_validator("consecutive_months", mode="before")
    @classmethod
    def _months(cls, value: Any) -> int:
        return _to_positive_int(value) or config.DEFAULT_CONSECUTIVE_MONTHS

    @field_validator("min_hours_per_month", mode="before")
    @classmethod
    def _min_hours(cls, value: Any) -> float:
        number = _to_number(value)
        return number if number is not None and number > 0 else config.DEFAULT_MIN_HOURS_PER_MONTH


class CertificationCriteria(Criteria):
    """{ requiredCertifications: ['First Aid', 'CPR'] }"""
    required_certifications: list[str] = Field(default_factory=list, alias="requiredCertifications")

    @field_validator("required_certifications", mode="before")
    @classmethod
    def _required(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple, set)):
            return []
        required = []
        for item in value:
            if isinstance(item, str) and item.strip() and item not in required:
                required.append(item)
        return required


class LegacyCriteria(Criteria):
    """Criteria of untyped definitions carry their own `type` discriminator (matched exactly)"""
    type: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: Any) -> Optional[str]:
        return value if isinstance(value, str) else None


# ==========================================
# Definitions, awards and progress
# ==========================================

class AchievementDefinition(BaseModel):
    """Achievement definition (read-only to the engine)"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str = ""
    rule_kind: Optional[str] = Field(default=None, alias="ruleType")
    criteria: dict[str, Any] = Field(default_factory=dict)
    is_milestone: bool = Field(default=False, alias="isMilestone")
    is_enabled: bool = Field(default=True, alias="isEnabled")
    organization_id: Optional[int] = Field(default=None, alias="organizationId")

    @field_validator("criteria", mode="before")
    @classmethod
    def _criteria(cls, value: Any) -> dict:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return {}
        return value if isinstance(value, dict) else {}

    @property
    def kind(self) -> RuleKind:
        """Rule kind, matched exactly; anything unrecognized is treated as legacy"""
        try:
            return RuleKind(self.rule_kind or "")
        except ValueError:
            return RuleKind.LEGACY


class ProgressValue(BaseModel):
    """Partial progress reported by an evaluator"""
    current: float
    target: float


class EvaluationResult(BaseModel):
    """Outcome of evaluating one achievement for one user"""
    earned: bool
    progress: Optional[ProgressValue] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class MonthlyHours(BaseModel):
    """Approved hours summed over one calendar month"""
    month: date  # first day of the month
    hours: float = 0

    @field_validator("month", mode="before")
    @classmethod
    def _month(cls, value: Any) -> date:
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, date):
            return value.replace(day=1)
        if isinstance(value, str):
            year, month = value.strip()[:7].split("-")
            return date(int(year), int(month), 1)
        raise ValueError(f"Unsupported month value: {value!r}")

    @field_validator("hours", mode="before")
    @classmethod
    def _hours(cls, value: Any) -> float:
        return _to_number(value) or 0


class UserAchievementAward(BaseModel):
    """Durable, at-most-once record that a user earned an achievement"""
    id: int
    user_id: int
    achievement_id: int
    awarded_at: datetime
    metadata: Optional[dict[str, Any]] = None
    granted_by: Optional[int] = None
    grant_reason: Optional[str] = None

    @property
    def automatic(self) -> bool:
        return self.granted_by is None


class AchievementProgress(BaseModel):
    """Progress toward a milestone achievement that is not yet awarded"""
    user_id: int
    achievement_id: int
    current_value: float
    target_value: float
    percentage: int = Field(ge=0, le=100)
    last_evaluated_at: datetime


class EvaluationSummary(BaseModel):
    """Counts produced by evaluating one user"""
    awarded: int = 0
    updated: int = 0


class SweepSummary(BaseModel):
    """Totals produced by evaluating every user"""
    users: int = 0
    awarded: int = 0
    updated: int = 0
    failed: int = 0
