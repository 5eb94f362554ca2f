"""
Prometheus metrics definitions for the achievement engine.

Metrics are organized by component:
- Award Manager: awards granted and revoked
- Progress Tracker: progress rows refreshed
- Batch Orchestrator: per-user evaluation outcomes and latency

Exposing them for scraping is left to the hosting process.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# Award Metrics
# =============================================================================

achievements_awarded_total = Counter(
    "achievements_awarded_total",
    "Total achievements awarded",
    ["grant_type"],  # grant_type: automatic/manual
)

achievements_revoked_total = Counter(
    "achievements_revoked_total",
    "Total achievements revoked",
)

# =============================================================================
# Progress Metrics
# =============================================================================

achievement_progress_updates_total = Counter(
    "achievement_progress_updates_total",
    "Total milestone progress rows upserted",
    ["rule_kind"],
)

# =============================================================================
# Evaluation Metrics
# =============================================================================

achievement_evaluations_total = Counter(
    "achievement_evaluations_total",
    "Total per-user achievement evaluations",
    ["status"],  # status: success/error
)

achievement_evaluation_duration_seconds = Histogram(
    "achievement_evaluation_duration_seconds",
    "Time spent evaluating all achievements for one user",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)
