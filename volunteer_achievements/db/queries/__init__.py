"""
Database queries - re-exported so `from volunteer_achievements.db import queries`
gives one object covering every store the engine consumes.

Module organization:
- activity.py: approved hours, attendance, certifications, user paging
- achievements.py: achievement definitions, awards, progress
- notifications.py: in-app notifications
- audit.py: audit log entries
"""

# Activity aggregation
from volunteer_achievements.db.queries.activity import (
    sum_approved_hours,
    monthly_approved_hours,
    count_present_events,
    approved_certification_types,
    count_users,
    list_user_ids,
)

# Achievement definitions, awards and progress
from volunteer_achievements.db.queries.achievements import (
    list_enabled_achievements,
    get_achievement,
    find_achievement_title,
    find_award,
    find_award_by_id,
    create_award,
    delete_award,
    upsert_progress,
    list_progress,
)

# Side-effect sinks
from volunteer_achievements.db.queries.notifications import (
    create_notification,
    DatabaseNotificationSink,
)
from volunteer_achievements.db.queries.audit import (
    create_audit_log,
    DatabaseAuditSink,
)

__all__ = [
    "sum_approved_hours",
    "monthly_approved_hours",
    "count_present_events",
    "approved_certification_types",
    "count_users",
    "list_user_ids",
    "list_enabled_achievements",
    "get_achievement",
    "find_achievement_title",
    "find_award",
    "find_award_by_id",
    "create_award",
    "delete_award",
    "upsert_progress",
    "list_progress",
    "create_notification",
    "DatabaseNotificationSink",
    "create_audit_log",
    "DatabaseAuditSink",
]
