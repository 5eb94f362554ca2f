"""Volunteer activity aggregation queries"""
import logging
from typing import Optional

from volunteer_achievements.db.connection import db
from volunteer_achievements.models.achievement import MonthlyHours

logger = logging.getLogger(__name__)


# ==========================================
# Approved Hours
# ==========================================

async def sum_approved_hours(
    user_id: int,
    organization_id: Optional[int] = None,
    since_days: Optional[int] = None
) -> float:
    """
    Sum approved volunteer hours for a user

    Args:
        user_id: Volunteer's user ID
        organization_id: Only count hours logged for this organization
        since_days: Only count hours dated within the trailing N days

    Returns:
        Total approved hours (0 when nothing matches)
    """
    conditions = ["user_id = %s", "status = 'Approved'"]
    params: list = [user_id]

    if organization_id:
        conditions.append("organization_id = %s")
        params.append(organization_id)

    if since_days:
        conditions.append("date >= CURRENT_DATE - %s::int")
        params.append(since_days)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT COALESCE(SUM(hours), 0) AS total
                FROM volunteer_hours
                WHERE {' AND '.join(conditions)}
                """,
                tuple(params)
            )
            row = await cur.fetchone()
            return float(row['total']) if row else 0.0


async def monthly_approved_hours(user_id: int) -> list[MonthlyHours]:
    """
    Approved hours grouped by calendar month, most recent month first

    Months without any approved hours are absent from the result.
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT DATE_TRUNC('month', date)::date AS month,
                       COALESCE(SUM(hours), 0) AS total
                FROM volunteer_hours
                WHERE user_id = %s AND status = 'Approved'
                GROUP BY DATE_TRUNC('month', date)
                ORDER BY month DESC
                """,
                (user_id,)
            )
            rows = await cur.fetchall()
            return [MonthlyHours(month=row['month'], hours=row['total']) for row in rows]


# ==========================================
# Event Attendance
# ==========================================

async def count_present_events(
    user_id: int,
    organization_id: Optional[int] = None,
    since_days: Optional[int] = None
) -> int:
    """
    Count attendance records marked Present for a user

    Args:
        user_id: Volunteer's user ID
        organization_id: Only count events run by this organization
        since_days: Only count attendance dated within the trailing N days

    Returns:
        Number of attended events
    """
    joins = ""
    conditions = ["a.user_id = %s", "a.status = 'Present'"]
    params: list = [user_id]

    if organization_id:
        joins = "JOIN events e ON e.id = a.event_id"
        conditions.append("e.organization_id = %s")
        params.append(organization_id)

    if since_days:
        conditions.append("a.date >= CURRENT_DATE - %s::int")
        params.append(since_days)

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT COUNT(*) AS total
                FROM attendances a
                {joins}
                WHERE {' AND '.join(conditions)}
                """,
                tuple(params)
            )
            row = await cur.fetchone()
            return int(row['total']) if row else 0


# ==========================================
# Certifications
# ==========================================

async def approved_certification_types(user_id: int, types: list[str]) -> set[str]:
    """
    Which of the given certification types the user currently holds

    A certification counts when its compliance document is approved
    and has not expired.
    """
    if not types:
        return set()

    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT DISTINCT document_type
                FROM compliance_documents
                WHERE user_id = %s
                AND status = 'Approved'
                AND document_type = ANY(%s)
                AND (expires_at IS NULL OR expires_at > CURRENT_TIMESTAMP)
                """,
                (user_id, list(types))
            )
            rows = await cur.fetchall()
            return {row['document_type'] for row in rows}


# ==========================================
# Users
# ==========================================

async def count_users() -> int:
    """Count users eligible for evaluation"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute("SELECT COUNT(*) AS total FROM users")
            row = await cur.fetchone()
            return int(row['total']) if row else 0


async def list_user_ids(offset: int = 0, limit: int = 50) -> list[int]:
    """Page through user IDs in a stable order"""
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT id
                FROM users
                ORDER BY id
                OFFSET %s
                LIMIT %s
                """,
                (offset, limit)
            )
            rows = await cur.fetchall()
            return [row['id'] for row in rows]
