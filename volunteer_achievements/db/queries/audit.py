"""Audit log queries"""
import json
import logging
from typing import Any, Optional

from volunteer_achievements.db.connection import db

logger = logging.getLogger(__name__)


async def create_audit_log(
    actor_user_id: Optional[int],
    action: str,
    target_type: str,
    target_id: Optional[int],
    payload: dict[str, Any]
) -> int:
    """
    Append an audit log entry

    Args:
        actor_user_id: User who performed the action
        action: 'achievement_earned', 'achievement_granted', 'achievement_revoked', ...
        target_type: Kind of record acted on (e.g. 'achievement')
        target_id: ID of the record acted on
        payload: Details stored as JSON text

    Returns:
        Audit log ID
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO audit_logs (user_id, action, target_type, target_id, metadata)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id
                """,
                (actor_user_id, action, target_type, target_id, json.dumps(payload, default=str))
            )
            result = await cur.fetchone()
            await conn.commit()
            return result['id']


class DatabaseAuditSink:
    """Audit sink backed by the audit_logs table"""

    async def record(
        self,
        actor_user_id: Optional[int],
        action: str,
        target_type: str,
        target_id: Optional[int],
        payload: dict[str, Any]
    ) -> None:
        await create_audit_log(actor_user_id, action, target_type, target_id, payload)
