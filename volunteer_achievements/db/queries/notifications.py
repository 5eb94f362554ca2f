"""Notification queries"""
import json
import logging
from typing import Any

from volunteer_achievements.db.connection import db

logger = logging.getLogger(__name__)


async def create_notification(user_id: int, kind: str, payload: dict[str, Any]) -> int:
    """
    Insert an in-app notification for a user

    Args:
        user_id: Recipient user ID
        kind: Notification type (e.g. 'achievement_earned')
        payload: Dict with title, message, action_url, action_text and any extra data

    Returns:
        Notification ID
    """
    async with db.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO notifications (user_id, type, title, message, action_url, action_text, data)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    user_id,
                    kind,
                    payload.get('title'),
                    payload.get('message'),
                    payload.get('action_url'),
                    payload.get('action_text'),
                    json.dumps(payload, default=str)
                )
            )
            result = await cur.fetchone()
            await conn.commit()
            return result['id']


class DatabaseNotificationSink:
    """Notification sink that stores notifications in the notifications table"""

    async def notify(self, user_id: int, kind: str, payload: dict[str, Any]) -> None:
        notification_id = await create_notification(user_id, kind, payload)
        logger.debug(f"Created {kind} notification {notification_id} for user {user_id}")
