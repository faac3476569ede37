"""Buyer notifications written by order transitions."""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ValidationError

from database import get_pool, remote_error

logger = logging.getLogger(__name__)

class NotificationError(Exception):
    """Base exception for notification operations."""
    pass

class NotificationNotFoundError(NotificationError):
    """Raised when a notification is not found for its recipient."""
    pass

class Notification(BaseModel):
    id: UUID
    message: str
    sender_id: Optional[UUID] = None
    recipient_id: UUID
    shoe_id: Optional[UUID] = None
    read: bool = False
    created_at: datetime

def to_notification(row) -> Notification:
    try:
        return Notification(**dict(row))
    except ValidationError as e:
        raise NotificationError(f"Malformed notification record: {e}")

async def create_notification(
    conn,
    message: str,
    sender_id: Optional[UUID],
    recipient_id: UUID,
    shoe_id: Optional[UUID] = None
) -> Notification:
    """Insert a notification on an open connection.

    Runs inside the caller's transaction, so the notification is only
    visible if the surrounding state change commits.
    """
    row = await conn.fetchrow(
        '''
        INSERT INTO notifications (message, sender_id, recipient_id, shoe_id)
        VALUES ($1, $2, $3, $4)
        RETURNING *
        ''',
        message,
        sender_id,
        recipient_id,
        shoe_id
    )
    return to_notification(row)

class NotificationManager:
    """Reads and acknowledges an account's notifications."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_for_user(self, user_id: UUID, unread_only: bool = False) -> List[Notification]:
        """Notifications addressed to user_id, newest first."""
        await self.ensure_pool()

        query = 'SELECT * FROM notifications WHERE recipient_id = $1'
        if unread_only:
            query += ' AND NOT read'
        query += ' ORDER BY created_at DESC'

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, user_id)
        except Exception as e:
            logger.error(f"Error listing notifications for {user_id}: {e}")
            raise remote_error(e, NotificationError, "Failed to list notifications")

        return [to_notification(row) for row in rows]

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """Mark one of user_id's notifications as read.

        Raises:
            NotificationNotFoundError: If it does not exist or belongs to someone else
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    UPDATE notifications
                    SET read = true
                    WHERE id = $1 AND recipient_id = $2
                    RETURNING *
                    ''',
                    notification_id,
                    user_id
                )
        except Exception as e:
            logger.error(f"Error marking notification {notification_id} read: {e}")
            raise remote_error(e, NotificationError, "Failed to update notification")

        if not row:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return to_notification(row)

__all__ = [
    'Notification',
    'NotificationManager',
    'NotificationError',
    'NotificationNotFoundError',
    'create_notification',
    'to_notification'
]
