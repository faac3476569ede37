"""Seller/customer messaging.

Messages belong to a (seller, customer) conversation. New rows are pushed to
listeners by the database trigger on the messages table; see
messaging.realtime.MessageFeed.
"""

import logging
from typing import List
from uuid import UUID

from pydantic import ValidationError

from database import get_pool, remote_error
from .models import ConversationPartner, Message, Sender

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000

class MessageError(Exception):
    """Base exception for messaging operations."""
    pass

class InvalidMessageError(MessageError):
    """Raised when a message is empty, too long or has an unknown sender."""
    pass

def to_message(row) -> Message:
    try:
        return Message(**dict(row))
    except ValidationError as e:
        raise MessageError(f"Malformed message record: {e}")

class MessageManager:
    """Reads and writes seller/customer conversations."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_conversation_partners(self, seller_id: UUID) -> List[ConversationPartner]:
        """Customers who have a conversation with the seller, most recent first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        u.user_id,
                        u.first_name,
                        u.last_name,
                        u.email,
                        u.photo_url,
                        max(m.created_at) AS last_message_at
                    FROM messages m
                    JOIN users u ON u.user_id = m.customer_id
                    WHERE m.seller_id = $1 AND u.type = 'CUSTOMER'
                    GROUP BY u.user_id
                    ORDER BY last_message_at DESC
                    ''',
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error listing conversations for seller {seller_id}: {e}")
            raise remote_error(e, MessageError, "Failed to list conversations")

        try:
            return [ConversationPartner(**dict(row)) for row in rows]
        except ValidationError as e:
            raise MessageError(f"Malformed conversation record: {e}")

    async def list_messages(self, seller_id: UUID, customer_id: UUID) -> List[Message]:
        """A conversation's messages, oldest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT * FROM messages
                    WHERE seller_id = $1 AND customer_id = $2
                    ORDER BY created_at ASC
                    ''',
                    seller_id,
                    customer_id
                )
        except Exception as e:
            logger.error(f"Error listing messages {seller_id}/{customer_id}: {e}")
            raise remote_error(e, MessageError, "Failed to list messages")

        return [to_message(row) for row in rows]

    async def send_message(
        self,
        seller_id: UUID,
        customer_id: UUID,
        text: str,
        sender: Sender = Sender.SELLER
    ) -> Message:
        """Append a message to a conversation.

        Raises:
            InvalidMessageError: If the text is blank or too long, or sender is unknown
        """
        text = (text or '').strip()
        if not text:
            raise InvalidMessageError("Message cannot be empty")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise InvalidMessageError(f"Message exceeds {MAX_MESSAGE_LENGTH} characters")
        try:
            sender = Sender(sender)
        except ValueError:
            raise InvalidMessageError(f"Unknown sender: {sender}")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO messages (seller_id, customer_id, message, sender)
                    VALUES ($1, $2, $3, $4)
                    RETURNING *
                    ''',
                    seller_id,
                    customer_id,
                    text,
                    sender.value
                )
        except Exception as e:
            logger.error(f"Error sending message {seller_id}/{customer_id}: {e}")
            raise remote_error(e, MessageError, "Failed to send message")

        return to_message(row)

__all__ = [
    'MessageManager',
    'Message',
    'ConversationPartner',
    'Sender',
    'MessageError',
    'InvalidMessageError',
    'to_message',
    'MAX_MESSAGE_LENGTH'
]
