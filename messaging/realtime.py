"""Realtime feed of new messages over Postgres LISTEN/NOTIFY.

The messages table trigger publishes the id of every inserted row on the
``new_message`` channel. NOTIFY payloads are capped at 8000 bytes, so the row
itself is read back from the table. A MessageFeed holds one dedicated
connection that listens on that channel and hands each new Message to
registered handlers.
A message id is delivered at most once per feed.
"""

import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from database import get_pool
from . import to_message
from .models import Message

logger = logging.getLogger(__name__)

CHANNEL = 'new_message'
SEEN_WINDOW = 1000

MessageHandler = Callable[[Message], Awaitable[None]]

class MessageFeed:
    """Dispatches new messages to subscribers."""

    def __init__(self, pool=None, seen_window: int = SEEN_WINDOW):
        self.pool = pool
        self.seen_window = seen_window
        self._handlers: List[MessageHandler] = []
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._conn = None

    @property
    def running(self) -> bool:
        return self._conn is not None

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def start(self) -> None:
        """Acquire a connection and start listening."""
        if self._conn:
            return
        await self.ensure_pool()
        self._conn = await self.pool.acquire()
        await self._conn.add_listener(CHANNEL, self._on_notify)
        logger.info(f"Listening for {CHANNEL} notifications")

    async def stop(self) -> None:
        """Stop listening and release the connection."""
        if not self._conn:
            return
        conn, self._conn = self._conn, None
        try:
            await conn.remove_listener(CHANNEL, self._on_notify)
        finally:
            await self.pool.release(conn)
        logger.info(f"Stopped listening for {CHANNEL} notifications")

    def on_new_message(self, handler: MessageHandler) -> Callable[[], None]:
        """Register a handler; returns the callable that unregisters it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def _on_notify(self, connection, pid: int, channel: str, payload: str) -> None:
        try:
            message_id = UUID(payload)
        except ValueError:
            logger.error(f"Dropping malformed {channel} payload: {payload!r}")
            return
        if str(message_id) in self._seen:
            return

        message = await self.fetch_message(message_id)
        if message:
            await self.dispatch(message)

    async def fetch_message(self, message_id: UUID) -> Optional[Message]:
        """Load a notified message row; None when it cannot be read."""
        try:
            await self.ensure_pool()
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT * FROM messages WHERE id = $1',
                    message_id
                )
            if not row:
                logger.warning(f"Notified message {message_id} not found")
                return None
            return to_message(row)
        except Exception as e:
            logger.error(f"Failed to load notified message {message_id}: {e}")
            return None

    async def dispatch(self, message: Message) -> bool:
        """Deliver a message to every handler unless it was already delivered.

        Returns:
            True if the message was delivered, False for a duplicate
        """
        key = str(message.id)
        if key in self._seen:
            return False
        self._seen[key] = None
        while len(self._seen) > self.seen_window:
            self._seen.popitem(last=False)

        for handler in list(self._handlers):
            try:
                await handler(message)
            except Exception as e:
                logger.error(f"Message handler failed for {key}: {e}")
        return True

# Create global instance
feed = MessageFeed()

__all__ = ['MessageFeed', 'MessageHandler', 'CHANNEL', 'feed']
