"""Tests for messaging and the realtime message feed."""

import uuid

import pytest

from messaging import InvalidMessageError, MessageManager, Sender, to_message
from messaging.realtime import CHANNEL, MessageFeed
from conftest import NOW, message_row

SELLER_ID = uuid.uuid4()
CUSTOMER_ID = uuid.uuid4()

@pytest.mark.asyncio
async def test_send_message(pool, conn):
    conn.fetchrow.return_value = message_row(SELLER_ID, CUSTOMER_ID, "Still available?", "SELLER")

    message = await MessageManager(pool).send_message(SELLER_ID, CUSTOMER_ID, " Still available? ")

    assert message.sender == Sender.SELLER
    assert conn.fetchrow.await_args.args[1:] == (SELLER_ID, CUSTOMER_ID, "Still available?", "SELLER")

@pytest.mark.parametrize("text,sender", [
    ("   ", "SELLER"),
    ("x" * 2001, "SELLER"),
    ("hello", "ADMIN"),
])
@pytest.mark.asyncio
async def test_invalid_messages_never_reach_the_database(pool, conn, text, sender):
    with pytest.raises(InvalidMessageError):
        await MessageManager(pool).send_message(SELLER_ID, CUSTOMER_ID, text, sender)

    conn.fetchrow.assert_not_awaited()

@pytest.mark.asyncio
async def test_list_messages_oldest_first(pool, conn):
    conn.fetch.return_value = [
        message_row(SELLER_ID, CUSTOMER_ID, "first"),
        message_row(SELLER_ID, CUSTOMER_ID, "second", "SELLER")
    ]

    messages = await MessageManager(pool).list_messages(SELLER_ID, CUSTOMER_ID)

    assert [m.message for m in messages] == ["first", "second"]
    assert "ORDER BY created_at ASC" in conn.fetch.await_args.args[0]

@pytest.mark.asyncio
async def test_conversation_partners_are_customers(pool, conn):
    conn.fetch.return_value = [{
        "user_id": CUSTOMER_ID,
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
        "photo_url": None,
        "last_message_at": NOW
    }]

    partners = await MessageManager(pool).list_conversation_partners(SELLER_ID)

    assert partners[0].user_id == CUSTOMER_ID
    assert "u.type = 'CUSTOMER'" in conn.fetch.await_args.args[0]

@pytest.mark.asyncio
async def test_feed_listens_on_one_connection(pool, conn):
    feed = MessageFeed(pool)

    await feed.start()
    await feed.start()

    assert feed.running
    conn.add_listener.assert_awaited_once_with(CHANNEL, feed._on_notify)

    await feed.stop()
    assert not feed.running
    conn.remove_listener.assert_awaited_once_with(CHANNEL, feed._on_notify)
    pool.release.assert_awaited_once_with(conn)

@pytest.mark.asyncio
async def test_duplicate_notifications_are_delivered_once():
    feed = MessageFeed(pool=object())
    received = []

    async def handler(message):
        received.append(message.id)

    feed.on_new_message(handler)
    message = to_message(message_row(SELLER_ID, CUSTOMER_ID))

    assert await feed.dispatch(message) is True
    assert await feed.dispatch(message) is False
    assert received == [message.id]

@pytest.mark.asyncio
async def test_seen_window_is_bounded():
    feed = MessageFeed(pool=object(), seen_window=2)
    first, second, third = (to_message(message_row(SELLER_ID, CUSTOMER_ID)) for _ in range(3))

    for message in (first, second, third):
        await feed.dispatch(message)

    assert len(feed._seen) == 2
    # The oldest id fell out of the window
    assert await feed.dispatch(first) is True

@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    feed = MessageFeed(pool=object())
    received = []

    async def handler(message):
        received.append(message)

    unsubscribe = feed.on_new_message(handler)
    unsubscribe()
    unsubscribe()

    await feed.dispatch(to_message(message_row(SELLER_ID, CUSTOMER_ID)))
    assert received == []

@pytest.mark.asyncio
async def test_failing_handler_does_not_block_others():
    feed = MessageFeed(pool=object())
    received = []

    async def broken(message):
        raise RuntimeError("socket closed")

    async def handler(message):
        received.append(message)

    feed.on_new_message(broken)
    feed.on_new_message(handler)

    await feed.dispatch(to_message(message_row(SELLER_ID, CUSTOMER_ID)))
    assert len(received) == 1

@pytest.mark.asyncio
async def test_notify_payload_is_read_back_by_id(pool, conn):
    feed = MessageFeed(pool)
    received = []

    async def handler(message):
        received.append(message)

    feed.on_new_message(handler)
    row = message_row(SELLER_ID, CUSTOMER_ID, "Is it still available?")
    conn.fetchrow.return_value = row

    await feed._on_notify(None, 1234, CHANNEL, str(row["id"]))
    await feed._on_notify(None, 1234, CHANNEL, "not-a-uuid")
    # Already delivered ids are not read again
    await feed._on_notify(None, 1234, CHANNEL, str(row["id"]))

    assert len(received) == 1
    assert received[0].message == "Is it still available?"
    assert received[0].sender == Sender.CUSTOMER
    conn.fetchrow.assert_awaited_once()
    assert conn.fetchrow.await_args.args[1] == row["id"]

@pytest.mark.asyncio
async def test_notified_message_missing_or_unreadable_is_dropped(pool, conn):
    feed = MessageFeed(pool)
    received = []

    async def handler(message):
        received.append(message)

    feed.on_new_message(handler)

    await feed._on_notify(None, 1234, CHANNEL, str(uuid.uuid4()))
    conn.fetchrow.side_effect = RuntimeError("connection lost")
    await feed._on_notify(None, 1234, CHANNEL, str(uuid.uuid4()))

    assert received == []
    assert feed._seen == {}

@pytest.mark.asyncio
async def test_longest_message_is_accepted(pool, conn):
    # Multi-byte text at the character limit
    text = "\U0001F45F" * 2000
    conn.fetchrow.return_value = message_row(SELLER_ID, CUSTOMER_ID, text, "SELLER")

    message = await MessageManager(pool).send_message(SELLER_ID, CUSTOMER_ID, text)

    assert message.message == text
    assert conn.fetchrow.await_args.args[3] == text
