"""Tests for seller-driven order transitions."""

import uuid
from decimal import Decimal

import pytest
from asyncpg.exceptions import UniqueViolationError

from orders import (
    ListingAlreadySoldError, OrderError, OrderManager, OrderNotFoundError,
    OrderPermissionError, OrderStatus, OrderTransitionError
)
from conftest import NOW, notification_row, order_row

SELLER_ID = uuid.uuid4()

@pytest.fixture
def order():
    return order_row(seller_id=SELLER_ID)

def transitioned(order, status):
    return {
        k: order[k] for k in (
            'checkout_id', 'buyer_id', 'shoe_id', 'payment_method', 'created_at', 'updated_at'
        )
    } | {'status': status}

def sale_row(order):
    return {
        "id": uuid.uuid4(),
        "shoe_id": order["shoe_id"],
        "seller_id": SELLER_ID,
        "buyer_id": order["buyer_id"],
        "price": order["price"],
        "created_at": NOW
    }

@pytest.mark.asyncio
async def test_complete_order(pool, conn, order):
    message = "Your order for Air Max 90 has been completed and is ready for shipping."
    conn.fetchrow.side_effect = [
        order,
        transitioned(order, "SENDING"),
        notification_row(order["buyer_id"], message, sender_id=SELLER_ID, shoe_id=order["shoe_id"]),
        sale_row(order)
    ]
    conn.fetchval.return_value = order["shoe_id"]

    result = await OrderManager(pool).complete_order(order["checkout_id"], SELLER_ID)

    assert result.order.status == OrderStatus.SENDING
    assert result.order.listing.status == "SOLD"
    assert result.sale.price == Decimal("120.00")
    assert result.notification.recipient_id == order["buyer_id"]
    assert result.notification.message == message
    assert conn.transactions == 1 and conn.committed

    lock_sql = conn.fetchrow.await_args_list[0].args[0]
    assert "FOR UPDATE OF c" in lock_sql
    transition_call = conn.fetchrow.await_args_list[1].args
    assert "status = $3" in transition_call[0]
    assert transition_call[2:] == ("SENDING", "PENDING")
    notification_call = conn.fetchrow.await_args_list[2].args
    assert notification_call[1] == message
    assert conn.fetchval.await_args.args[1:] == (order["shoe_id"], "SOLD")

@pytest.mark.parametrize("status", ["SENDING", "CANCELLED"])
@pytest.mark.asyncio
async def test_only_pending_orders_complete(pool, conn, status):
    row = order_row(seller_id=SELLER_ID, status=status)
    conn.fetchrow.return_value = row

    with pytest.raises(OrderTransitionError, match=status):
        await OrderManager(pool).complete_order(row["checkout_id"], SELLER_ID)

    assert conn.fetchrow.await_count == 1
    conn.fetchval.assert_not_awaited()

@pytest.mark.asyncio
async def test_racing_transition_rolls_back(pool, conn, order):
    # Row looked PENDING but another transition won the conditional update
    conn.fetchrow.side_effect = [order, None]

    with pytest.raises(OrderTransitionError, match="already processed"):
        await OrderManager(pool).complete_order(order["checkout_id"], SELLER_ID)

    assert conn.rolled_back
    conn.fetchval.assert_not_awaited()

@pytest.mark.asyncio
async def test_other_sellers_cannot_transition(pool, conn, order):
    conn.fetchrow.return_value = order

    with pytest.raises(OrderPermissionError):
        await OrderManager(pool).cancel_order(order["checkout_id"], uuid.uuid4())

    assert conn.fetchrow.await_count == 1

@pytest.mark.asyncio
async def test_missing_order(pool, conn):
    conn.fetchrow.return_value = None

    with pytest.raises(OrderNotFoundError):
        await OrderManager(pool).complete_order(uuid.uuid4(), SELLER_ID)

@pytest.mark.asyncio
async def test_already_sold_listing_aborts_completion(pool, conn, order):
    conn.fetchrow.side_effect = [order, transitioned(order, "SENDING")]
    conn.fetchval.return_value = None

    with pytest.raises(ListingAlreadySoldError, match="already SOLD"):
        await OrderManager(pool).complete_order(order["checkout_id"], SELLER_ID)

    assert conn.rolled_back
    assert conn.fetchrow.await_count == 2

@pytest.mark.asyncio
async def test_duplicate_sale_maps_to_already_sold(pool, conn, order):
    conn.fetchrow.side_effect = [
        order,
        transitioned(order, "SENDING"),
        notification_row(order["buyer_id"], "done"),
        UniqueViolationError("duplicate key value violates unique constraint \"idx_sales_shoe\"")
    ]
    conn.fetchval.return_value = order["shoe_id"]

    with pytest.raises(ListingAlreadySoldError):
        await OrderManager(pool).complete_order(order["checkout_id"], SELLER_ID)

    assert conn.rolled_back

@pytest.mark.asyncio
async def test_database_failure_is_wrapped(pool, conn, order):
    conn.fetchrow.side_effect = [order, transitioned(order, "SENDING"), RuntimeError("connection reset")]
    conn.fetchval.return_value = order["shoe_id"]

    with pytest.raises(OrderError, match="Failed to complete order"):
        await OrderManager(pool).complete_order(order["checkout_id"], SELLER_ID)

    assert conn.rolled_back

@pytest.mark.asyncio
async def test_cancel_order_leaves_listing(pool, conn, order):
    message = "Order for Air Max 90 has been cancelled by the seller."
    conn.fetchrow.side_effect = [
        order,
        transitioned(order, "CANCELLED"),
        notification_row(order["buyer_id"], message, sender_id=SELLER_ID)
    ]

    result = await OrderManager(pool).cancel_order(order["checkout_id"], SELLER_ID)

    assert result.order.status == OrderStatus.CANCELLED
    assert result.order.listing.status == "AVAILABLE"
    assert result.notification.message == message
    conn.fetchval.assert_not_awaited()
    assert conn.committed

@pytest.mark.asyncio
async def test_list_pending_by_seller(pool, conn, order):
    conn.fetch.return_value = [order]

    orders = await OrderManager(pool).list_pending_by_seller(SELLER_ID)

    assert orders[0].buyer.first_name == "Grace"
    assert orders[0].listing.published_by == SELLER_ID
    assert conn.fetch.await_args.args[1:] == (SELLER_ID, "PENDING")

@pytest.mark.asyncio
async def test_get_order_checks_seller(pool, conn, order):
    conn.fetchrow.return_value = order
    manager = OrderManager(pool)

    assert (await manager.get_order(order["checkout_id"], SELLER_ID)).checkout_id == order["checkout_id"]
    with pytest.raises(OrderPermissionError):
        await manager.get_order(order["checkout_id"], uuid.uuid4())
