"""Orders module for the seller side of the checkout lifecycle.

An order (a checkout row) starts PENDING and is moved exactly once by the
listing's seller:

    PENDING -> SENDING    (complete: listing SOLD, buyer notified, sale recorded)
    PENDING -> CANCELLED  (cancel: buyer notified, listing untouched)

Each transition runs in a single transaction guarded by a conditional update
on the PENDING status, so a failed step leaves no partial writes and two
racing transitions cannot both succeed.
"""
import logging
from typing import List, Optional
from uuid import UUID

from asyncpg.exceptions import UniqueViolationError
from pydantic import ValidationError

from database import get_pool, remote_error
from listings.models import ListingStatus
from notifications import create_notification
from .models import (
    Buyer,
    CancelledOrder,
    CompletedOrder,
    Order,
    OrderListing,
    OrderStatus,
    Sale
)

logger = logging.getLogger(__name__)

COMPLETED_MESSAGE = "Your order for {shoe_name} has been completed and is ready for shipping."
CANCELLED_MESSAGE = "Order for {shoe_name} has been cancelled by the seller."

ORDER_SELECT = '''
    SELECT
        c.*,
        s.shoe_name,
        s.brand,
        s.price,
        s.image_url,
        s.status AS listing_status,
        s.published_by,
        u.first_name AS buyer_first_name,
        u.last_name AS buyer_last_name,
        u.email AS buyer_email,
        u.contact_number AS buyer_contact_number,
        u.address AS buyer_address
    FROM checkouts c
    JOIN shoes s ON s.shoe_id = c.shoe_id
    LEFT JOIN users u ON u.user_id = c.buyer_id
'''

class OrderError(Exception):
    """Base class for order-related errors."""
    pass

class OrderNotFoundError(OrderError):
    """Raised when an order does not exist."""
    pass

class OrderPermissionError(OrderError):
    """Raised when someone other than the listing's seller acts on an order."""
    pass

class OrderTransitionError(OrderError):
    """Raised when an order is no longer PENDING."""
    def __init__(self, checkout_id: UUID, status: Optional[str] = None):
        self.checkout_id = checkout_id
        self.status = status
        detail = f"is {status}" if status else "was already processed"
        super().__init__(f"Order {checkout_id} {detail}, only PENDING orders can change")

class ListingAlreadySoldError(OrderTransitionError):
    """Raised when completing an order whose listing has already been sold."""
    def __init__(self, checkout_id: UUID):
        self.checkout_id = checkout_id
        self.status = None
        OrderError.__init__(self, f"Listing for order {checkout_id} is already SOLD")

def to_order(row) -> Order:
    """Validate a checkout row joined by ORDER_SELECT into an Order."""
    data = dict(row)
    try:
        order = Order(
            checkout_id=data['checkout_id'],
            buyer_id=data['buyer_id'],
            shoe_id=data['shoe_id'],
            status=data['status'],
            payment_method=data.get('payment_method'),
            created_at=data['created_at'],
            updated_at=data['updated_at']
        )
        if data.get('shoe_name') is not None:
            order.listing = OrderListing(
                shoe_id=data['shoe_id'],
                shoe_name=data['shoe_name'],
                brand=data['brand'],
                price=data['price'],
                image_url=data.get('image_url'),
                status=data['listing_status'],
                published_by=data['published_by']
            )
        if data.get('buyer_first_name') is not None:
            order.buyer = Buyer(
                user_id=data['buyer_id'],
                first_name=data['buyer_first_name'],
                last_name=data['buyer_last_name'],
                email=data.get('buyer_email'),
                contact_number=data.get('buyer_contact_number'),
                address=data.get('buyer_address')
            )
        return order
    except (ValidationError, KeyError) as e:
        raise OrderError(f"Malformed order record: {e}")

class OrderManager:
    """Manages order reads and seller-driven state transitions."""

    def __init__(self, pool=None) -> None:
        """Initialize order manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def list_pending_by_seller(self, seller_id: UUID) -> List[Order]:
        """Pending orders on the seller's listings, newest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    ORDER_SELECT + '''
                    WHERE s.published_by = $1 AND c.status = $2
                    ORDER BY c.created_at DESC
                    ''',
                    seller_id,
                    OrderStatus.PENDING.value
                )
        except Exception as e:
            logger.error(f"Error listing pending orders for seller {seller_id}: {e}")
            raise remote_error(e, OrderError, "Failed to list orders")

        return [to_order(row) for row in rows]

    async def get_order(self, checkout_id: UUID, seller_id: Optional[UUID] = None) -> Order:
        """Get an order with its listing and buyer.

        Args:
            checkout_id: The order id
            seller_id: If given, the order's listing must belong to this seller

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderPermissionError: If the listing belongs to another seller
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    ORDER_SELECT + ' WHERE c.checkout_id = $1',
                    checkout_id
                )
        except Exception as e:
            logger.error(f"Error getting order {checkout_id}: {e}")
            raise remote_error(e, OrderError, "Failed to get order")

        if not row:
            raise OrderNotFoundError(f"Order {checkout_id} not found")
        if seller_id is not None and row['published_by'] != seller_id:
            raise OrderPermissionError(f"Order {checkout_id} is not on your listing")
        return to_order(row)

    async def _lock_pending(self, conn, checkout_id: UUID, seller_id: UUID):
        """Lock the order row and check ownership and status inside a transaction."""
        row = await conn.fetchrow(
            ORDER_SELECT + ' WHERE c.checkout_id = $1 FOR UPDATE OF c',
            checkout_id
        )
        if not row:
            raise OrderNotFoundError(f"Order {checkout_id} not found")
        if row['published_by'] != seller_id:
            raise OrderPermissionError(f"Order {checkout_id} is not on your listing")
        if row['status'] != OrderStatus.PENDING.value:
            raise OrderTransitionError(checkout_id, row['status'])
        return row

    async def _transition(self, conn, checkout_id: UUID, status: OrderStatus):
        updated = await conn.fetchrow(
            '''
            UPDATE checkouts
            SET status = $2, updated_at = now()
            WHERE checkout_id = $1 AND status = $3
            RETURNING *
            ''',
            checkout_id,
            status.value,
            OrderStatus.PENDING.value
        )
        if not updated:
            raise OrderTransitionError(checkout_id)
        return updated

    async def complete_order(self, checkout_id: UUID, seller_id: UUID) -> CompletedOrder:
        """Complete a pending order.

        In one transaction: the order becomes SENDING, its listing SOLD, the
        buyer gets a notification and a sale is recorded. Any failure rolls
        back every step.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderPermissionError: If seller_id does not own the listing
            OrderTransitionError: If the order is not PENDING or the listing is already sold
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await self._lock_pending(conn, checkout_id, seller_id)
                    updated = await self._transition(conn, checkout_id, OrderStatus.SENDING)

                    sold = await conn.fetchval(
                        '''
                        UPDATE shoes
                        SET status = $2, updated_at = now()
                        WHERE shoe_id = $1 AND status <> $2
                        RETURNING shoe_id
                        ''',
                        row['shoe_id'],
                        ListingStatus.SOLD.value
                    )
                    if not sold:
                        raise ListingAlreadySoldError(checkout_id)

                    notification = await create_notification(
                        conn,
                        COMPLETED_MESSAGE.format(shoe_name=row['shoe_name']),
                        seller_id,
                        row['buyer_id'],
                        row['shoe_id']
                    )

                    sale_row = await conn.fetchrow(
                        '''
                        INSERT INTO sales (shoe_id, seller_id, buyer_id, price)
                        VALUES ($1, $2, $3, $4)
                        RETURNING *
                        ''',
                        row['shoe_id'],
                        seller_id,
                        row['buyer_id'],
                        row['price']
                    )

        except OrderError:
            raise
        except UniqueViolationError:
            # idx_sales_shoe: the listing already has a sale
            raise ListingAlreadySoldError(checkout_id)
        except Exception as e:
            logger.error(f"Error completing order {checkout_id}: {e}")
            raise remote_error(e, OrderError, "Failed to complete order")

        data = dict(row)
        data.update(dict(updated))
        data['listing_status'] = ListingStatus.SOLD.value
        order = to_order(data)
        logger.info(f"Order {checkout_id} completed by seller {seller_id}")
        return CompletedOrder(
            order=order,
            sale=Sale(**dict(sale_row)),
            notification=notification
        )

    async def cancel_order(self, checkout_id: UUID, seller_id: UUID) -> CancelledOrder:
        """Cancel a pending order and notify the buyer. The listing is left as is.

        Raises:
            OrderNotFoundError: If the order does not exist
            OrderPermissionError: If seller_id does not own the listing
            OrderTransitionError: If the order is not PENDING
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    row = await self._lock_pending(conn, checkout_id, seller_id)
                    updated = await self._transition(conn, checkout_id, OrderStatus.CANCELLED)
                    notification = await create_notification(
                        conn,
                        CANCELLED_MESSAGE.format(shoe_name=row['shoe_name']),
                        seller_id,
                        row['buyer_id'],
                        row['shoe_id']
                    )

        except OrderError:
            raise
        except Exception as e:
            logger.error(f"Error cancelling order {checkout_id}: {e}")
            raise remote_error(e, OrderError, "Failed to cancel order")

        data = dict(row)
        data.update(dict(updated))
        logger.info(f"Order {checkout_id} cancelled by seller {seller_id}")
        return CancelledOrder(order=to_order(data), notification=notification)

__all__ = [
    'OrderManager',
    'Order',
    'OrderStatus',
    'OrderListing',
    'Buyer',
    'Sale',
    'CompletedOrder',
    'CancelledOrder',
    'OrderError',
    'OrderNotFoundError',
    'OrderPermissionError',
    'OrderTransitionError',
    'ListingAlreadySoldError',
    'to_order',
    'COMPLETED_MESSAGE',
    'CANCELLED_MESSAGE'
]
