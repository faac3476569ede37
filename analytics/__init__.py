"""Seller dashboard statistics.

Everything here is derived read-only from the shoes, checkouts and sales
tables. Sellers with no data get zeroes, never errors.
"""

import logging
from decimal import Decimal
from typing import List
from uuid import UUID

from pydantic import BaseModel

from database import get_pool, remote_error

logger = logging.getLogger(__name__)

TOP_N = 5

class AnalyticsError(Exception):
    """Base exception for analytics queries."""
    pass

class SellerStats(BaseModel):
    listed_shoes: int = 0
    sold_shoes: int = 0
    pending_orders: int = 0

class SalesStats(BaseModel):
    total_sales: int = 0
    total_revenue: Decimal = Decimal('0')
    average_price: Decimal = Decimal('0')
    revenue_today: Decimal = Decimal('0')
    revenue_this_month: Decimal = Decimal('0')

class BrandSales(BaseModel):
    brand: str
    units_sold: int
    revenue: Decimal

class ProductAnalytics(BaseModel):
    best_sellers: List[BrandSales] = []
    least_sellers: List[BrandSales] = []

class LoyalCustomer(BaseModel):
    buyer_id: UUID
    first_name: str = ''
    last_name: str = ''
    purchases: int
    total_spent: Decimal

class CustomerAnalytics(BaseModel):
    unique_customers: int = 0
    repeat_customers: int = 0
    loyal_customers: List[LoyalCustomer] = []

class AnalyticsManager:
    """Computes per-seller statistics."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def seller_stats(self, seller_id: UUID) -> SellerStats:
        """Listed and sold shoe counts plus open orders for a seller."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    SELECT
                        (SELECT count(*) FROM shoes
                         WHERE published_by = $1) AS listed_shoes,
                        (SELECT count(*) FROM shoes
                         WHERE published_by = $1 AND status = 'SOLD') AS sold_shoes,
                        (SELECT count(*) FROM checkouts c
                         JOIN shoes s ON s.shoe_id = c.shoe_id
                         WHERE s.published_by = $1 AND c.status = 'PENDING') AS pending_orders
                    ''',
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error getting seller stats for {seller_id}: {e}")
            raise remote_error(e, AnalyticsError, "Failed to get seller stats")

        if not row:
            return SellerStats()
        return SellerStats(**{k: v or 0 for k, v in dict(row).items()})

    async def seller_sales_stats(self, seller_id: UUID) -> SalesStats:
        """Sale count, revenue and average sale price."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    SELECT
                        count(*) AS total_sales,
                        COALESCE(sum(price), 0) AS total_revenue,
                        COALESCE(avg(price), 0) AS average_price,
                        COALESCE(sum(price) FILTER (
                            WHERE created_at >= date_trunc('day', now())
                        ), 0) AS revenue_today,
                        COALESCE(sum(price) FILTER (
                            WHERE created_at >= date_trunc('month', now())
                        ), 0) AS revenue_this_month
                    FROM sales
                    WHERE seller_id = $1
                    ''',
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error getting sales stats for {seller_id}: {e}")
            raise remote_error(e, AnalyticsError, "Failed to get sales stats")

        if not row:
            return SalesStats()
        stats = SalesStats(**dict(row))
        stats.average_price = stats.average_price.quantize(Decimal('0.01'))
        return stats

    async def product_analytics(self, seller_id: UUID, limit: int = TOP_N) -> ProductAnalytics:
        """Brands ranked by units sold, best and least."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        s.brand,
                        count(*) AS units_sold,
                        sum(sa.price) AS revenue
                    FROM sales sa
                    JOIN shoes s ON s.shoe_id = sa.shoe_id
                    WHERE sa.seller_id = $1
                    GROUP BY s.brand
                    ORDER BY units_sold DESC, revenue DESC, s.brand
                    ''',
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error getting product analytics for {seller_id}: {e}")
            raise remote_error(e, AnalyticsError, "Failed to get product analytics")

        brands = [BrandSales(**dict(row)) for row in rows]
        return ProductAnalytics(
            best_sellers=brands[:limit],
            least_sellers=list(reversed(brands[-limit:])) if brands else []
        )

    async def customer_analytics(self, seller_id: UUID, limit: int = TOP_N) -> CustomerAnalytics:
        """Unique and repeat buyers, and the most loyal ones.

        Loyal customers are ranked by number of purchases, then by spend.
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        sa.buyer_id,
                        u.first_name,
                        u.last_name,
                        count(*) AS purchases,
                        sum(sa.price) AS total_spent
                    FROM sales sa
                    LEFT JOIN users u ON u.user_id = sa.buyer_id
                    WHERE sa.seller_id = $1
                    GROUP BY sa.buyer_id, u.first_name, u.last_name
                    ORDER BY purchases DESC, total_spent DESC
                    ''',
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error getting customer analytics for {seller_id}: {e}")
            raise remote_error(e, AnalyticsError, "Failed to get customer analytics")

        buyers = [
            LoyalCustomer(**{k: v for k, v in dict(row).items() if v is not None})
            for row in rows
        ]
        return CustomerAnalytics(
            unique_customers=len(buyers),
            repeat_customers=sum(1 for b in buyers if b.purchases > 1),
            loyal_customers=buyers[:limit]
        )

__all__ = [
    'AnalyticsManager',
    'AnalyticsError',
    'SellerStats',
    'SalesStats',
    'BrandSales',
    'ProductAnalytics',
    'LoyalCustomer',
    'CustomerAnalytics'
]
