"""Tests for seller dashboard statistics."""

import uuid
from decimal import Decimal

import pytest

from analytics import AnalyticsError, AnalyticsManager

SELLER_ID = uuid.uuid4()

@pytest.mark.asyncio
async def test_seller_stats(pool, conn):
    conn.fetchrow.return_value = {"listed_shoes": 4, "sold_shoes": 1, "pending_orders": None}

    stats = await AnalyticsManager(pool).seller_stats(SELLER_ID)

    assert stats.listed_shoes == 4
    assert stats.sold_shoes == 1
    assert stats.pending_orders == 0

@pytest.mark.asyncio
async def test_sales_stats_for_new_seller_are_zero(pool, conn):
    conn.fetchrow.return_value = {
        "total_sales": 0,
        "total_revenue": Decimal("0"),
        "average_price": Decimal("0"),
        "revenue_today": Decimal("0"),
        "revenue_this_month": Decimal("0")
    }

    stats = await AnalyticsManager(pool).seller_sales_stats(SELLER_ID)

    assert stats.total_sales == 0
    assert stats.average_price == Decimal("0.00")

@pytest.mark.asyncio
async def test_average_price_is_rounded_to_cents(pool, conn):
    conn.fetchrow.return_value = {
        "total_sales": 3,
        "total_revenue": Decimal("100.00"),
        "average_price": Decimal("33.333333333"),
        "revenue_today": Decimal("0"),
        "revenue_this_month": Decimal("100.00")
    }

    stats = await AnalyticsManager(pool).seller_sales_stats(SELLER_ID)

    assert stats.average_price == Decimal("33.33")
    assert stats.revenue_this_month == Decimal("100.00")

@pytest.mark.asyncio
async def test_product_analytics_ranks_brands(pool, conn):
    conn.fetch.return_value = [
        {"brand": brand, "units_sold": units, "revenue": Decimal(units * 100)}
        for brand, units in [("Nike", 6), ("Adidas", 4), ("Puma", 2), ("Vans", 1)]
    ]

    result = await AnalyticsManager(pool).product_analytics(SELLER_ID, limit=2)

    assert [b.brand for b in result.best_sellers] == ["Nike", "Adidas"]
    assert [b.brand for b in result.least_sellers] == ["Vans", "Puma"]

@pytest.mark.asyncio
async def test_product_analytics_without_sales(pool, conn):
    result = await AnalyticsManager(pool).product_analytics(SELLER_ID)

    assert result.best_sellers == []
    assert result.least_sellers == []

@pytest.mark.asyncio
async def test_customer_analytics(pool, conn):
    loyal, returning, once = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    conn.fetch.return_value = [
        {"buyer_id": loyal, "first_name": "Grace", "last_name": "Hopper",
         "purchases": 3, "total_spent": Decimal("450")},
        {"buyer_id": returning, "first_name": None, "last_name": None,
         "purchases": 2, "total_spent": Decimal("200")},
        {"buyer_id": once, "first_name": "Alan", "last_name": "Turing",
         "purchases": 1, "total_spent": Decimal("90")}
    ]

    result = await AnalyticsManager(pool).customer_analytics(SELLER_ID, limit=2)

    assert result.unique_customers == 3
    assert result.repeat_customers == 2
    assert [c.buyer_id for c in result.loyal_customers] == [loyal, returning]
    assert result.loyal_customers[1].first_name == ""

@pytest.mark.asyncio
async def test_query_failure_is_wrapped(pool, conn):
    conn.fetchrow.side_effect = RuntimeError("relation does not exist")

    with pytest.raises(AnalyticsError, match="Failed to get seller stats"):
        await AnalyticsManager(pool).seller_stats(SELLER_ID)
