"""Seller dashboard statistics endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from analytics import (
    AnalyticsError, AnalyticsManager, CustomerAnalytics, ProductAnalytics,
    SalesStats, SellerStats
)
from ..dependencies import get_analytics_manager, get_current_seller

router = APIRouter(
    prefix="/analytics",
    tags=["Analytics"]
)

@router.get("/stats", response_model=SellerStats)
async def seller_stats(
    seller_id: UUID = Depends(get_current_seller),
    analytics: AnalyticsManager = Depends(get_analytics_manager)
):
    """Listed and sold shoe counts."""
    try:
        return await analytics.seller_stats(seller_id)
    except AnalyticsError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/sales", response_model=SalesStats)
async def sales_stats(
    seller_id: UUID = Depends(get_current_seller),
    analytics: AnalyticsManager = Depends(get_analytics_manager)
):
    try:
        return await analytics.seller_sales_stats(seller_id)
    except AnalyticsError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/products", response_model=ProductAnalytics)
async def product_analytics(
    limit: int = Query(5, ge=1, le=50),
    seller_id: UUID = Depends(get_current_seller),
    analytics: AnalyticsManager = Depends(get_analytics_manager)
):
    try:
        return await analytics.product_analytics(seller_id, limit)
    except AnalyticsError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/customers", response_model=CustomerAnalytics)
async def customer_analytics(
    limit: int = Query(5, ge=1, le=50),
    seller_id: UUID = Depends(get_current_seller),
    analytics: AnalyticsManager = Depends(get_analytics_manager)
):
    try:
        return await analytics.customer_analytics(seller_id, limit)
    except AnalyticsError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
