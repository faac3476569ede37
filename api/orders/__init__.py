"""Orders API endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from orders import (
    CancelledOrder, CompletedOrder, Order, OrderError, OrderManager,
    OrderNotFoundError, OrderPermissionError, OrderTransitionError
)
from ..dependencies import get_current_seller, get_order_manager, inflight

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)

class TransitionRequest(BaseModel):
    """Explicit confirmation for an irreversible order transition."""
    confirm: bool = False

def _to_http(e: OrderError) -> HTTPException:
    if isinstance(e, OrderNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, OrderPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, OrderTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

def _require_confirmation(request: TransitionRequest, action: str) -> None:
    if not request.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Confirm to {action} this order"
        )

@router.get("/pending", response_model=List[Order])
async def pending_orders(
    seller_id: UUID = Depends(get_current_seller),
    orders: OrderManager = Depends(get_order_manager)
):
    """Pending orders on the seller's listings."""
    try:
        return await orders.list_pending_by_seller(seller_id)
    except OrderError as e:
        raise _to_http(e)

@router.get("/{checkout_id}", response_model=Order)
async def get_order(
    checkout_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    orders: OrderManager = Depends(get_order_manager)
):
    """Order details with listing and buyer."""
    try:
        return await orders.get_order(checkout_id, seller_id)
    except OrderError as e:
        raise _to_http(e)

@router.post("/{checkout_id}/complete", response_model=CompletedOrder)
async def complete_order(
    checkout_id: UUID,
    request: TransitionRequest,
    seller_id: UUID = Depends(get_current_seller),
    orders: OrderManager = Depends(get_order_manager)
):
    """Complete a pending order: listing sold, buyer notified, sale recorded."""
    _require_confirmation(request, "complete")
    async with inflight.hold("order", checkout_id):
        try:
            return await orders.complete_order(checkout_id, seller_id)
        except OrderError as e:
            raise _to_http(e)

@router.post("/{checkout_id}/cancel", response_model=CancelledOrder)
async def cancel_order(
    checkout_id: UUID,
    request: TransitionRequest,
    seller_id: UUID = Depends(get_current_seller),
    orders: OrderManager = Depends(get_order_manager)
):
    """Cancel a pending order and notify the buyer."""
    _require_confirmation(request, "cancel")
    async with inflight.hold("order", checkout_id):
        try:
            return await orders.cancel_order(checkout_id, seller_id)
        except OrderError as e:
            raise _to_http(e)
