"""Notification endpoints."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from notifications import (
    Notification, NotificationError, NotificationManager, NotificationNotFoundError
)
from ..dependencies import get_current_seller, get_notification_manager

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)

@router.get("", response_model=List[Notification])
async def list_notifications(
    unread_only: bool = False,
    seller_id: UUID = Depends(get_current_seller),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    """Notifications addressed to the seller, newest first."""
    try:
        return await notifications.list_for_user(seller_id, unread_only)
    except NotificationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
    notification_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    notifications: NotificationManager = Depends(get_notification_manager)
):
    try:
        return await notifications.mark_read(notification_id, seller_id)
    except NotificationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except NotificationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
