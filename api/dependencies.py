"""Shared FastAPI dependencies: managers, the seller gate and upload helpers."""

import logging
from contextlib import asynccontextmanager
from typing import Hashable, Optional, Set, Tuple
from uuid import UUID

from fastapi import Depends, HTTPException, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from analytics import AnalyticsManager
from auth import AuthManager, auth_scheme, manager as auth_manager
from gate import GateState, SessionGate
from listings import ListingManager
from messaging import MessageManager
from messaging.realtime import MessageFeed, feed
from notifications import NotificationManager
from orders import OrderManager
from profiles import ProfileManager
from social import SocialManager
from storage import ImageUpload

logger = logging.getLogger(__name__)

optional_auth_scheme = HTTPBearer(auto_error=False)

_listing_manager = ListingManager()
_order_manager = OrderManager()
_message_manager = MessageManager()
_social_manager = SocialManager()
_analytics_manager = AnalyticsManager()
_profile_manager = ProfileManager()
_notification_manager = NotificationManager()

def get_auth_manager() -> AuthManager:
    return auth_manager

def get_listing_manager() -> ListingManager:
    return _listing_manager

def get_order_manager() -> OrderManager:
    return _order_manager

def get_message_manager() -> MessageManager:
    return _message_manager

def get_message_feed() -> MessageFeed:
    return feed

def get_social_manager() -> SocialManager:
    return _social_manager

def get_analytics_manager() -> AnalyticsManager:
    return _analytics_manager

def get_profile_manager() -> ProfileManager:
    return _profile_manager

def get_notification_manager() -> NotificationManager:
    return _notification_manager

async def get_current_seller(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    auth: AuthManager = Depends(get_auth_manager)
) -> UUID:
    """FastAPI dependency admitting only an authenticated seller.

    Runs a SessionGate for the bearer token. Anything short of
    AUTHENTICATED_SELLER is rejected with 401.
    """
    gate = SessionGate(auth, credentials.credentials)
    if await gate.check() != GateState.AUTHENTICATED_SELLER:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Seller session required"
        )
    return gate.user_id

class InflightGuard:
    """Rejects a mutation while an identical one is still running."""

    def __init__(self):
        self._keys: Set[Tuple[Hashable, ...]] = set()

    def __contains__(self, key: Tuple[Hashable, ...]) -> bool:
        return key in self._keys

    @asynccontextmanager
    async def hold(self, *key: Hashable):
        if key in self._keys:
            logger.warning(f"Duplicate submission rejected: {key}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="This request is already being processed"
            )
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)

inflight = InflightGuard()

async def read_image(file: Optional[UploadFile]) -> Optional[ImageUpload]:
    """Read an optional multipart file into an ImageUpload."""
    if file is None or not file.filename:
        return None
    data = await file.read()
    return ImageUpload(filename=file.filename, data=data, content_type=file.content_type)
