"""Tests for the REST API surface, with managers replaced by mocks."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from api import app
from api.dependencies import (
    InflightGuard, get_analytics_manager, get_auth_manager, get_current_seller,
    get_listing_manager, get_order_manager, get_social_manager, inflight
)
from analytics import SellerStats
from auth import AccountRole
from database import DatabaseTimeoutError
from listings import ListingPermissionError, ListingStatus, to_listing
from orders import OrderTransitionError
from social import LikeState
from storage import ImageUpload
from conftest import StubAuth, shoe_row

SELLER_ID = uuid.uuid4()

@pytest.fixture
def client():
    app.dependency_overrides[get_current_seller] = lambda: SELLER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def orders(client):
    manager = MagicMock()
    manager.complete_order = AsyncMock()
    manager.cancel_order = AsyncMock()
    app.dependency_overrides[get_order_manager] = lambda: manager
    return manager

@pytest.fixture
def listings(client):
    manager = MagicMock()
    manager.create_listing = AsyncMock()
    manager.update_listing = AsyncMock()
    manager.list_by_seller = AsyncMock(return_value=[])
    app.dependency_overrides[get_listing_manager] = lambda: manager
    return manager

@pytest.fixture
def stub_auth():
    auth = StubAuth()
    app.dependency_overrides[get_auth_manager] = lambda: auth
    yield auth
    app.dependency_overrides.clear()

def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"

def test_order_transitions_need_confirmation(client, orders):
    checkout_id = uuid.uuid4()

    response = client.post(f"/orders/{checkout_id}/complete", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "Confirm to complete this order"

    response = client.post(f"/orders/{checkout_id}/cancel", json={"confirm": False})
    assert response.status_code == 400

    orders.complete_order.assert_not_awaited()
    orders.cancel_order.assert_not_awaited()

def test_processed_order_is_a_conflict(client, orders):
    checkout_id = uuid.uuid4()
    orders.complete_order.side_effect = OrderTransitionError(checkout_id, "CANCELLED")

    response = client.post(f"/orders/{checkout_id}/complete", json={"confirm": True})

    assert response.status_code == 409
    orders.complete_order.assert_awaited_once_with(checkout_id, SELLER_ID)

def test_duplicate_submission_is_rejected(client, orders):
    checkout_id = uuid.uuid4()
    inflight._keys.add(("order", checkout_id))
    try:
        response = client.post(f"/orders/{checkout_id}/cancel", json={"confirm": True})
    finally:
        inflight._keys.discard(("order", checkout_id))

    assert response.status_code == 409
    orders.cancel_order.assert_not_awaited()

def test_database_timeout_is_a_gateway_timeout(client, orders):
    orders.cancel_order.side_effect = DatabaseTimeoutError("Failed to cancel order: timed out")

    response = client.post(f"/orders/{uuid.uuid4()}/cancel", json={"confirm": True})

    assert response.status_code == 504

@pytest.mark.asyncio
async def test_inflight_guard_releases_key():
    guard = InflightGuard()

    async with guard.hold("publish", 1):
        assert ("publish", 1) in guard
        with pytest.raises(HTTPException) as exc:
            async with guard.hold("publish", 1):
                pass
        assert exc.value.status_code == 409

    assert ("publish", 1) not in guard

def test_publish_listing_with_image(client, listings):
    listings.create_listing.return_value = to_listing(shoe_row(published_by=SELLER_ID))

    response = client.post(
        "/listings",
        data={
            "shoe_name": "Air Max 90",
            "brand": "Nike",
            "price": "120.00",
            "colors": ["white", "black"],
            "materials": ["leather"]
        },
        files={"image": ("shoe.png", b"png-bytes", "image/png")}
    )

    assert response.status_code == 201
    seller_id, fields, image = listings.create_listing.await_args.args
    assert seller_id == SELLER_ID
    assert fields["colors"] == ["white", "black"]
    assert isinstance(image, ImageUpload)
    assert image.data == b"png-bytes"

def test_update_someone_elses_listing_is_forbidden(client, listings):
    listings.update_listing.side_effect = ListingPermissionError("belongs to another seller")

    response = client.patch(f"/listings/{uuid.uuid4()}", data={"brand": "Adidas"})

    assert response.status_code == 403

def test_my_listings_status_filter(client, listings):
    response = client.get("/listings/mine", params={"status": "SOLD"})

    assert response.status_code == 200
    listings.list_by_seller.assert_awaited_once_with(SELLER_ID, ListingStatus.SOLD)

def test_like_returns_fresh_count(client):
    post_id = uuid.uuid4()
    social = MagicMock()
    social.like = AsyncMock(return_value=LikeState(post_id=post_id, liked=True, likes_count=4))
    app.dependency_overrides[get_social_manager] = lambda: social

    response = client.post(f"/social/posts/{post_id}/like")

    assert response.status_code == 200
    assert response.json() == {"post_id": str(post_id), "liked": True, "likes_count": 4}

def test_seller_stats(client):
    analytics = MagicMock()
    analytics.seller_stats = AsyncMock(return_value=SellerStats(listed_shoes=2))
    app.dependency_overrides[get_analytics_manager] = lambda: analytics

    response = client.get("/analytics/stats")

    assert response.json() == {"listed_shoes": 2, "sold_shoes": 0, "pending_orders": 0}

def test_customer_token_is_not_a_seller_session(stub_auth):
    stub_auth.add("customer-tok", AccountRole.CUSTOMER)

    response = TestClient(app).get(
        "/analytics/stats", headers={"Authorization": "Bearer customer-tok"}
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "Seller session required"

def test_login_rejects_customer_accounts(stub_auth):
    stub_auth.add("customer@example.com", AccountRole.CUSTOMER)

    response = TestClient(app).post(
        "/auth/login", json={"email": "customer@example.com", "password": "secret1"}
    )

    assert response.status_code == 403
    assert stub_auth.signed_out == ["customer@example.com"]

def test_login_admits_sellers(stub_auth):
    user_id = stub_auth.add("seller@example.com", AccountRole.SELLER)

    response = TestClient(app).post(
        "/auth/login", json={"email": "seller@example.com", "password": "secret1"}
    )

    assert response.status_code == 200
    assert response.json()["user_id"] == str(user_id)

def test_login_with_bad_credentials(stub_auth):
    response = TestClient(app).post(
        "/auth/login", json={"email": "nobody@example.com", "password": "secret1"}
    )

    assert response.status_code == 401

def test_session_state_without_token(stub_auth):
    response = TestClient(app).get("/auth/session")

    assert response.json() == {"state": "UNAUTHENTICATED", "user_id": None}

def test_route_decision_for_seller(stub_auth):
    stub_auth.add("seller-tok", AccountRole.SELLER)

    response = TestClient(app).get(
        "/auth/route", params={"path": "/"}, headers={"Authorization": "Bearer seller-tok"}
    )

    assert response.json()["outcome"] == "REDIRECT"
    assert response.json()["redirect_to"] == "/home"

def test_message_stream_rejects_non_sellers(stub_auth):
    stub_auth.add("customer-tok", AccountRole.CUSTOMER)

    with pytest.raises(WebSocketDisconnect) as exc:
        with TestClient(app).websocket_connect("/ws/messages?token=customer-tok"):
            pass

    assert exc.value.code == 1008

def test_health_reports_unavailable_database(client, monkeypatch):
    async def no_database():
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr("api.system.get_pool", no_database)

    response = client.get("/system/health")

    assert response.status_code == 200
    assert response.json()["database_status"] == "unavailable"
    assert response.json()["status"] == "unhealthy"
