"""Shared fixtures: in-memory stand-ins for an asyncpg pool and auth, and row builders."""

import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from auth import Account, AuthEvent, AuthManager, InvalidCredentialsError, Session
from storage import ImageStore

class _Acquire:
    """Mimics asyncpg's PoolAcquireContext: awaitable and an async context manager."""

    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def __await__(self):
        async def _get():
            return self.conn
        return _get().__await__()

class _Transaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.transactions += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type:
            self.conn.rolled_back = True
        else:
            self.conn.committed = True
        return False

class FakeConnection:
    """Connection whose query methods are AsyncMocks set per test."""

    def __init__(self):
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="OK")
        self.add_listener = AsyncMock()
        self.remove_listener = AsyncMock()
        self.transactions = 0
        self.committed = False
        self.rolled_back = False

    def transaction(self):
        return _Transaction(self)

class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.release = AsyncMock()

    def acquire(self):
        return _Acquire(self.conn)

class StubAuth(AuthManager):
    """AuthManager with in-memory accounts and sessions."""

    def __init__(self):
        super().__init__(pool=object())
        self.accounts = {}
        self.sessions = {}
        self.signed_out = []
        self.role_error = None

    def add(self, token, role):
        user_id = uuid.uuid4()
        self.accounts[user_id] = Account(
            user_id=user_id, email="a@b.co", first_name="A", last_name="B", type=role
        )
        self.sessions[token] = user_id
        return user_id

    async def sign_in(self, email, password, request=None):
        # Tokens double as login emails
        token = email
        if token not in self.sessions:
            raise InvalidCredentialsError("Invalid login credentials")
        session = Session(
            token=token, user_id=self.sessions[token], expires_at=datetime.utcnow()
        )
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def get_account(self, user_id):
        return self.accounts.get(user_id)

    async def get_current_account(self, token):
        user_id = self.sessions.get(token)
        return self.accounts.get(user_id) if user_id else None

    async def get_role(self, user_id):
        if self.role_error:
            raise self.role_error
        return self.accounts[user_id].type

    async def sign_out(self, token):
        self.signed_out.append(token)
        user_id = self.sessions.pop(token, None)
        if user_id:
            await self._emit(
                AuthEvent.SIGNED_OUT,
                Session(token=token, user_id=user_id, expires_at=datetime.utcnow())
            )
        return True

@pytest.fixture
def conn():
    return FakeConnection()

@pytest.fixture
def pool(conn):
    return FakePool(conn)

@pytest.fixture
def image_store(tmp_path):
    return ImageStore(
        root=str(tmp_path),
        bucket="images",
        public_url="http://cdn.test/storage",
        max_bytes=1024
    )

NOW = datetime(2024, 5, 1, 12, 0, 0)

def user_row(user_id=None, type="SELLER", **overrides):
    row = {
        "user_id": user_id or uuid.uuid4(),
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "contact_number": "09171234567",
        "address": "1 Main St",
        "type": type,
        "photo_url": None,
        "location": None,
        "phone": None,
        "created_at": NOW,
        "updated_at": NOW
    }
    row.update(overrides)
    return row

def shoe_row(shoe_id=None, published_by=None, **overrides):
    row = {
        "shoe_id": shoe_id or uuid.uuid4(),
        "shoe_name": "Air Max 90",
        "brand": "Nike",
        "category": "Running",
        "description": "Classic",
        "price": Decimal("120.00"),
        "color": ["white"],
        "size": ["9", "10"],
        "material": ["leather"],
        "image_url": None,
        "status": "AVAILABLE",
        "published_by": published_by or uuid.uuid4(),
        "created_at": NOW,
        "updated_at": NOW
    }
    row.update(overrides)
    return row

def order_row(checkout_id=None, seller_id=None, buyer_id=None, shoe_id=None, **overrides):
    row = {
        "checkout_id": checkout_id or uuid.uuid4(),
        "buyer_id": buyer_id or uuid.uuid4(),
        "shoe_id": shoe_id or uuid.uuid4(),
        "status": "PENDING",
        "payment_method": "COD",
        "created_at": NOW,
        "updated_at": NOW,
        "shoe_name": "Air Max 90",
        "brand": "Nike",
        "price": Decimal("120.00"),
        "image_url": None,
        "listing_status": "AVAILABLE",
        "published_by": seller_id or uuid.uuid4(),
        "buyer_first_name": "Grace",
        "buyer_last_name": "Hopper",
        "buyer_email": "grace@example.com",
        "buyer_contact_number": "09170000000",
        "buyer_address": "2 Side St"
    }
    row.update(overrides)
    return row

def notification_row(recipient_id, message, **overrides):
    row = {
        "id": uuid.uuid4(),
        "message": message,
        "sender_id": None,
        "recipient_id": recipient_id,
        "shoe_id": None,
        "read": False,
        "created_at": NOW
    }
    row.update(overrides)
    return row

def message_row(seller_id, customer_id, text="Hi", sender="CUSTOMER", **overrides):
    row = {
        "id": uuid.uuid4(),
        "seller_id": seller_id,
        "customer_id": customer_id,
        "message": text,
        "sender": sender,
        "created_at": NOW
    }
    row.update(overrides)
    return row

def post_row(user_id, content="Fresh drop", **overrides):
    row = {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "content": content,
        "image_url": None,
        "created_at": NOW
    }
    row.update(overrides)
    return row
