"""Authentication module using email/password accounts and JWT sessions.

This module provides:
1. Seller sign-up with input validation before any database call
2. Password sign-in issuing a JWT session, single active session per account
3. Sign-out, session verification and current-account lookup
4. Auth state change events (SIGNED_IN / SIGNED_OUT) for session gates
5. The FastAPI bearer scheme used by protected routes
"""

import logging
import re
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

import bcrypt
from asyncpg.exceptions import UniqueViolationError
from fastapi import Request
from fastapi.security import HTTPBearer
from jose import jwt
from pydantic import ValidationError

from config import settings_conf
from database import get_pool, remote_error
from .models import Account, AccountRole, AuthEvent, Session, SignUpProfile

# Configure logging
logger = logging.getLogger(__name__)

# Constants
SESSION_EXPIRY_DAYS = settings_conf['session_expiry_days']
JWT_SECRET = settings_conf.get('jwt_secret') or secrets.token_urlsafe(32)
JWT_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PHONE_PATTERN = re.compile(r'^\+?[0-9]{10,13}$')

AuthStateHandler = Callable[[AuthEvent, Optional[Session]], Awaitable[None]]

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class SignUpValidationError(AuthError):
    """Raised when sign-up input is missing or malformed."""
    pass

class AlreadyRegisteredError(AuthError):
    """Raised when an email already belongs to an account."""
    pass

class InvalidCredentialsError(AuthError):
    """Raised when email or password is wrong."""
    pass

class SessionExpiredError(AuthError):
    """Raised when a session has expired."""
    pass

class AccountNotFoundError(AuthError):
    """Raised when an account has no profile record."""
    pass

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()

def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False

def validate_sign_up(profile: SignUpProfile) -> None:
    """Validate sign-up input.

    Raises:
        SignUpValidationError: Describing the first problem found
    """
    for field in ('first_name', 'last_name', 'email', 'contact_number', 'address'):
        if not getattr(profile, field).strip():
            raise SignUpValidationError(f"{field.replace('_', ' ').capitalize()} is required")
    if not EMAIL_PATTERN.match(profile.email.strip()):
        raise SignUpValidationError("Invalid email address")
    if len(profile.password) < MIN_PASSWORD_LENGTH:
        raise SignUpValidationError(
            f"Password should be at least {MIN_PASSWORD_LENGTH} characters"
        )
    if profile.password != profile.confirm_password:
        raise SignUpValidationError("Passwords do not match")
    contact = re.sub(r'[\s-]', '', profile.contact_number)
    if not PHONE_PATTERN.match(contact):
        raise SignUpValidationError("Invalid contact number")

def to_account(row) -> Account:
    """Validate a users row into an Account record."""
    try:
        return Account(**dict(row))
    except ValidationError as e:
        raise AuthError(f"Malformed account record: {e}")

class AuthManager:
    """Manages accounts, sessions and auth state listeners."""

    def __init__(self, pool=None):
        """Initialize auth manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool
        self._listeners: List[AuthStateHandler] = []

    async def ensure_pool(self):
        """Ensure database pool is available."""
        if not self.pool:
            self.pool = await get_pool()

    def on_auth_state_change(self, handler: AuthStateHandler) -> Callable[[], None]:
        """Register a handler for SIGNED_IN / SIGNED_OUT events.

        Returns:
            Callable that unregisters the handler
        """
        self._listeners.append(handler)

        def unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return unsubscribe

    async def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        for handler in list(self._listeners):
            try:
                await handler(event, session)
            except Exception as e:
                logger.error(f"Auth state handler failed on {event.value}: {e}")

    async def sign_up(self, profile: SignUpProfile) -> Account:
        """Create an account and its profile record.

        Args:
            profile: Sign-up form input

        Returns:
            The created account

        Raises:
            SignUpValidationError: If input is invalid (no database call is made)
            AlreadyRegisteredError: If the email is already registered
        """
        validate_sign_up(profile)
        await self.ensure_pool()

        email = profile.email.strip()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    exists = await conn.fetchval(
                        'SELECT EXISTS(SELECT 1 FROM accounts WHERE lower(email) = lower($1))',
                        email
                    )
                    if exists:
                        raise AlreadyRegisteredError("User already registered")

                    user_id = await conn.fetchval(
                        '''
                        INSERT INTO accounts (email, password_hash)
                        VALUES ($1, $2)
                        RETURNING user_id
                        ''',
                        email,
                        hash_password(profile.password)
                    )

                    row = await conn.fetchrow(
                        '''
                        INSERT INTO users (
                            user_id, first_name, last_name, email,
                            contact_number, address, type
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                        RETURNING *
                        ''',
                        user_id,
                        profile.first_name.strip(),
                        profile.last_name.strip(),
                        email,
                        profile.contact_number.strip(),
                        profile.address.strip(),
                        profile.role.value
                    )

            logger.info(f"Registered {profile.role.value} account {user_id}")
            return to_account(row)

        except AuthError:
            raise
        except UniqueViolationError:
            raise AlreadyRegisteredError("User already registered")
        except Exception as e:
            logger.error(f"Error signing up: {e}")
            raise remote_error(e, AuthError, "Failed to sign up")

    async def sign_in(self, email: str, password: str, request: Optional[Request] = None) -> Session:
        """Verify credentials and create a session.

        Any previous session of the account is revoked.

        Raises:
            InvalidCredentialsError: If email or password is wrong
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT user_id, password_hash FROM accounts WHERE lower(email) = lower($1)',
                    email.strip()
                )
                if not row or not check_password(password, row['password_hash']):
                    raise InvalidCredentialsError("Invalid login credentials")

                user_id = row['user_id']
                expires_at = datetime.utcnow() + timedelta(days=SESSION_EXPIRY_DAYS)
                token = jwt.encode(
                    {
                        'sub': str(user_id),
                        'exp': expires_at,
                        'jti': uuid.uuid4().hex
                    },
                    JWT_SECRET,
                    algorithm=JWT_ALGORITHM
                )

                async with conn.transaction():
                    await conn.execute(
                        '''
                        UPDATE auth_sessions
                        SET revoked = true, revoked_at = now()
                        WHERE user_id = $1 AND NOT revoked
                        ''',
                        user_id
                    )
                    await conn.execute(
                        '''
                        INSERT INTO auth_sessions (
                            user_id, token, expires_at,
                            user_agent, ip_address
                        ) VALUES ($1, $2, $3, $4, $5)
                        ''',
                        user_id,
                        token,
                        expires_at,
                        request.headers.get('user-agent') if request else None,
                        request.client.host if request and request.client else None
                    )

        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error signing in: {e}")
            raise remote_error(e, AuthError, "Failed to sign in")

        session = Session(token=token, user_id=user_id, expires_at=expires_at)
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self, token: str) -> bool:
        """Revoke the session behind a token.

        Signing out an already revoked session succeeds without emitting an event.
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    UPDATE auth_sessions
                    SET revoked = true, revoked_at = now()
                    WHERE token = $1 AND NOT revoked
                    RETURNING user_id, expires_at
                    ''',
                    token
                )
        except Exception as e:
            logger.error(f"Error signing out: {e}")
            raise remote_error(e, AuthError, "Failed to sign out")

        if row:
            await self._emit(
                AuthEvent.SIGNED_OUT,
                Session(token=token, user_id=row['user_id'], expires_at=row['expires_at'])
            )
        return True

    async def verify_session(self, token: str, request: Optional[Request] = None) -> UUID:
        """Verify a session token.

        Args:
            token: The session token to verify
            request: Optional request object for updating session metadata

        Returns:
            The authenticated account id

        Raises:
            SessionExpiredError: If session has expired
            AuthError: For other verification errors
        """
        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
            user_id = UUID(payload['sub'])
        except jwt.ExpiredSignatureError:
            raise SessionExpiredError("Session has expired")
        except (jwt.JWTError, KeyError, ValueError) as e:
            raise AuthError(f"Invalid token: {str(e)}")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                session = await conn.fetchrow(
                    '''
                    SELECT expires_at
                    FROM auth_sessions
                    WHERE user_id = $1 AND token = $2
                    AND NOT revoked
                    ''',
                    user_id,
                    token
                )

                if not session:
                    raise AuthError("Session not found or revoked")

                if session['expires_at'] < datetime.utcnow():
                    raise SessionExpiredError("Session has expired")

                if request:
                    await conn.execute(
                        '''
                        UPDATE auth_sessions
                        SET
                            last_used_at = now(),
                            user_agent = $2,
                            ip_address = $3
                        WHERE token = $1
                        ''',
                        token,
                        request.headers.get('user-agent'),
                        request.client.host if request.client else None
                    )

                return user_id

        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error verifying session: {e}")
            raise remote_error(e, AuthError, "Failed to verify session")

    async def get_account(self, user_id: UUID) -> Optional[Account]:
        """Get an account's profile record, or None if it has none."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT * FROM users WHERE user_id = $1',
                    user_id
                )
        except Exception as e:
            logger.error(f"Error getting account {user_id}: {e}")
            raise remote_error(e, AuthError, "Failed to get account")

        return to_account(row) if row else None

    async def get_current_account(self, token: Optional[str]) -> Optional[Account]:
        """Resolve the account behind a token.

        Returns:
            The account, or None when there is no valid session
        """
        if not token:
            return None
        try:
            user_id = await self.verify_session(token)
        except AuthError:
            return None
        return await self.get_account(user_id)

    async def get_role(self, user_id: UUID) -> AccountRole:
        """Fetch an account's role tag.

        Raises:
            AccountNotFoundError: If the account has no profile record
            AuthError: If the stored role is not a known role
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                role = await conn.fetchval(
                    'SELECT type FROM users WHERE user_id = $1',
                    user_id
                )
        except Exception as e:
            logger.error(f"Error getting role for {user_id}: {e}")
            raise remote_error(e, AuthError, "Failed to get role")

        if role is None:
            raise AccountNotFoundError(f"Account {user_id} not found")
        try:
            return AccountRole(role)
        except ValueError:
            raise AuthError(f"Unknown account role: {role}")

# Create global instance
manager = AuthManager()

# FastAPI security scheme
auth_scheme = HTTPBearer(
    auto_error=True,  # Reject requests without a bearer token
    description="JWT Bearer token required"
)

# Export public interface
__all__ = [
    'manager',
    'AuthManager',
    'auth_scheme',
    'hash_password',
    'check_password',
    'validate_sign_up',
    'Account',
    'AccountRole',
    'AuthEvent',
    'Session',
    'SignUpProfile',
    'AuthError',
    'SignUpValidationError',
    'AlreadyRegisteredError',
    'InvalidCredentialsError',
    'SessionExpiredError',
    'AccountNotFoundError'
]
