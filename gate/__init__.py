"""Session and role gate.

A SessionGate decides whether the holder of a session may reach seller-only
screens and endpoints. It starts in UNKNOWN while the role check runs and
settles in AUTHENTICATED_SELLER or UNAUTHENTICATED:

- check() on mount, and every SIGNED_IN event, fetch the account's role.
  Anything other than a confirmed SELLER role, including an error while
  fetching it, forces a sign-out and lands in UNAUTHENTICATED.
- A SIGNED_OUT event always lands in UNAUTHENTICATED.

The gate is an explicit object handed to whoever needs it; there is no
process-wide session state.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from auth import AuthManager, AccountRole, AuthEvent, Session
from .states import GateState
from .routes import RouteAccess, RouteDecision, RouteOutcome, ROUTES, resolve_route

logger = logging.getLogger(__name__)

class SessionGate:
    """Role-checking state machine for one session."""

    def __init__(self, auth_manager: AuthManager, token: Optional[str] = None):
        self.auth = auth_manager
        self.token = token
        self.user_id: Optional[UUID] = None
        self.state = GateState.UNKNOWN
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_loading(self) -> bool:
        return self.state == GateState.UNKNOWN

    @property
    def is_authenticated(self) -> bool:
        return self.state == GateState.AUTHENTICATED_SELLER

    def attach(self) -> Callable[[], None]:
        """Subscribe to auth state changes; returns the unsubscribe callable."""
        if not self._unsubscribe:
            self._unsubscribe = self.auth.on_auth_state_change(self.handle_event)
        return self.detach

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    async def check(self) -> GateState:
        """Run the role check for the current token."""
        if not self.token:
            self.user_id = None
            self.state = GateState.UNAUTHENTICATED
            return self.state

        self.state = GateState.UNKNOWN
        try:
            account = await self.auth.get_current_account(self.token)
            if account is None:
                # No live session behind the token
                self.user_id = None
                self.state = GateState.UNAUTHENTICATED
                return self.state
            self.user_id = account.user_id
            role = await self.auth.get_role(account.user_id)
        except Exception as e:
            logger.error(f"Role check failed, signing out: {e}")
            return await self._force_sign_out()

        if role != AccountRole.SELLER:
            logger.info(f"Non-seller account {self.user_id} detected, signing out")
            return await self._force_sign_out()

        self.state = GateState.AUTHENTICATED_SELLER
        return self.state

    async def handle_event(self, event: AuthEvent, session: Optional[Session]) -> GateState:
        """React to an auth state change.

        Once this gate holds a token it never adopts another one. A sign-in
        by the same account re-runs the check on the held token, which the
        single-session policy has revoked by then. Sign-ins by other
        accounts are ignored.
        """
        if event == AuthEvent.SIGNED_IN and session:
            if self.token and session.token != self.token:
                if self.user_id != session.user_id:
                    return self.state
                return await self.check()
            self.token = session.token
            return await self.check()

        if event == AuthEvent.SIGNED_OUT:
            if session and self.token and session.token != self.token:
                return self.state
            self.token = None
            self.user_id = None
            self.state = GateState.UNAUTHENTICATED

        return self.state

    async def _force_sign_out(self) -> GateState:
        token, self.token = self.token, None
        self.state = GateState.UNAUTHENTICATED
        try:
            await self.auth.sign_out(token)
        except Exception as e:
            # The gate stays closed even when the revoke itself fails
            logger.error(f"Forced sign-out failed: {e}")
        self.user_id = None
        return self.state

    def resolve(self, path: str) -> RouteDecision:
        """Decide what a client route shows in the current state."""
        return resolve_route(path, self.state)

__all__ = [
    'GateState',
    'SessionGate',
    'RouteAccess',
    'RouteDecision',
    'RouteOutcome',
    'ROUTES',
    'resolve_route'
]
