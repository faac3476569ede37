"""Client route table and per-route access decisions."""

import re
from enum import Enum
from typing import List, Optional, Pattern, Tuple

from pydantic import BaseModel

from .states import GateState

ENTRY_PATH = "/"
HOME_PATH = "/home"


class RouteAccess(str, Enum):
    PUBLIC_ONLY = "PUBLIC_ONLY"
    AUTHENTICATED = "AUTHENTICATED"


class RouteOutcome(str, Enum):
    RENDER = "RENDER"
    PENDING = "PENDING"
    REDIRECT = "REDIRECT"
    NOT_FOUND = "NOT_FOUND"


class RouteDecision(BaseModel):
    path: str
    outcome: RouteOutcome
    redirect_to: Optional[str] = None


ROUTES = {
    "/": RouteAccess.PUBLIC_ONLY,
    "/signup": RouteAccess.PUBLIC_ONLY,
    "/home": RouteAccess.AUTHENTICATED,
    "/marketplace": RouteAccess.AUTHENTICATED,
    "/messages": RouteAccess.AUTHENTICATED,
    "/publish-sneaker": RouteAccess.AUTHENTICATED,
    "/shoe-list": RouteAccess.AUTHENTICATED,
    "/shoe/:id": RouteAccess.AUTHENTICATED,
    "/order/:id": RouteAccess.AUTHENTICATED,
    "/socialmedia": RouteAccess.AUTHENTICATED,
    "/profile": RouteAccess.AUTHENTICATED,
}


def _compile(pattern: str) -> Pattern:
    # ":param" matches exactly one path segment
    return re.compile("^" + re.sub(r":[a-zA-Z_]+", r"[^/]+", pattern) + "/?$")


_COMPILED: List[Tuple[Pattern, RouteAccess]] = [
    (_compile(pattern), access) for pattern, access in ROUTES.items()
]


def match_route(path: str) -> Optional[RouteAccess]:
    path = path.split("?", 1)[0] or "/"
    for regex, access in _COMPILED:
        if regex.match(path):
            return access
    return None


def resolve_route(path: str, state: GateState) -> RouteDecision:
    """Decide what a route shows for a gate state.

    Protected routes show a pending placeholder while the gate is checking,
    redirect to the entry screen when unauthenticated and render only for an
    authenticated seller. Public-only routes send an authenticated seller home.
    """
    access = match_route(path)
    if access is None:
        return RouteDecision(path=path, outcome=RouteOutcome.NOT_FOUND)

    if state == GateState.UNKNOWN:
        return RouteDecision(path=path, outcome=RouteOutcome.PENDING)

    if access == RouteAccess.AUTHENTICATED and state != GateState.AUTHENTICATED_SELLER:
        return RouteDecision(path=path, outcome=RouteOutcome.REDIRECT, redirect_to=ENTRY_PATH)

    if access == RouteAccess.PUBLIC_ONLY and state == GateState.AUTHENTICATED_SELLER:
        return RouteDecision(path=path, outcome=RouteOutcome.REDIRECT, redirect_to=HOME_PATH)

    return RouteDecision(path=path, outcome=RouteOutcome.RENDER)
