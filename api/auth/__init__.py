"""Authentication API endpoints."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel

from auth import (
    Account, AccountRole, AuthManager, AuthError, AlreadyRegisteredError,
    InvalidCredentialsError, SignUpProfile, SignUpValidationError, auth_scheme
)
from gate import GateState, RouteDecision, SessionGate
from ..dependencies import get_auth_manager, get_current_seller, optional_auth_scheme

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

class SignUpRequest(BaseModel):
    """Request model for seller registration."""
    email: str
    password: str
    confirm_password: str
    first_name: str
    last_name: str
    contact_number: str
    address: str

class LoginRequest(BaseModel):
    """Request model for password login."""
    email: str
    password: str

class LoginResponse(BaseModel):
    """Response model for login."""
    token: str
    expires_at: datetime
    user_id: UUID

class SessionStateResponse(BaseModel):
    """Gate state for the presented token."""
    state: GateState
    user_id: Optional[UUID] = None

@router.post("/signup", response_model=Account, status_code=status.HTTP_201_CREATED)
async def signup(request: SignUpRequest, auth: AuthManager = Depends(get_auth_manager)):
    """Register a seller account."""
    try:
        return await auth.sign_up(SignUpProfile(**request.model_dump(), role=AccountRole.SELLER))
    except SignUpValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except AlreadyRegisteredError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e)
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    fastapi_request: Request,
    auth: AuthManager = Depends(get_auth_manager)
):
    """Sign in and admit the session only if it belongs to a seller.

    A non-seller account is signed out again straight away.
    """
    try:
        session = await auth.sign_in(request.email, request.password, fastapi_request)
    except InvalidCredentialsError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    gate = SessionGate(auth, session.token)
    if await gate.check() != GateState.AUTHENTICATED_SELLER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only seller accounts can sign in here"
        )

    return LoginResponse(token=session.token, expires_at=session.expires_at, user_id=session.user_id)

@router.post("/logout")
async def logout(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    auth: AuthManager = Depends(get_auth_manager)
):
    """Revoke the presented session."""
    try:
        await auth.sign_out(credentials.credentials)
        return {"success": True}
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

@router.get("/me", response_model=Account)
async def me(
    seller_id: UUID = Depends(get_current_seller),
    auth: AuthManager = Depends(get_auth_manager)
):
    """The signed-in seller's account."""
    account = await auth.get_account(seller_id)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found"
        )
    return account

@router.get("/session", response_model=SessionStateResponse)
async def session_state(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_auth_scheme),
    auth: AuthManager = Depends(get_auth_manager)
):
    """Run the session gate for the presented token, if any."""
    gate = SessionGate(auth, credentials.credentials if credentials else None)
    state = await gate.check()
    return SessionStateResponse(state=state, user_id=gate.user_id)

@router.get("/route", response_model=RouteDecision)
async def resolve_route(
    path: str = Query(..., description="Client route such as /shoe/123"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_auth_scheme),
    auth: AuthManager = Depends(get_auth_manager)
):
    """Decide whether a client route renders or redirects for this session."""
    gate = SessionGate(auth, credentials.credentials if credentials else None)
    await gate.check()
    return gate.resolve(path)
