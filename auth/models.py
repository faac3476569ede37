from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel


class AccountRole(str, Enum):
    SELLER = "SELLER"
    CUSTOMER = "CUSTOMER"


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


class Account(BaseModel):
    user_id: UUID
    email: str
    first_name: str
    last_name: str
    type: AccountRole
    contact_number: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None


class Session(BaseModel):
    token: str
    user_id: UUID
    expires_at: datetime


class SignUpProfile(BaseModel):
    email: str
    password: str
    confirm_password: str
    first_name: str
    last_name: str
    contact_number: str
    address: str
    role: AccountRole = AccountRole.SELLER
