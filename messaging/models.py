from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel


class Sender(str, Enum):
    SELLER = "SELLER"
    CUSTOMER = "CUSTOMER"


class Message(BaseModel):
    id: UUID
    seller_id: UUID
    customer_id: UUID
    message: str
    sender: Sender
    created_at: datetime


class ConversationPartner(BaseModel):
    user_id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    photo_url: Optional[str] = None
    last_message_at: Optional[datetime] = None
