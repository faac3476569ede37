from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from listings.models import ListingStatus
from notifications import Notification


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    SENDING = "SENDING"
    CANCELLED = "CANCELLED"


class OrderListing(BaseModel):
    shoe_id: UUID
    shoe_name: str
    brand: str
    price: Decimal
    image_url: Optional[str] = None
    status: ListingStatus
    published_by: UUID


class Buyer(BaseModel):
    user_id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None


class Order(BaseModel):
    checkout_id: UUID
    buyer_id: UUID
    shoe_id: UUID
    status: OrderStatus
    payment_method: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    listing: Optional[OrderListing] = None
    buyer: Optional[Buyer] = None


class Sale(BaseModel):
    id: UUID
    shoe_id: UUID
    seller_id: UUID
    buyer_id: UUID
    price: Decimal
    created_at: datetime


class CompletedOrder(BaseModel):
    order: Order
    sale: Sale
    notification: Notification


class CancelledOrder(BaseModel):
    order: Order
    notification: Notification
