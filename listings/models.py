from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class ListingStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    PENDING = "PENDING"
    SOLD = "SOLD"


class Material(str, Enum):
    LEATHER = "leather"
    SYNTHETIC = "synthetic"
    RUBBER_FOAM = "rubber_foam"
    ECO_FRIENDLY = "eco_friendly"
    OTHER = "other"


class ListingFields(BaseModel):
    shoe_name: str
    brand: str
    category: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    colors: List[str] = Field(default_factory=list)
    sizes: List[str] = Field(default_factory=list)
    materials: List[Material] = Field(default_factory=list)


class ListingUpdate(BaseModel):
    shoe_name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    colors: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    materials: Optional[List[Material]] = None


class Publisher(BaseModel):
    user_id: UUID
    first_name: str
    last_name: str


class Listing(BaseModel):
    shoe_id: UUID
    shoe_name: str
    brand: str
    category: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    colors: List[str]
    sizes: List[str]
    materials: List[Material]
    image_url: Optional[str] = None
    status: ListingStatus
    published_by: UUID
    publisher: Optional[Publisher] = None
    created_at: datetime
    updated_at: datetime
