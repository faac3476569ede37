"""Listings API endpoints."""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from listings import (
    ImageUploadError, InvalidListingError, Listing, ListingError, ListingManager,
    ListingNotFoundError, ListingPermissionError, ListingStatus, Material
)
from ..dependencies import get_current_seller, get_listing_manager, inflight, read_image

router = APIRouter(
    prefix="/listings",
    tags=["Listings"]
)

def _to_http(e: ListingError) -> HTTPException:
    if isinstance(e, ListingNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ListingPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, (InvalidListingError, ImageUploadError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("", response_model=List[Listing])
async def marketplace(
    seller_id: UUID = Depends(get_current_seller),
    listings: ListingManager = Depends(get_listing_manager)
):
    """Available listings from every seller, newest first."""
    try:
        return await listings.list_available()
    except ListingError as e:
        raise _to_http(e)

@router.get("/mine", response_model=List[Listing])
async def my_listings(
    status_filter: Optional[ListingStatus] = Query(None, alias="status"),
    seller_id: UUID = Depends(get_current_seller),
    listings: ListingManager = Depends(get_listing_manager)
):
    """The signed-in seller's listings, optionally filtered by status."""
    try:
        return await listings.list_by_seller(seller_id, status_filter)
    except ListingError as e:
        raise _to_http(e)

@router.get("/{shoe_id}", response_model=Listing)
async def get_listing(
    shoe_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    listings: ListingManager = Depends(get_listing_manager)
):
    """Get a listing by id."""
    try:
        return await listings.get_listing(shoe_id)
    except ListingError as e:
        raise _to_http(e)

@router.post("", response_model=Listing, status_code=status.HTTP_201_CREATED)
async def publish_listing(
    shoe_name: str = Form(...),
    brand: str = Form(...),
    price: Decimal = Form(...),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    colors: List[str] = Form([]),
    sizes: List[str] = Form([]),
    materials: List[Material] = Form([]),
    image: Optional[UploadFile] = File(None),
    seller_id: UUID = Depends(get_current_seller),
    listings: ListingManager = Depends(get_listing_manager)
):
    """Publish a listing. Multipart form with an optional image file."""
    fields = {
        "shoe_name": shoe_name,
        "brand": brand,
        "category": category,
        "description": description,
        "price": price,
        "colors": colors,
        "sizes": sizes,
        "materials": materials
    }
    async with inflight.hold("publish", seller_id, shoe_name.strip().lower()):
        try:
            return await listings.create_listing(seller_id, fields, await read_image(image))
        except ListingError as e:
            raise _to_http(e)

@router.patch("/{shoe_id}", response_model=Listing)
async def update_listing(
    shoe_id: UUID,
    shoe_name: Optional[str] = Form(None),
    brand: Optional[str] = Form(None),
    price: Optional[Decimal] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    colors: Optional[List[str]] = Form(None),
    sizes: Optional[List[str]] = Form(None),
    materials: Optional[List[Material]] = Form(None),
    image: Optional[UploadFile] = File(None),
    seller_id: UUID = Depends(get_current_seller),
    listings: ListingManager = Depends(get_listing_manager)
):
    """Update one of the seller's listings. Status cannot be changed here."""
    fields = {
        "shoe_name": shoe_name,
        "brand": brand,
        "price": price,
        "category": category,
        "description": description,
        "colors": colors,
        "sizes": sizes,
        "materials": materials
    }
    fields = {k: v for k, v in fields.items() if v is not None}
    async with inflight.hold("update", seller_id, shoe_id):
        try:
            return await listings.update_listing(
                shoe_id, fields, await read_image(image), seller_id=seller_id
            )
        except ListingError as e:
            raise _to_http(e)
