"""Listings module for managing shoe listings.

This module provides functionality for:
- Publishing a listing with an optional image
- Updating a listing's descriptive fields and image
- Fetching one listing, the marketplace of available listings and a seller's listings

A listing's status is owned by the order lifecycle (see the orders module);
it cannot be changed through update_listing.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import ValidationError

from database import get_pool, remote_error
from storage import ImageStore, ImageUpload, StorageError, store as default_store
from .models import Listing, ListingFields, ListingStatus, ListingUpdate, Material, Publisher

logger = logging.getLogger(__name__)

LISTING_IMAGE_PREFIX = 'shoes'

# User-mutable fields mapped to their columns
MUTABLE_FIELDS = {
    'shoe_name': 'shoe_name',
    'brand': 'brand',
    'category': 'category',
    'description': 'description',
    'price': 'price',
    'colors': 'color',
    'sizes': 'size',
    'materials': 'material'
}

# System-managed fields (not directly mutable by users)
SYSTEM_FIELDS = {
    'shoe_id',
    'published_by',
    'status',
    'image_url',
    'created_at',
    'updated_at'
}

LISTING_SELECT = '''
    SELECT
        s.*,
        u.first_name AS publisher_first_name,
        u.last_name AS publisher_last_name
    FROM shoes s
    LEFT JOIN users u ON u.user_id = s.published_by
'''

class ListingError(Exception):
    """Base exception for listing operations."""
    pass

class ListingNotFoundError(ListingError):
    """Raised when a listing is not found."""
    pass

class InvalidListingError(ListingError):
    """Raised when listing fields are missing or malformed."""
    pass

class ListingPermissionError(ListingError):
    """Raised when a seller changes a listing they did not publish."""
    pass

class ImageUploadError(ListingError):
    """Raised when the listing image could not be stored."""
    pass

def to_listing(row) -> Listing:
    """Validate a shoes row (optionally joined with its publisher) into a Listing."""
    data = dict(row)
    data['colors'] = data.pop('color', None) or []
    data['sizes'] = data.pop('size', None) or []
    data['materials'] = data.pop('material', None) or []
    first_name = data.pop('publisher_first_name', None)
    last_name = data.pop('publisher_last_name', None)
    if first_name is not None:
        data['publisher'] = Publisher(
            user_id=data['published_by'],
            first_name=first_name,
            last_name=last_name or ''
        )
    try:
        return Listing(**data)
    except ValidationError as e:
        raise ListingError(f"Malformed listing record: {e}")

def _clean_list(values: List[str]) -> List[str]:
    return [v.strip() for v in values if v and v.strip()]

def _validate_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize user-supplied fields, raising InvalidListingError on bad input."""
    for name in ('shoe_name', 'brand'):
        if name in fields:
            fields[name] = (fields[name] or '').strip()
            if not fields[name]:
                raise InvalidListingError(f"{name.replace('_', ' ').capitalize()} is required")
    if 'price' in fields:
        if fields['price'] is None or Decimal(fields['price']) <= 0:
            raise InvalidListingError("Price must be positive")
    for name in ('colors', 'sizes'):
        if name in fields:
            fields[name] = _clean_list(fields[name] or [])
    if 'materials' in fields:
        fields['materials'] = sorted({Material(m).value for m in fields['materials'] or []})
    return fields

class ListingManager:
    """Manager class for handling listing operations."""

    def __init__(self, pool=None, image_store: Optional[ImageStore] = None):
        """Initialize the listing manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
            image_store: Optional image store. Defaults to the configured store.
        """
        self.pool = pool
        self.store = image_store or default_store

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _upload(self, image: ImageUpload) -> str:
        try:
            return await self.store.upload(LISTING_IMAGE_PREFIX, image)
        except StorageError as e:
            logger.error(f"Listing image upload failed: {e}")
            raise ImageUploadError(f"Failed to upload image: {e}")

    async def create_listing(
        self,
        seller_id: UUID,
        fields: Union[ListingFields, Dict[str, Any]],
        image: Optional[ImageUpload] = None
    ) -> Listing:
        """Publish a new listing.

        If an image is supplied it is uploaded first; a failed upload aborts the
        whole operation so no listing is created without its image.

        Args:
            seller_id: The publishing seller's account id
            fields: Descriptive fields of the listing
            image: Optional image file

        Returns:
            The created listing

        Raises:
            InvalidListingError: If fields are invalid
            ImageUploadError: If the image upload fails
            ListingError: If creation fails
        """
        try:
            if isinstance(fields, dict):
                fields = ListingFields(**fields)
            values = _validate_fields(fields.model_dump())
        except (ValidationError, ValueError) as e:
            raise InvalidListingError(f"Invalid listing: {e}")

        await self.ensure_pool()

        image_url = await self._upload(image) if image else None

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO shoes (
                        shoe_name, brand, category, description, price,
                        color, size, material, image_url, published_by
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                    RETURNING *
                    ''',
                    values['shoe_name'],
                    values['brand'],
                    values['category'],
                    values['description'],
                    values['price'],
                    values['colors'],
                    values['sizes'],
                    values['materials'],
                    image_url,
                    seller_id
                )
        except Exception as e:
            logger.error(f"Error creating listing: {e}")
            await self.store.discard(image_url)
            raise remote_error(e, ListingError, "Failed to create listing")

        listing = to_listing(row)
        logger.info(f"Seller {seller_id} published listing {listing.shoe_id}")
        return listing

    async def update_listing(
        self,
        shoe_id: UUID,
        updates: Union[ListingUpdate, Dict[str, Any]],
        image: Optional[ImageUpload] = None,
        seller_id: Optional[UUID] = None
    ) -> Listing:
        """Update a listing's descriptive fields and, optionally, its image.

        Without a new image the previous image reference is kept.

        Args:
            shoe_id: The listing to update
            updates: Fields to change; unset fields are left as they are
            image: Optional replacement image
            seller_id: If given, the listing must have been published by this seller

        Raises:
            ListingNotFoundError: If the listing does not exist
            ListingPermissionError: If seller_id is not the publisher
            InvalidListingError: If fields are invalid or system-managed
            ImageUploadError: If the image upload fails
        """
        try:
            if isinstance(updates, dict):
                blocked = SYSTEM_FIELDS.intersection(updates)
                if blocked:
                    raise InvalidListingError(
                        f"Cannot update system-managed fields: {', '.join(sorted(blocked))}"
                    )
                updates = ListingUpdate(**updates)
            values = _validate_fields(updates.model_dump(exclude_none=True))
        except (ValidationError, ValueError) as e:
            raise InvalidListingError(f"Invalid listing update: {e}")

        current = await self.get_listing(shoe_id)
        if seller_id is not None and current.published_by != seller_id:
            raise ListingPermissionError(f"Listing {shoe_id} belongs to another seller")

        image_url = await self._upload(image) if image else None

        assignments = []
        params: List[Any] = [shoe_id]
        for field, value in values.items():
            params.append(value)
            assignments.append(f"{MUTABLE_FIELDS[field]} = ${len(params)}")
        if image_url:
            params.append(image_url)
            assignments.append(f"image_url = ${len(params)}")

        if not assignments:
            return current

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE shoes
                    SET {', '.join(assignments)}, updated_at = now()
                    WHERE shoe_id = $1
                    RETURNING *
                    ''',
                    *params
                )
        except Exception as e:
            logger.error(f"Error updating listing {shoe_id}: {e}")
            await self.store.discard(image_url)
            raise remote_error(e, ListingError, "Failed to update listing")

        if not row:
            await self.store.discard(image_url)
            raise ListingNotFoundError(f"Listing {shoe_id} not found")

        listing = to_listing(row)
        listing.publisher = current.publisher
        return listing

    async def get_listing(self, shoe_id: UUID) -> Listing:
        """Get a listing by id.

        Raises:
            ListingNotFoundError: If the listing does not exist
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    LISTING_SELECT + ' WHERE s.shoe_id = $1',
                    shoe_id
                )
        except Exception as e:
            logger.error(f"Error getting listing {shoe_id}: {e}")
            raise remote_error(e, ListingError, "Failed to get listing")

        if not row:
            raise ListingNotFoundError(f"Listing {shoe_id} not found")
        return to_listing(row)

    async def list_available(self) -> List[Listing]:
        """Marketplace view: available listings, newest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    LISTING_SELECT + ' WHERE s.status = $1 ORDER BY s.created_at DESC',
                    ListingStatus.AVAILABLE.value
                )
        except Exception as e:
            logger.error(f"Error listing available shoes: {e}")
            raise remote_error(e, ListingError, "Failed to list listings")

        return [to_listing(row) for row in rows]

    async def list_by_seller(
        self,
        seller_id: UUID,
        status: Optional[ListingStatus] = None
    ) -> List[Listing]:
        """A seller's listings in every status, newest first.

        Args:
            seller_id: The publishing seller
            status: Optional status filter
        """
        await self.ensure_pool()

        query = LISTING_SELECT + ' WHERE s.published_by = $1'
        params: List[Any] = [seller_id]
        if status:
            query += ' AND s.status = $2'
            params.append(ListingStatus(status).value)
        query += ' ORDER BY s.created_at DESC'

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except Exception as e:
            logger.error(f"Error listing shoes for seller {seller_id}: {e}")
            raise remote_error(e, ListingError, "Failed to list seller listings")

        return [to_listing(row) for row in rows]

__all__ = [
    'ListingManager',
    'Listing',
    'ListingFields',
    'ListingUpdate',
    'ListingStatus',
    'Material',
    'Publisher',
    'ListingError',
    'ListingNotFoundError',
    'InvalidListingError',
    'ListingPermissionError',
    'ImageUploadError',
    'to_listing',
    'MUTABLE_FIELDS',
    'SYSTEM_FIELDS'
]
