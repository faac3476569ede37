"""Profile read and update, including the profile photo."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ValidationError

from auth.models import Account
from database import get_pool, remote_error
from storage import ImageStore, ImageUpload, StorageError, store as default_store

logger = logging.getLogger(__name__)

AVATAR_PREFIX = 'avatars'

class ProfileError(Exception):
    """Base exception for profile operations."""
    pass

class ProfileNotFoundError(ProfileError):
    """Raised when an account has no profile record."""
    pass

class InvalidProfileError(ProfileError):
    """Raised when profile fields are invalid."""
    pass

class Profile(Account):
    updated_at: Optional[datetime] = None

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    contact_number: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = None
    phone: Optional[str] = None

# Columns a user may edit; email and role are fixed at sign-up
EDITABLE_FIELDS = tuple(ProfileUpdate.model_fields)

def to_profile(row) -> Profile:
    try:
        return Profile(**dict(row))
    except ValidationError as e:
        raise ProfileError(f"Malformed profile record: {e}")

class ProfileManager:
    """Reads and updates user profiles."""

    def __init__(self, pool=None, image_store: Optional[ImageStore] = None):
        self.pool = pool
        self.store = image_store or default_store

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def get_profile(self, user_id: UUID) -> Profile:
        """Raises ProfileNotFoundError if the account has no profile."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    'SELECT * FROM users WHERE user_id = $1',
                    user_id
                )
        except Exception as e:
            logger.error(f"Error getting profile {user_id}: {e}")
            raise remote_error(e, ProfileError, "Failed to get profile")

        if not row:
            raise ProfileNotFoundError(f"Profile {user_id} not found")
        return to_profile(row)

    async def update_profile(
        self,
        user_id: UUID,
        fields: Union[ProfileUpdate, Dict[str, Any]],
        photo: Optional[ImageUpload] = None
    ) -> Profile:
        """Update editable profile fields and optionally the photo.

        The photo is uploaded before the row is written; a failed upload
        leaves the profile unchanged, and a failed write removes the photo.

        Raises:
            InvalidProfileError: If a field is not editable or a name is blank
            ProfileNotFoundError: If the account has no profile
        """
        try:
            if isinstance(fields, dict):
                unknown = set(fields) - set(EDITABLE_FIELDS)
                if unknown:
                    raise InvalidProfileError(
                        f"Cannot update fields: {', '.join(sorted(unknown))}"
                    )
                fields = ProfileUpdate(**fields)
        except ValidationError as e:
            raise InvalidProfileError(f"Invalid profile update: {e}")

        values = {k: v.strip() for k, v in fields.model_dump(exclude_none=True).items()}
        for name in ('first_name', 'last_name'):
            if name in values and not values[name]:
                raise InvalidProfileError(f"{name.replace('_', ' ').capitalize()} cannot be blank")

        await self.ensure_pool()

        if photo:
            try:
                values['photo_url'] = await self.store.upload(AVATAR_PREFIX, photo)
            except StorageError as e:
                logger.error(f"Profile photo upload failed for {user_id}: {e}")
                raise ProfileError(f"Failed to upload photo: {e}")

        if not values:
            return await self.get_profile(user_id)

        assignments: List[str] = []
        params: List[Any] = [user_id]
        for column, value in values.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f'''
                    UPDATE users
                    SET {', '.join(assignments)}, updated_at = now()
                    WHERE user_id = $1
                    RETURNING *
                    ''',
                    *params
                )
        except Exception as e:
            logger.error(f"Error updating profile {user_id}: {e}")
            await self.store.discard(values.get('photo_url'))
            raise remote_error(e, ProfileError, "Failed to update profile")

        if not row:
            await self.store.discard(values.get('photo_url'))
            raise ProfileNotFoundError(f"Profile {user_id} not found")
        logger.info(f"Updated profile {user_id}: {', '.join(values)}")
        return to_profile(row)

__all__ = [
    'ProfileManager',
    'Profile',
    'ProfileUpdate',
    'ProfileError',
    'ProfileNotFoundError',
    'InvalidProfileError',
    'EDITABLE_FIELDS'
]
