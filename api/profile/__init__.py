"""Profile management endpoints."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from profiles import (
    InvalidProfileError, Profile, ProfileError, ProfileManager, ProfileNotFoundError
)
from ..dependencies import get_current_seller, get_profile_manager, read_image

router = APIRouter(
    prefix="/profile",
    tags=["Profile"]
)

@router.get("", response_model=Profile)
async def get_profile(
    seller_id: UUID = Depends(get_current_seller),
    profiles: ProfileManager = Depends(get_profile_manager)
):
    """Get the signed-in seller's profile."""
    try:
        return await profiles.get_profile(seller_id)
    except ProfileNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ProfileError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.patch("", response_model=Profile)
async def update_profile(
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    contact_number: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    seller_id: UUID = Depends(get_current_seller),
    profiles: ProfileManager = Depends(get_profile_manager)
):
    """Update profile fields and optionally the profile photo."""
    fields = {
        "first_name": first_name,
        "last_name": last_name,
        "contact_number": contact_number,
        "address": address,
        "location": location,
        "phone": phone
    }
    try:
        return await profiles.update_profile(
            seller_id,
            {k: v for k, v in fields.items() if v is not None},
            await read_image(photo)
        )
    except InvalidProfileError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ProfileNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    except ProfileError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
