"""Social feed API endpoints."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel

from social import (
    Comment, InvalidPostError, LikeState, Post, PostNotFoundError,
    PostPermissionError, SocialError, SocialManager
)
from ..dependencies import get_current_seller, get_social_manager, inflight, read_image

router = APIRouter(
    prefix="/social",
    tags=["Social"]
)

class CommentRequest(BaseModel):
    """Request model for adding a comment."""
    content: str

def _to_http(e: SocialError) -> HTTPException:
    if isinstance(e, PostNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, PostPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, InvalidPostError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.get("/posts", response_model=List[Post])
async def list_posts(
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    """The whole feed, newest first."""
    try:
        return await social.list_posts(viewer_id=seller_id)
    except SocialError as e:
        raise _to_http(e)

@router.get("/users/{user_id}/posts", response_model=List[Post])
async def list_user_posts(
    user_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    """One author's posts, newest first."""
    try:
        return await social.list_user_posts(user_id, viewer_id=seller_id)
    except SocialError as e:
        raise _to_http(e)

@router.post("/posts", response_model=Post, status_code=status.HTTP_201_CREATED)
async def create_post(
    content: str = Form(""),
    image: Optional[UploadFile] = File(None),
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    """Create a post with text, an image, or both."""
    async with inflight.hold("post", seller_id, content.strip()):
        try:
            return await social.create_post(seller_id, content, await read_image(image))
        except SocialError as e:
            raise _to_http(e)

@router.delete("/posts/{post_id}")
async def delete_post(
    post_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    """Delete one of the seller's own posts."""
    try:
        await social.delete_post(post_id, seller_id)
        return {"success": True}
    except SocialError as e:
        raise _to_http(e)

@router.get("/posts/{post_id}/comments", response_model=List[Comment])
async def list_comments(
    post_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    try:
        return await social.list_comments(post_id)
    except SocialError as e:
        raise _to_http(e)

@router.post("/posts/{post_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def add_comment(
    post_id: UUID,
    request: CommentRequest,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    try:
        return await social.add_comment(post_id, seller_id, request.content)
    except SocialError as e:
        raise _to_http(e)

@router.get("/posts/{post_id}/likes", response_model=LikeState)
async def like_state(
    post_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    """Whether the seller likes the post, and its like count."""
    try:
        return LikeState(
            post_id=post_id,
            liked=await social.has_liked(post_id, seller_id),
            likes_count=await social.like_count(post_id)
        )
    except SocialError as e:
        raise _to_http(e)

@router.post("/posts/{post_id}/like", response_model=LikeState)
async def like(
    post_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    try:
        return await social.like(post_id, seller_id)
    except SocialError as e:
        raise _to_http(e)

@router.delete("/posts/{post_id}/like", response_model=LikeState)
async def unlike(
    post_id: UUID,
    seller_id: UUID = Depends(get_current_seller),
    social: SocialManager = Depends(get_social_manager)
):
    try:
        return await social.unlike(post_id, seller_id)
    except SocialError as e:
        raise _to_http(e)
