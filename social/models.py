from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel


class Author(BaseModel):
    user_id: UUID
    first_name: str
    last_name: str
    photo_url: Optional[str] = None


class Post(BaseModel):
    id: UUID
    user_id: UUID
    content: str
    image_url: Optional[str] = None
    created_at: datetime
    author: Optional[Author] = None
    likes_count: int = 0
    comments_count: int = 0
    liked_by_me: bool = False


class Comment(BaseModel):
    id: UUID
    post_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    author: Optional[Author] = None


class LikeState(BaseModel):
    post_id: UUID
    liked: bool
    likes_count: int
