"""Social feed: posts, comments and likes.

Engagement counts are never stored. List views compute them with one
aggregate query and every like/unlike returns a freshly counted total.
"""

import logging
from typing import List, Optional
from uuid import UUID

from asyncpg.exceptions import ForeignKeyViolationError
from pydantic import ValidationError

from database import get_pool, remote_error
from storage import ImageStore, ImageUpload, StorageError, store as default_store
from .models import Author, Comment, LikeState, Post

logger = logging.getLogger(__name__)

POST_IMAGE_PREFIX = 'posts'
MAX_POST_LENGTH = 5000
MAX_COMMENT_LENGTH = 1000

POST_SELECT = '''
    SELECT
        p.*,
        u.first_name AS author_first_name,
        u.last_name AS author_last_name,
        u.photo_url AS author_photo_url,
        COALESCE(l.likes_count, 0) AS likes_count,
        COALESCE(c.comments_count, 0) AS comments_count,
        EXISTS(
            SELECT 1 FROM likes lk
            WHERE lk.post_id = p.id AND lk.user_id = $1
        ) AS liked_by_me
    FROM posts p
    LEFT JOIN users u ON u.user_id = p.user_id
    LEFT JOIN (
        SELECT post_id, count(*) AS likes_count FROM likes GROUP BY post_id
    ) l ON l.post_id = p.id
    LEFT JOIN (
        SELECT post_id, count(*) AS comments_count FROM comments GROUP BY post_id
    ) c ON c.post_id = p.id
'''

class SocialError(Exception):
    """Base exception for social feed operations."""
    pass

class InvalidPostError(SocialError):
    """Raised when post or comment content is missing or too long."""
    pass

class PostNotFoundError(SocialError):
    """Raised when a post does not exist."""
    pass

class PostPermissionError(SocialError):
    """Raised when someone other than the author deletes a post."""
    pass

def _author(data: dict, user_id: UUID) -> Optional[Author]:
    first_name = data.pop('author_first_name', None)
    last_name = data.pop('author_last_name', None)
    photo_url = data.pop('author_photo_url', None)
    if first_name is None:
        return None
    return Author(user_id=user_id, first_name=first_name, last_name=last_name or '', photo_url=photo_url)

def to_post(row) -> Post:
    data = dict(row)
    try:
        data['author'] = _author(data, data['user_id'])
        return Post(**data)
    except (ValidationError, KeyError) as e:
        raise SocialError(f"Malformed post record: {e}")

def to_comment(row) -> Comment:
    data = dict(row)
    try:
        data['author'] = _author(data, data['user_id'])
        return Comment(**data)
    except (ValidationError, KeyError) as e:
        raise SocialError(f"Malformed comment record: {e}")

def _clean_text(text: Optional[str], limit: int, what: str, required: bool = True) -> str:
    text = (text or '').strip()
    if required and not text:
        raise InvalidPostError(f"{what} cannot be empty")
    if len(text) > limit:
        raise InvalidPostError(f"{what} exceeds {limit} characters")
    return text

class SocialManager:
    """Manages posts, comments and likes."""

    def __init__(self, pool=None, image_store: Optional[ImageStore] = None):
        self.pool = pool
        self.store = image_store or default_store

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_post(
        self,
        user_id: UUID,
        content: str,
        image: Optional[ImageUpload] = None
    ) -> Post:
        """Publish a post. A post needs text, an image, or both.

        Raises:
            InvalidPostError: If there is neither text nor image
            SocialError: If the image upload or insert fails; a failed insert
                removes the uploaded image
        """
        content = _clean_text(content, MAX_POST_LENGTH, "Post", required=image is None)

        await self.ensure_pool()

        image_url = None
        if image:
            try:
                image_url = await self.store.upload(POST_IMAGE_PREFIX, image)
            except StorageError as e:
                logger.error(f"Post image upload failed: {e}")
                raise SocialError(f"Failed to upload image: {e}")

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO posts (user_id, content, image_url)
                    VALUES ($1, $2, $3)
                    RETURNING *
                    ''',
                    user_id,
                    content,
                    image_url
                )
        except Exception as e:
            logger.error(f"Error creating post for {user_id}: {e}")
            await self.store.discard(image_url)
            raise remote_error(e, SocialError, "Failed to create post")

        logger.info(f"User {user_id} created post {row['id']}")
        return to_post(row)

    async def list_posts(self, viewer_id: Optional[UUID] = None) -> List[Post]:
        """All posts with engagement counts, newest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    POST_SELECT + ' ORDER BY p.created_at DESC',
                    viewer_id
                )
        except Exception as e:
            logger.error(f"Error listing posts: {e}")
            raise remote_error(e, SocialError, "Failed to list posts")

        return [to_post(row) for row in rows]

    async def list_user_posts(self, user_id: UUID, viewer_id: Optional[UUID] = None) -> List[Post]:
        """One author's posts with engagement counts, newest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    POST_SELECT + ' WHERE p.user_id = $2 ORDER BY p.created_at DESC',
                    viewer_id,
                    user_id
                )
        except Exception as e:
            logger.error(f"Error listing posts for {user_id}: {e}")
            raise remote_error(e, SocialError, "Failed to list posts")

        return [to_post(row) for row in rows]

    async def delete_post(self, post_id: UUID, user_id: UUID) -> bool:
        """Delete one of user_id's posts along with its comments and likes.

        Raises:
            PostNotFoundError: If the post does not exist
            PostPermissionError: If user_id is not the author
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    author_id = await conn.fetchval(
                        'SELECT user_id FROM posts WHERE id = $1 FOR UPDATE',
                        post_id
                    )
                    if author_id is None:
                        raise PostNotFoundError(f"Post {post_id} not found")
                    if author_id != user_id:
                        raise PostPermissionError("Only the author can delete a post")

                    await conn.execute('DELETE FROM comments WHERE post_id = $1', post_id)
                    await conn.execute('DELETE FROM likes WHERE post_id = $1', post_id)
                    await conn.execute('DELETE FROM posts WHERE id = $1', post_id)

        except SocialError:
            raise
        except Exception as e:
            logger.error(f"Error deleting post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to delete post")

        logger.info(f"User {user_id} deleted post {post_id}")
        return True

    async def add_comment(self, post_id: UUID, user_id: UUID, text: str) -> Comment:
        """Comment on a post.

        Raises:
            InvalidPostError: If the text is blank or too long
            PostNotFoundError: If the post does not exist
        """
        text = _clean_text(text, MAX_COMMENT_LENGTH, "Comment")

        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    '''
                    INSERT INTO comments (post_id, user_id, content)
                    SELECT $1, $2, $3
                    WHERE EXISTS (SELECT 1 FROM posts WHERE id = $1)
                    RETURNING *
                    ''',
                    post_id,
                    user_id,
                    text
                )
        except ForeignKeyViolationError:
            raise PostNotFoundError(f"Post {post_id} not found")
        except Exception as e:
            logger.error(f"Error commenting on post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to add comment")

        if not row:
            raise PostNotFoundError(f"Post {post_id} not found")
        return to_comment(row)

    async def list_comments(self, post_id: UUID) -> List[Comment]:
        """A post's comments, oldest first."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(
                    '''
                    SELECT
                        c.*,
                        u.first_name AS author_first_name,
                        u.last_name AS author_last_name,
                        u.photo_url AS author_photo_url
                    FROM comments c
                    LEFT JOIN users u ON u.user_id = c.user_id
                    WHERE c.post_id = $1
                    ORDER BY c.created_at ASC
                    ''',
                    post_id
                )
        except Exception as e:
            logger.error(f"Error listing comments for post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to list comments")

        return [to_comment(row) for row in rows]

    async def like(self, post_id: UUID, user_id: UUID) -> LikeState:
        """Like a post. Liking an already liked post changes nothing.

        Raises:
            PostNotFoundError: If the post does not exist
        """
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval(
                    '''
                    INSERT INTO likes (post_id, user_id)
                    VALUES ($1, $2)
                    ON CONFLICT (post_id, user_id) DO NOTHING
                    RETURNING post_id
                    ''',
                    post_id,
                    user_id
                )
                count = await conn.fetchval(
                    'SELECT count(*) FROM likes WHERE post_id = $1',
                    post_id
                )
        except ForeignKeyViolationError:
            raise PostNotFoundError(f"Post {post_id} not found")
        except Exception as e:
            logger.error(f"Error liking post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to like post")

        return LikeState(post_id=post_id, liked=True, likes_count=count or 0)

    async def unlike(self, post_id: UUID, user_id: UUID) -> LikeState:
        """Remove a like. Unliking a post that is not liked changes nothing."""
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval(
                    '''
                    DELETE FROM likes
                    WHERE post_id = $1 AND user_id = $2
                    RETURNING post_id
                    ''',
                    post_id,
                    user_id
                )
                count = await conn.fetchval(
                    'SELECT count(*) FROM likes WHERE post_id = $1',
                    post_id
                )
        except Exception as e:
            logger.error(f"Error unliking post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to unlike post")

        return LikeState(post_id=post_id, liked=False, likes_count=count or 0)

    async def has_liked(self, post_id: UUID, user_id: UUID) -> bool:
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                liked = await conn.fetchval(
                    'SELECT EXISTS(SELECT 1 FROM likes WHERE post_id = $1 AND user_id = $2)',
                    post_id,
                    user_id
                )
        except Exception as e:
            logger.error(f"Error checking like on post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to check like")

        return bool(liked)

    async def like_count(self, post_id: UUID) -> int:
        await self.ensure_pool()

        try:
            async with self.pool.acquire() as conn:
                count = await conn.fetchval(
                    'SELECT count(*) FROM likes WHERE post_id = $1',
                    post_id
                )
        except Exception as e:
            logger.error(f"Error counting likes on post {post_id}: {e}")
            raise remote_error(e, SocialError, "Failed to count likes")

        return count or 0

__all__ = [
    'SocialManager',
    'Post',
    'Comment',
    'Author',
    'LikeState',
    'SocialError',
    'InvalidPostError',
    'PostNotFoundError',
    'PostPermissionError',
    'to_post',
    'to_comment'
]
