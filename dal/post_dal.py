"""Async data access for posts, the content records that denormalize the author's image."""

from __future__ import annotations

import time
from typing import List, Optional

from dal.record_store import RecordStore
from models.profile_record import DependentRecord

POSTS_COLLECTION = "posts"
DENORMALIZED_FIELD = "author_profile_image_url"


class PostDAL:
    """Create and list posts."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def create_post(self, owner_id: str, content: str, author_profile_image_url: Optional[str]) -> DependentRecord:
        """Insert a post carrying a copy of the author's current image reference.

        Args:
            owner_id: Author user id.
            content: Post text.
            author_profile_image_url: The author's reference at creation time.

        Returns:
            The created DependentRecord.
        """
        fields = {
            "owner_id": owner_id,
            "content": content,
            DENORMALIZED_FIELD: author_profile_image_url,
            "created_at": time.time(),
        }
        post_id = await self._store.create_document(POSTS_COLLECTION, fields)
        return DependentRecord.from_fields(post_id, fields)

    async def get_post(self, post_id: str) -> Optional[DependentRecord]:
        fields = await self._store.get_document(POSTS_COLLECTION, post_id)
        return DependentRecord.from_fields(post_id, fields) if fields is not None else None

    async def list_posts_by_owner(self, owner_id: str, limit: int = 100) -> List[DependentRecord]:
        """List up to `limit` posts for `owner_id`, ordered by post id."""
        if limit <= 0:
            return []
        posts: List[DependentRecord] = []
        async for doc_key, fields in self._store.query_by_owner(POSTS_COLLECTION, owner_id):
            posts.append(DependentRecord.from_fields(doc_key, fields))
            if len(posts) >= limit:
                break
        return posts
