from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ProfileRecord:
    """Authoritative profile document for one user (collection `users`).

    Attributes:
        user_id: Identity of the user; also the document key.
        profile_image_url: Current image reference, or None when removed.
        updated_at: Server-assigned unix timestamp of the last write.
    """

    user_id: str
    profile_image_url: Optional[str] = None
    updated_at: Optional[float] = None

    @classmethod
    def from_fields(cls, user_id: str, fields: Dict[str, Any]) -> "ProfileRecord":
        return cls(
            user_id=user_id,
            profile_image_url=fields.get("profile_image_url"),
            updated_at=fields.get("updated_at"),
        )


@dataclass(frozen=True)
class DependentRecord:
    """Content item carrying a denormalized copy of its owner's image reference.

    Attributes:
        id: Document key in the `posts` collection.
        owner_id: User id of the author (refers to a ProfileRecord).
        author_profile_image_url: Denormalized image reference.
        content: Post body text.
        created_at: Unix timestamp when the post was created.
    """

    id: str
    owner_id: str
    author_profile_image_url: Optional[str] = None
    content: str = ""
    created_at: Optional[float] = None

    @classmethod
    def from_fields(cls, doc_key: str, fields: Dict[str, Any]) -> "DependentRecord":
        return cls(
            id=doc_key,
            owner_id=fields.get("owner_id", ""),
            author_profile_image_url=fields.get("author_profile_image_url"),
            content=fields.get("content") or "",
            created_at=fields.get("created_at"),
        )
