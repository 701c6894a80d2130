from fastapi import Request, HTTPException
from typing import Dict, Any, Optional

from dal.post_dal import PostDAL
from dal.profile_dal import ProfileDAL
from dal.record_store import RecordStore
from models.profile_record import DependentRecord
from services.identity import HeaderIdentityResolver


def _post_to_dict(post: DependentRecord) -> Dict[str, Any]:
    return {
        "id": post.id,
        "owner_id": post.owner_id,
        "content": post.content,
        "author_profile_image_url": post.author_profile_image_url,
        "created_at": post.created_at,
    }


async def create_post(request: Request, content: str) -> Dict[str, Any]:
    """Create a post for the requesting user.

    The post stores a copy of the author's current profile image reference,
    read from the authoritative record.

    Raises:
        HTTPException(401) without an actor, 400 for empty content.
    """
    user_id = HeaderIdentityResolver(request).current_actor()
    if not user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    cleaned = content.strip()
    if not cleaned:
        raise HTTPException(status_code=400, detail="Post content is required.")

    store = RecordStore(request.app.state.db_initializer)
    profile = await ProfileDAL(store).get_profile(user_id)
    reference = profile.profile_image_url if profile else None

    post = await PostDAL(store).create_post(user_id, cleaned, reference)
    return _post_to_dict(post)


async def list_posts(request: Request, owner_id: Optional[str] = None, limit: int = 100) -> Dict[str, Any]:
    """List posts of `owner_id`, defaulting to the requesting user."""
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be at least 1")
    owner = owner_id or HeaderIdentityResolver(request).current_actor()
    if not owner:
        raise HTTPException(status_code=400, detail="owner_id is required")
    posts = await PostDAL(RecordStore(request.app.state.db_initializer)).list_posts_by_owner(owner, limit=limit)
    return {"items": [_post_to_dict(p) for p in posts]}
