"""FastAPI routes for posts."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.post_controller import create_post, list_posts

router = APIRouter(prefix="/posts")


class PostPayload(BaseModel):
	content: str


@router.post("")
async def create_post_route(request: Request, payload: PostPayload):
	try:
		return await create_post(request, payload.content)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("")
async def list_posts_route(request: Request, owner_id: Optional[str] = None, limit: int = 100):
	try:
		return await list_posts(request, owner_id, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
