"""FastAPI routes for the requesting user's profile picture and its propagation."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.profile_controller import (
	check_migration,
	clear_cache,
	get_migration,
	get_profile,
	list_migrations,
	start_reconciliation,
	update_picture,
)

router = APIRouter()


class PicturePayload(BaseModel):
	image_reference: Optional[str] = None


@router.get("/profile")
async def get_profile_route(request: Request):
	try:
		return await get_profile(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.put("/profile/picture")
async def update_picture_route(request: Request, payload: PicturePayload):
	"""Set the profile picture; an empty reference removes it."""
	try:
		return await update_picture(request, payload.image_reference)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/profile/picture")
async def remove_picture_route(request: Request):
	try:
		return await update_picture(request, None)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/profile/migrations")
async def list_migrations_route(request: Request, limit: int = 20):
	try:
		return await list_migrations(request, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/profile/migrations")
async def start_reconciliation_route(request: Request):
	"""Re-run propagation of the current picture to the user's posts."""
	try:
		return await start_reconciliation(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/profile/migrations/check")
async def check_migration_route(request: Request):
	try:
		return await check_migration(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/profile/migrations/{run_id}")
async def get_migration_route(request: Request, run_id: str):
	try:
		return await get_migration(request, run_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/cache")
async def clear_cache_route(request: Request):
	"""Clear the in-memory image cache."""
	return await clear_cache(request)
