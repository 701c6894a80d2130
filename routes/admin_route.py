"""FastAPI routes for migrations that span every user's posts."""

from fastapi import APIRouter, HTTPException, Request

from controllers.admin_controller import check_backfill, list_backfills, start_backfill

router = APIRouter(prefix="/admin/migrations")


@router.post("/backfill")
async def start_backfill_route(request: Request):
	"""Fill posts that have no author image reference from the author's profile."""
	try:
		return await start_backfill(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/check")
async def check_backfill_route(request: Request):
	try:
		return await check_backfill(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("")
async def list_backfills_route(request: Request, limit: int = 20):
	try:
		return await list_backfills(request, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
