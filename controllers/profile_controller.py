from fastapi import Request, HTTPException
from typing import Dict, Any, Optional

from dal.profile_dal import ProfileDAL
from dal.record_store import RecordStore
from services.identity import HeaderIdentityResolver
from services.migration_supervisor import MigrationSupervisor
from services.profile_errors import AuthoritativeWriteFailed, Unauthenticated
from services.update_coordinator import UpdateCoordinator
from utils.media_validation import normalize_image_reference


def _build_coordinator(request: Request) -> UpdateCoordinator:
    """Wire a coordinator for this request around the process-wide collaborators."""
    state = request.app.state
    return UpdateCoordinator(
        identity=HeaderIdentityResolver(request),
        profiles=ProfileDAL(RecordStore(state.db_initializer)),
        cache=state.image_cache,
        loader=state.image_loader,
        supervisor=state.migration_supervisor,
        broadcaster=state.event_broadcaster,
    )


def _require_actor(request: Request) -> str:
    user_id = HeaderIdentityResolver(request).current_actor()
    if not user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return user_id


async def update_picture(request: Request, image_reference: Optional[str]) -> Dict[str, Any]:
    """Handle a profile picture change for the requesting user.

    Args:
        request: FastAPI Request (used to access app.state for shared collaborators).
        image_reference: New image reference; None or empty removes the picture.

    Returns:
        A dict containing: owner_id, image_reference, migration_id

    Raises:
        HTTPException(400) for an invalid reference, 401 without an actor,
        502 if the profile record could not be written.
    """
    reference = normalize_image_reference(image_reference)
    coordinator = _build_coordinator(request)
    try:
        if reference is None:
            event = await coordinator.remove_profile_picture()
        else:
            event = await coordinator.update_profile_image(reference)
    except Unauthenticated as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except AuthoritativeWriteFailed as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return {
        "owner_id": event.owner_id,
        "image_reference": event.new_image_reference,
        "migration_id": event.migration_id,
    }


async def get_profile(request: Request) -> Dict[str, Any]:
    """Return the requesting user's authoritative profile record."""
    user_id = _require_actor(request)
    profiles = ProfileDAL(RecordStore(request.app.state.db_initializer))
    record = await profiles.get_profile(user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return {
        "user_id": record.user_id,
        "profile_image_url": record.profile_image_url,
        "updated_at": record.updated_at,
    }


async def start_reconciliation(request: Request) -> Dict[str, Any]:
    """Launch a migration pass for the requesting user outside of an update."""
    user_id = _require_actor(request)
    profiles = ProfileDAL(RecordStore(request.app.state.db_initializer))
    if await profiles.get_profile(user_id) is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    supervisor: MigrationSupervisor = request.app.state.migration_supervisor
    run = supervisor.launch(user_id)
    return run.to_dict()


async def list_migrations(request: Request, limit: int = 20) -> Dict[str, Any]:
    """List the requesting user's most recent migration runs."""
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be at least 1")
    user_id = _require_actor(request)
    supervisor: MigrationSupervisor = request.app.state.migration_supervisor
    return {"items": [run.to_dict() for run in supervisor.recent(owner_id=user_id, limit=limit)]}


async def get_migration(request: Request, run_id: str) -> Dict[str, Any]:
    """Return one of the requesting user's migration runs."""
    user_id = _require_actor(request)
    supervisor: MigrationSupervisor = request.app.state.migration_supervisor
    run = supervisor.get(run_id)
    if run is None or run.owner_id != user_id:
        raise HTTPException(status_code=404, detail="Migration not found")
    return run.to_dict()


async def check_migration(request: Request) -> Dict[str, Any]:
    """Count the requesting user's posts that still carry an outdated image reference."""
    user_id = _require_actor(request)
    profiles = ProfileDAL(RecordStore(request.app.state.db_initializer))
    if await profiles.get_profile(user_id) is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    check = await request.app.state.record_migrator.check_status(user_id)
    return {
        "owner_id": check.owner_id,
        "image_reference": check.image_reference,
        "total": check.total,
        "needs_migration": check.needs_migration,
    }


async def clear_cache(request: Request) -> Dict[str, Any]:
    """Drop every cached image (e.g. on logout)."""
    request.app.state.image_cache.clear()
    return {"cleared": True}
