from fastapi import Request, HTTPException
from typing import Dict, Any

from models.migration_models import ALL_OWNERS
from services.identity import HeaderIdentityResolver
from services.migration_supervisor import MigrationSupervisor


def _require_actor(request: Request) -> str:
    user_id = HeaderIdentityResolver(request).current_actor()
    if not user_id:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return user_id


async def start_backfill(request: Request) -> Dict[str, Any]:
    """Launch the global backfill of posts missing the author's image reference.

    Returns:
        The PENDING run; poll GET /admin/migrations for its outcome.

    Raises:
        HTTPException(401) without an actor.
    """
    _require_actor(request)
    supervisor: MigrationSupervisor = request.app.state.migration_supervisor
    return supervisor.launch_backfill().to_dict()


async def check_backfill(request: Request) -> Dict[str, Any]:
    """Count all posts and those with a missing or empty image reference."""
    _require_actor(request)
    check = await request.app.state.record_migrator.check_all()
    return {"total": check.total, "needs_migration": check.needs_migration}


async def list_backfills(request: Request, limit: int = 20) -> Dict[str, Any]:
    """List the most recent global backfill runs."""
    _require_actor(request)
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be at least 1")
    supervisor: MigrationSupervisor = request.app.state.migration_supervisor
    return {"items": [run.to_dict() for run in supervisor.recent(owner_id=ALL_OWNERS, limit=limit)]}
