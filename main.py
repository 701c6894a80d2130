import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

from fastapi import FastAPI, Request

from dal.record_store import RecordStore
from routes.admin_route import router as admin_router
from routes.events_ws import router as events_router
from routes.post_route import router as post_router
from routes.profile_route import router as profile_router
from services.event_broadcaster import EventBroadcaster
from services.image_cache import ImageCache
from services.image_loader import ImageLoader
from services.migration_supervisor import MigrationSupervisor
from services.record_migrator import DependentRecordMigrator
from utils.database_init import AsyncDatabaseInitializer

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite document database (at DATABASE_DIR/app.db)
      - the process-wide image cache, image loader and event broadcaster
      - the migration supervisor that owns background fan-out runs
    and attach them to `app.state`.

    Settings are read from the environment here, after `.env` is loaded.
    """
    db_initializer = AsyncDatabaseInitializer()
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    try:
        cache_size = int(os.getenv("PROFILE_IMAGE_CACHE_SIZE", "100"))
        app.state.image_cache = ImageCache(max_cache_size=cache_size)
    except ValueError as exc:
        raise RuntimeError("PROFILE_IMAGE_CACHE_SIZE must be a positive integer") from exc

    try:
        max_edge = int(os.getenv("PROFILE_IMAGE_MAX_EDGE", "256"))
        fetch_timeout = float(os.getenv("IMAGE_FETCH_TIMEOUT", "10"))
        page_size = int(os.getenv("MIGRATION_PAGE_SIZE", "200"))
        history_size = int(os.getenv("MIGRATION_HISTORY_SIZE", "100"))
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric setting: {exc}") from exc

    app.state.image_loader = ImageLoader(
        media_dir=os.getenv("MEDIA_DIR") or None,
        max_edge=max_edge,
        timeout=fetch_timeout,
    )
    app.state.event_broadcaster = EventBroadcaster()

    migrator = DependentRecordMigrator(RecordStore(db_initializer), page_size=page_size)
    app.state.record_migrator = migrator
    app.state.migration_supervisor = MigrationSupervisor(migrator, history_size=history_size)

    try:
        yield
    finally:
        grace = float(os.getenv("MIGRATION_SHUTDOWN_GRACE", "10"))
        await app.state.migration_supervisor.shutdown(grace)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting database, cache and migration state.
        """
        state = request.app.state
        db_initializer = getattr(state, "db_initializer", None)
        cache = getattr(state, "image_cache", None)
        supervisor = getattr(state, "migration_supervisor", None)
        return {
            "ok": True,
            "db_initialized": bool(db_initializer and db_initializer.initialized),
            "cache_size": len(cache) if cache is not None else 0,
            "active_migrations": supervisor.active_count if supervisor is not None else 0,
        }

    # Register application routers
    app.include_router(profile_router)
    app.include_router(post_router)
    app.include_router(events_router)
    app.include_router(admin_router)

    return app


app = create_app()
