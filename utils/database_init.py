import os
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite


class AsyncDatabaseInitializer:
    """
    Manage an async SQLite document database using the DATABASE_DIR environment variable.

    - The database file is located at: <DATABASE_DIR>/app.db
    - DATABASE_DIR is required unless `db_dir` is passed explicitly. A
      RuntimeError is raised if it is missing or invalid (not a directory and
      cannot be created).
    - On the first call to `ensure_database()` for a given instance:
        * If `reset` is true (or DATABASE_RESET=1), any existing database file
          at that path is deleted.
        * The DOCUMENT table and its owner index are created if missing.
    - Subsequent calls to `ensure_database()` on the same instance are no-ops,
      so it is safe for `connection()` to call it.
    """

    def __init__(self, db_dir: Optional[Path | str] = None, reset: Optional[bool] = None) -> None:
        env_dir = str(db_dir) if db_dir is not None else os.getenv("DATABASE_DIR")

        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATABASE_DIR environment variable must be set to a writable "
                "directory path where the SQLite database file will be stored."
            )

        resolved_dir = Path(env_dir).expanduser()

        # If the path exists but is not a directory, that's a configuration error.
        if resolved_dir.exists() and not resolved_dir.is_dir():
            raise RuntimeError(
                f"DATABASE_DIR={env_dir!r} points to a file, not a directory "
                f"({resolved_dir}). Please set DATABASE_DIR to a directory path."
            )

        try:
            resolved_dir.mkdir(parents=True, exist_ok=True)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to create or access database directory at {resolved_dir}"
            ) from exc

        if reset is None:
            reset = os.getenv("DATABASE_RESET", "0").strip().lower() in ("1", "true", "yes")

        self.db_dir = resolved_dir
        self.db_path = self.db_dir / "app.db"
        self.reset = reset

        # Internal flag to make schema creation (and the optional wipe) one-time per instance.
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def ensure_database(self) -> None:
        """
        Ensure the SQLite database and the DOCUMENT schema exist at `self.db_path`.

        Subsequent calls on the same instance are no-ops.
        """
        if self._initialized:
            return

        if self.reset and self.db_path.exists():
            try:
                self.db_path.unlink()
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to delete existing database at {self.db_path}"
                ) from exc

        max_attempts = 3
        for attempt in range(1, max_attempts + 1):
            try:
                async with aiosqlite.connect(self.db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL;")
                    # One row per document; `fields` holds the JSON body and
                    # `owner_key` mirrors fields.owner_id for owner queries.
                    await db.execute(
                        """
                        CREATE TABLE IF NOT EXISTS DOCUMENT (
                            collection TEXT NOT NULL,
                            doc_key TEXT NOT NULL,
                            owner_key TEXT,
                            fields TEXT NOT NULL,
                            updated_at REAL NOT NULL,
                            PRIMARY KEY (collection, doc_key)
                        )
                        """
                    )
                    await db.execute(
                        "CREATE INDEX IF NOT EXISTS idx_document_owner "
                        "ON DOCUMENT(collection, owner_key, doc_key)"
                    )
                    await db.commit()
                break
            except FileNotFoundError:
                # On some platforms a transient missing file error may occur; retry a few times.
                if attempt >= max_attempts:
                    raise
                await asyncio.sleep(0.1 * attempt)

        self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Async context manager yielding an `aiosqlite.Connection`.

        The schema is created on the first use via `ensure_database()`.
        """
        await self.ensure_database()
        conn = await aiosqlite.connect(self.db_path)
        try:
            yield conn
        finally:
            await conn.close()
