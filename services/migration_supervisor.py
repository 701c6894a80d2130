"""Own background migration runs and record how each one ended."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional, Set

from models.migration_models import ALL_OWNERS, MigrationResult, MigrationRun, MigrationStatus
from services.record_migrator import DependentRecordMigrator

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 100

_IN_FLIGHT = (MigrationStatus.PENDING, MigrationStatus.RUNNING)


class MigrationSupervisor:
    """Schedule migrator runs as asyncio tasks and keep their terminal status.

    Every run ends in COMPLETED, PARTIAL_FAILURE or FATAL and the outcome is
    logged; an exception escaping the migrator becomes FATAL instead of being
    lost with the task.

    Args:
        migrator: Migrator executed for each launched run.
        history_size: Number of finished runs kept for lookup. Runs still in
            flight are always kept.
    """

    def __init__(self, migrator: DependentRecordMigrator, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        self._migrator = migrator
        self._history_size = max(1, history_size)
        self._runs: "OrderedDict[str, MigrationRun]" = OrderedDict()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def history_size(self) -> int:
        return self._history_size

    def launch(self, owner_id: str) -> MigrationRun:
        """Start a migration for `owner_id` without waiting for it.

        Must be called from within a running event loop.
        """
        return self._start(MigrationRun(owner_id=owner_id), lambda: self._migrator.run(owner_id))

    def launch_backfill(self) -> MigrationRun:
        """Start the global backfill of records missing an image reference."""
        return self._start(MigrationRun(owner_id=ALL_OWNERS), self._migrator.run_all)

    def _start(self, run: MigrationRun, work: Callable[[], Awaitable[MigrationResult]]) -> MigrationRun:
        self._remember(run)
        task = asyncio.get_running_loop().create_task(self._supervise(run, work), name=f"migration-{run.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        LOGGER.info("Launched migration %s for %s", run.id, run.owner_id)
        return run

    async def _supervise(self, run: MigrationRun, work: Callable[[], Awaitable[MigrationResult]]) -> MigrationRun:
        run.status = MigrationStatus.RUNNING
        run.started_at = time.time()
        try:
            result = await work()
        except asyncio.CancelledError:
            run.status = MigrationStatus.FATAL
            run.error = "cancelled"
            run.finished_at = time.time()
            LOGGER.error("Migration %s for %s was cancelled", run.id, run.owner_id)
            raise
        except Exception as exc:
            run.status = MigrationStatus.FATAL
            run.error = str(exc) or exc.__class__.__name__
            run.finished_at = time.time()
            LOGGER.error("Migration %s for %s failed: %s", run.id, run.owner_id, exc, exc_info=exc)
            return run

        run.result = result
        run.status = result.status
        run.finished_at = time.time()
        if run.status is MigrationStatus.COMPLETED:
            LOGGER.info(
                "Migration %s for %s completed: %d updated, %d unchanged",
                run.id, run.owner_id, result.updated, result.unchanged,
            )
        else:
            LOGGER.warning(
                "Migration %s for %s partially failed: %d of %d records failed; samples: %s",
                run.id, run.owner_id, result.failed, result.examined, result.sample_errors,
            )
        return run

    def _remember(self, run: MigrationRun) -> None:
        self._runs[run.id] = run
        excess = len(self._runs) - self._history_size
        if excess <= 0:
            return
        # oldest finished runs go first; in-flight runs stay until they finish
        finished = [run_id for run_id, kept in self._runs.items() if kept.status not in _IN_FLIGHT]
        for run_id in finished[:excess]:
            del self._runs[run_id]

    def get(self, run_id: str) -> Optional[MigrationRun]:
        return self._runs.get(run_id)

    def recent(self, owner_id: Optional[str] = None, limit: int = 20) -> List[MigrationRun]:
        """Return the newest runs first, optionally only those of `owner_id`."""
        runs = [run for run in reversed(self._runs.values()) if owner_id is None or run.owner_id == owner_id]
        return runs[:limit]

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until no run is in flight. Returns False if `timeout` expired first."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._tasks:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            await asyncio.wait(set(self._tasks), timeout=remaining)
        return True

    async def shutdown(self, grace_seconds: float) -> None:
        """Give in-flight runs `grace_seconds` to finish; runs are not cancelled."""
        if await self.wait_idle(grace_seconds):
            return
        LOGGER.warning(
            "%d migration(s) still running at shutdown; their records keep the previous reference "
            "until the next update or reconciliation pass",
            len(self._tasks),
        )
