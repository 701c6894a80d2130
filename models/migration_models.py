"""State tracked for dependent-record migration runs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

# owner_id recorded for runs and checks that span every owner
ALL_OWNERS = "*"


class MigrationStatus(str, Enum):
    """Lifecycle of a migration run: PENDING -> RUNNING -> terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    FATAL = "fatal"


@dataclass
class MigrationResult:
    """Outcome of one pass over an owner's dependent records.

    Attributes:
        owner_id: Owner whose records were migrated.
        image_reference: Reference written into the denormalized field.
        examined: Records returned by the owner query.
        updated: Records rewritten.
        unchanged: Records that already carried the reference (no write).
        failed: Records whose write failed.
        sample_errors: First few failure messages, `"<doc_key>: <error>"`.
    """

    owner_id: str
    image_reference: Optional[str]
    examined: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    sample_errors: List[str] = field(default_factory=list)

    @property
    def status(self) -> MigrationStatus:
        return MigrationStatus.PARTIAL_FAILURE if self.failed else MigrationStatus.COMPLETED


@dataclass(frozen=True)
class MigrationCheck:
    """Read-only count of records that disagree with the authoritative reference."""

    owner_id: str
    image_reference: Optional[str]
    total: int
    needs_migration: int


@dataclass
class MigrationRun:
    """Supervisor-side handle for a scheduled migration."""

    owner_id: str
    id: str = field(default_factory=lambda: uuid4().hex)
    status: MigrationStatus = MigrationStatus.PENDING
    result: Optional[MigrationResult] = None
    error: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.result
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "status": self.status.value,
            "image_reference": result.image_reference if result else None,
            "examined": result.examined if result else 0,
            "updated": result.updated if result else 0,
            "unchanged": result.unchanged if result else 0,
            "failed": result.failed if result else 0,
            "sample_errors": list(result.sample_errors) if result else [],
            "error": self.error,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
