"""Fan profile image references out to posts.

Each post carries a denormalized copy of its author's image reference. After
the authoritative record changes, `DependentRecordMigrator.run` rewrites that
copy on every post owned by the user. `run_all` is the global backfill that
fills posts missing a copy from their author's record. Records are written
independently with a single attempt each; failures are collected and
reported, never retried within a run. Writes never recreate a post deleted
while a run is in progress.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from dal.post_dal import DENORMALIZED_FIELD, POSTS_COLLECTION
from dal.record_store import RecordStore, StoreError
from dal.profile_dal import ProfileDAL
from models.migration_models import ALL_OWNERS, MigrationCheck, MigrationResult

LOGGER = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 200
MAX_SAMPLE_ERRORS = 5
PROGRESS_EVERY = 10


class DependentRecordMigrator:
    """Rewrite the denormalized image reference on dependent records.

    Args:
        store: Document store holding both profiles and dependent records.
        collection: Collection of dependent records.
        field: Name of the denormalized reference field.
        page_size: Page size used when querying records.
    """

    def __init__(
        self,
        store: RecordStore,
        collection: str = POSTS_COLLECTION,
        field: str = DENORMALIZED_FIELD,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._profiles = ProfileDAL(store)
        self.collection = collection
        self.field = field
        self.page_size = page_size

    async def _target_reference(self, owner_id: str) -> Optional[str]:
        profile = await self._profiles.get_profile(owner_id)
        if profile is None:
            raise StoreError(f"Profile record not found for {owner_id}")
        return profile.profile_image_url

    async def _write(self, result: MigrationResult, doc_key: str, reference: Optional[str]) -> None:
        """Write one record, counting the outcome on `result`."""
        try:
            await self._store.write_fields(self.collection, doc_key, {self.field: reference}, must_exist=True)
        except Exception as exc:
            self._record_failure(result, doc_key, exc)
            return
        result.updated += 1
        if result.updated % PROGRESS_EVERY == 0:
            LOGGER.info("Migrated %d %s records of %s so far", result.updated, self.collection, result.owner_id)

    def _record_failure(self, result: MigrationResult, doc_key: str, exc: BaseException) -> None:
        result.failed += 1
        if len(result.sample_errors) < MAX_SAMPLE_ERRORS:
            result.sample_errors.append(f"{doc_key}: {exc}")
        LOGGER.warning("Failed to migrate %s/%s: %s", self.collection, doc_key, exc)

    async def run(self, owner_id: str) -> MigrationResult:
        """Write the owner's current image reference into each of their records.

        The reference is read from the authoritative record when the run
        starts. Records already carrying it are left untouched.

        Returns:
            MigrationResult whose `status` is COMPLETED or PARTIAL_FAILURE.

        Raises:
            StoreError: If the profile record or the owner query cannot be read.
        """
        reference = await self._target_reference(owner_id)
        result = MigrationResult(owner_id=owner_id, image_reference=reference)
        LOGGER.info("Migrating %s records of %s to %r", self.collection, owner_id, reference)

        async for doc_key, fields in self._store.query_by_owner(self.collection, owner_id, self.page_size):
            result.examined += 1
            if self.field in fields and fields[self.field] == reference:
                result.unchanged += 1
                continue
            await self._write(result, doc_key, reference)

        return result

    async def run_all(self) -> MigrationResult:
        """Backfill every record that has no image reference from its author's profile.

        Records that already carry a non-empty reference are left alone. A
        record without an owner, or whose owner has no profile, counts as a
        failure. Profiles are read once per owner per run.
        """
        result = MigrationResult(owner_id=ALL_OWNERS, image_reference=None)
        references: Dict[str, Optional[str]] = {}
        LOGGER.info("Backfilling %s records missing %s", self.collection, self.field)

        async for doc_key, fields in self._store.query_collection(self.collection, self.page_size):
            result.examined += 1
            if fields.get(self.field):
                result.unchanged += 1
                continue
            owner_id = fields.get("owner_id")
            if not owner_id:
                self._record_failure(result, doc_key, StoreError("record has no owner_id"))
                continue
            if owner_id not in references:
                try:
                    references[owner_id] = await self._target_reference(owner_id)
                except Exception as exc:
                    self._record_failure(result, doc_key, exc)
                    continue
            reference = references[owner_id]
            # nothing to copy and the field is already present
            if not reference and self.field in fields:
                result.unchanged += 1
                continue
            await self._write(result, doc_key, reference)

        return result

    async def check_status(self, owner_id: str) -> MigrationCheck:
        """Count the owner's records and how many disagree with the authoritative reference."""
        reference = await self._target_reference(owner_id)
        total = 0
        stale = 0
        async for _, fields in self._store.query_by_owner(self.collection, owner_id, self.page_size):
            total += 1
            if fields.get(self.field) != reference:
                stale += 1
        return MigrationCheck(owner_id=owner_id, image_reference=reference, total=total, needs_migration=stale)

    async def check_all(self) -> MigrationCheck:
        """Count every record and how many have a missing or empty image reference."""
        total = 0
        missing = 0
        async for _, fields in self._store.query_collection(self.collection, self.page_size):
            total += 1
            if not fields.get(self.field):
                missing += 1
        return MigrationCheck(owner_id=ALL_OWNERS, image_reference=None, total=total, needs_migration=missing)
