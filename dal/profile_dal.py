"""Async data access for authoritative profile records (collection `users`)."""

from __future__ import annotations

import logging
from typing import Optional

from dal.record_store import SERVER_TIMESTAMP, RecordStore
from models.profile_record import ProfileRecord

LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class ProfileDAL:
    """Read and write the profile image fields of a user document."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def get_profile(self, user_id: str) -> Optional[ProfileRecord]:
        """Return the ProfileRecord for `user_id`, or None if not found."""
        fields = await self._store.get_document(USERS_COLLECTION, user_id)
        return ProfileRecord.from_fields(user_id, fields) if fields is not None else None

    async def update_profile_picture(self, user_id: str, image_reference: Optional[str]) -> None:
        """Set the user's image reference and stamp `updated_at`.

        Both fields are written in one store transaction.

        Raises:
            StoreError: If the store could not apply the write.
        """
        await self._store.write_fields(
            USERS_COLLECTION,
            user_id,
            {"profile_image_url": image_reference, "updated_at": SERVER_TIMESTAMP},
        )
        LOGGER.info("Profile image for %s set to %r", user_id, image_reference)

    async def remove_profile_picture(self, user_id: str) -> None:
        """Clear the user's image reference."""
        await self.update_profile_picture(user_id, None)
