"""Coordinate a profile picture change.

Order of work for one update:
    1. resolve the actor
    2. write the authoritative profile record (failure aborts everything)
    3. refresh the image cache (best-effort)
    4. launch the dependent-record migration (not awaited)
    5. broadcast PROFILE_PICTURE_UPDATED
"""

from __future__ import annotations

import logging
from typing import Optional

from dal.profile_dal import ProfileDAL
from dal.record_store import StoreError
from models.profile_events import ProfileEvent, UpdateEvent
from services.event_broadcaster import EventBroadcaster
from services.identity import IdentityResolver
from services.image_cache import ImageCache
from services.image_loader import ImageLoader
from services.migration_supervisor import MigrationSupervisor
from services.profile_errors import AuthoritativeWriteFailed, CacheRefreshFailed, Unauthenticated

LOGGER = logging.getLogger(__name__)


class UpdateCoordinator:
    """Apply profile picture changes for the current actor.

    All collaborators are injected; the cache, supervisor and broadcaster are
    expected to be the process-wide instances.
    """

    def __init__(
        self,
        identity: IdentityResolver,
        profiles: ProfileDAL,
        cache: ImageCache,
        loader: ImageLoader,
        supervisor: MigrationSupervisor,
        broadcaster: EventBroadcaster,
    ) -> None:
        self.identity = identity
        self.profiles = profiles
        self.cache = cache
        self.loader = loader
        self.supervisor = supervisor
        self.broadcaster = broadcaster

    async def update_profile_image(self, new_image_reference: Optional[str]) -> UpdateEvent:
        """Set (or, with None, remove) the actor's profile image.

        Returns once the record is written and observers were notified; the
        migration of the actor's posts may still be running.

        Raises:
            Unauthenticated: No actor is signed in.
            AuthoritativeWriteFailed: The profile record was not written.
        """
        user_id = self.identity.current_actor()
        if not user_id:
            raise Unauthenticated()

        try:
            await self.profiles.update_profile_picture(user_id, new_image_reference)
        except StoreError as exc:
            LOGGER.error("Profile image write for %s failed: %s", user_id, exc)
            raise AuthoritativeWriteFailed(exc) from exc

        if new_image_reference is not None:
            try:
                await self._refresh_cache(new_image_reference)
            except CacheRefreshFailed as exc:
                LOGGER.warning("%s", exc)

        run = self.supervisor.launch(user_id)

        event = UpdateEvent(owner_id=user_id, new_image_reference=new_image_reference, migration_id=run.id)
        self.broadcaster.publish(ProfileEvent.PROFILE_PICTURE_UPDATED, event)
        return event

    async def remove_profile_picture(self) -> UpdateEvent:
        """Remove the actor's profile image."""
        return await self.update_profile_image(None)

    async def _refresh_cache(self, reference: str) -> None:
        try:
            handle = await self.loader.load(reference)
            self.cache.set(reference, handle)
        except Exception as exc:
            raise CacheRefreshFailed(reference, exc) from exc
