from typing import Any, Mapping
from unittest.mock import AsyncMock, MagicMock

import pytest

from dal.profile_dal import ProfileDAL
from dal.record_store import RecordStore, StoreError
from models.migration_models import MigrationRun
from models.profile_events import ProfileEvent, UpdateEvent
from services.event_broadcaster import EventBroadcaster
from services.identity import StaticIdentityResolver
from services.image_cache import ImageCache
from services.image_loader import ImageLoader
from services.profile_errors import AuthoritativeWriteFailed, Unauthenticated
from services.update_coordinator import UpdateCoordinator


class Harness:
    """Coordinator wired to recording fakes; `calls` keeps the order of side effects."""

    def __init__(self, user_id="u1", write_error=None, load_error=None):
        self.calls = []
        self.events = []

        self.profiles = MagicMock(spec=ProfileDAL)

        async def write(uid, ref):
            self.calls.append(("write", uid, ref))
            if write_error is not None:
                raise write_error

        self.profiles.update_profile_picture = AsyncMock(side_effect=write)

        self.loader = MagicMock(spec=ImageLoader)

        async def load(ref):
            self.calls.append(("load", ref))
            if load_error is not None:
                raise load_error
            return f"handle:{ref}"

        self.loader.load = AsyncMock(side_effect=load)

        self.cache = ImageCache(max_cache_size=4)
        self.supervisor = MagicMock()

        def launch(uid):
            self.calls.append(("launch", uid))
            return MigrationRun(owner_id=uid, id="run-1")

        self.supervisor.launch = MagicMock(side_effect=launch)

        self.broadcaster = EventBroadcaster()

        def observe(event):
            self.calls.append(("broadcast", event.owner_id, event.new_image_reference))
            self.events.append(event)

        self.broadcaster.subscribe(ProfileEvent.PROFILE_PICTURE_UPDATED, observe)

        self.coordinator = UpdateCoordinator(
            identity=StaticIdentityResolver(user_id),
            profiles=self.profiles,
            cache=self.cache,
            loader=self.loader,
            supervisor=self.supervisor,
            broadcaster=self.broadcaster,
        )


@pytest.mark.asyncio
async def test_success_runs_steps_in_order_and_broadcasts_once():
    h = Harness()

    event = await h.coordinator.update_profile_image("img2")

    assert h.calls == [
        ("write", "u1", "img2"),
        ("load", "img2"),
        ("launch", "u1"),
        ("broadcast", "u1", "img2"),
    ]
    assert h.events == [UpdateEvent(owner_id="u1", new_image_reference="img2", migration_id="run-1")]
    assert event == h.events[0]
    assert h.cache.get("img2") == "handle:img2"


@pytest.mark.asyncio
async def test_failed_write_skips_cache_migration_and_broadcast():
    cause = StoreError("disk I/O error")
    h = Harness(write_error=cause)

    with pytest.raises(AuthoritativeWriteFailed) as info:
        await h.coordinator.update_profile_image("img2")

    assert info.value.cause is cause
    assert h.loader.load.await_count == 0
    assert h.supervisor.launch.call_count == 0
    assert h.events == []
    assert len(h.cache) == 0


@pytest.mark.asyncio
async def test_unauthenticated_touches_nothing():
    h = Harness(user_id=None)

    with pytest.raises(Unauthenticated):
        await h.coordinator.update_profile_image("img2")

    assert h.calls == []


@pytest.mark.asyncio
async def test_cache_refresh_failure_does_not_fail_update(caplog):
    h = Harness(load_error=FileNotFoundError("no such file"))

    with caplog.at_level("WARNING"):
        event = await h.coordinator.update_profile_image("img2")

    assert event.new_image_reference == "img2"
    assert h.supervisor.launch.call_count == 1
    assert len(h.events) == 1
    assert h.cache.get("img2") is None
    assert "no such file" in caplog.text


@pytest.mark.asyncio
async def test_remove_profile_picture_writes_none_and_skips_cache_load():
    h = Harness()

    event = await h.coordinator.remove_profile_picture()

    assert event.new_image_reference is None
    assert h.calls == [("write", "u1", None), ("launch", "u1"), ("broadcast", "u1", None)]


@pytest.mark.asyncio
async def test_broadcast_happens_before_return_while_migration_is_pending():
    h = Harness()
    seen_before_return = []
    h.broadcaster.subscribe(
        ProfileEvent.PROFILE_PICTURE_UPDATED,
        lambda e: seen_before_return.append(h.supervisor.launch.call_count),
    )

    await h.coordinator.update_profile_image("img2")

    assert seen_before_return == [1]


class FailingUsersStore(RecordStore):
    """Store that rejects writes to the users collection once armed."""

    armed = False

    async def write_fields(
        self, collection: str, doc_key: str, fields: Mapping[str, Any], must_exist: bool = False
    ) -> None:
        if self.armed and collection == "users":
            raise StoreError("write rejected")
        await super().write_fields(collection, doc_key, fields, must_exist=must_exist)


@pytest.mark.asyncio
async def test_failed_store_write_leaves_old_reference_and_cache(db_initializer):
    store = FailingUsersStore(db_initializer)
    profiles = ProfileDAL(store)
    await profiles.update_profile_picture("u1", "img1")
    store.armed = True

    h = Harness()
    h.coordinator.profiles = profiles
    h.cache.set("img1", "handle:img1")

    with pytest.raises(AuthoritativeWriteFailed):
        await h.coordinator.update_profile_image("img2")

    record = await profiles.get_profile("u1")
    assert record.profile_image_url == "img1"
    assert h.events == []
    assert h.supervisor.launch.call_count == 0
    assert h.cache.get("img1") == "handle:img1"
    assert h.cache.get("img2") is None
    assert len(h.cache) == 1
