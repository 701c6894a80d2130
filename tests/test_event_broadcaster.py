from models.profile_events import ProfileEvent, UpdateEvent
from services.event_broadcaster import EventBroadcaster

EVENT = ProfileEvent.PROFILE_PICTURE_UPDATED


def test_publish_reaches_current_subscribers_only():
    broadcaster = EventBroadcaster()
    early, late = [], []
    broadcaster.subscribe(EVENT, early.append)

    first = UpdateEvent(owner_id="u1", new_image_reference="img1")
    broadcaster.publish(EVENT, first)
    broadcaster.subscribe(EVENT, late.append)

    assert early == [first]
    assert late == []


def test_unsubscribe_stops_delivery():
    broadcaster = EventBroadcaster()
    received = []
    unsubscribe = broadcaster.subscribe(EVENT, received.append)
    unsubscribe()
    unsubscribe()

    broadcaster.publish(EVENT, UpdateEvent(owner_id="u1", new_image_reference=None))

    assert received == []
    assert broadcaster.subscriber_count(EVENT) == 0


def test_failing_observer_does_not_block_others(caplog):
    broadcaster = EventBroadcaster()
    received = []

    def broken(_event):
        raise RuntimeError("observer bug")

    broadcaster.subscribe(EVENT, broken)
    broadcaster.subscribe(EVENT, received.append)
    event = UpdateEvent(owner_id="u1", new_image_reference="img")

    broadcaster.publish(EVENT, event)

    assert received == [event]
    assert "observer bug" in caplog.text


def test_event_name_matches_wire_name():
    assert EVENT.value == "profilePictureUpdated"
    assert UpdateEvent("u1", "img", "m1").to_dict() == {
        "owner_id": "u1",
        "new_image_reference": "img",
        "migration_id": "m1",
    }
