from unittest.mock import MagicMock

from app.modules.realtime.channel import RealtimeChannel
from app.modules.realtime.events import ChangeEvent, EventKind, EventOp


def event(kind=EventKind.MESSAGE, op=EventOp.CREATE, group_id="g1", **payload) -> ChangeEvent:
    return ChangeEvent(kind=kind, op=op, group_id=group_id, payload=payload)


def test_subscribers_only_see_their_group():
    channel = RealtimeChannel()
    g1, g2 = [], []
    channel.subscribe("g1", g1.append)
    channel.subscribe("g2", g2.append)

    delivered = channel.publish(event(group_id="g1", id="m1"))

    assert delivered == 1
    assert [e.payload["id"] for e in g1] == ["m1"]
    assert g2 == []


def test_kind_filter():
    channel = RealtimeChannel()
    polls_only = []
    channel.subscribe("g1", polls_only.append, kinds=[EventKind.POLL])

    channel.publish(event(EventKind.MESSAGE))
    channel.publish(event(EventKind.POLL, id="p1"))

    assert [e.kind for e in polls_only] == [EventKind.POLL]


def test_delivery_preserves_publish_order():
    channel = RealtimeChannel()
    seen = []
    channel.subscribe("g1", seen.append)
    for i in range(5):
        channel.publish(event(EventKind.VOTE, id=str(i)))
    assert [e.payload["id"] for e in seen] == ["0", "1", "2", "3", "4"]


def test_failing_handler_does_not_block_others():
    channel = RealtimeChannel()
    broken = MagicMock(side_effect=RuntimeError("socket gone"))
    healthy = []
    channel.subscribe("g1", broken)
    channel.subscribe("g1", healthy.append)

    delivered = channel.publish(event())

    assert delivered == 1
    assert len(healthy) == 1
    broken.assert_called_once()


def test_disconnect_releases_only_that_connection():
    channel = RealtimeChannel()
    mine, theirs = [], []
    channel.subscribe("g1", mine.append, connection_id="c1")
    channel.subscribe("g2", mine.append, connection_id="c1")
    channel.subscribe_user("u1", mine.append, connection_id="c1")
    channel.subscribe("g1", theirs.append, connection_id="c2")

    assert channel.connection_topics("c1") == {"group:g1", "group:g2", "user:u1"}
    assert channel.disconnect("c1") == 3

    channel.publish(event(group_id="g1"))
    channel.publish(event(group_id="g2"))
    assert mine == []
    assert len(theirs) == 1
    assert channel.subscriber_count("g1") == 1
    assert channel.subscriber_count("g2") == 0
    assert channel.disconnect("c1") == 0


def test_user_events_route_to_user_topic():
    channel = RealtimeChannel()
    personal, group = [], []
    channel.subscribe_user("u1", personal.append)
    channel.subscribe("g1", group.append)

    channel.publish(ChangeEvent(kind=EventKind.NOTIFICATION, op=EventOp.CREATE, user_id="u1", payload={"id": "n1"}))

    assert [e.payload["id"] for e in personal] == ["n1"]
    assert group == []


def test_subscribe_kind_dispatches_create_and_update_until_unsubscribed():
    channel = RealtimeChannel()
    on_create, on_update = MagicMock(), MagicMock()
    unsubscribe = channel.subscribe_kind(EventKind.POLL, "g1", on_create, on_update)

    channel.publish(event(EventKind.POLL, EventOp.CREATE, id="p1"))
    channel.publish(event(EventKind.POLL, EventOp.UPDATE, id="p1", active=False))
    channel.publish(event(EventKind.MESSAGE, EventOp.CREATE, id="m1"))
    unsubscribe()
    channel.publish(event(EventKind.POLL, EventOp.CREATE, id="p2"))

    on_create.assert_called_once_with({"id": "p1"})
    on_update.assert_called_once_with({"id": "p1", "active": False})


def test_handler_may_unsubscribe_during_publish():
    channel = RealtimeChannel()
    seen = []

    def once(e):
        seen.append(e)
        sub.unsubscribe()

    sub = channel.subscribe("g1", once)
    channel.publish(event())
    channel.publish(event())
    assert len(seen) == 1


def test_frame_shape():
    frame = event(EventKind.REACTION, EventOp.UPDATE, id="m1").to_frame()
    assert frame["type"] == "event"
    assert frame["kind"] == "reaction"
    assert frame["op"] == "update"
    assert frame["group_id"] == "g1"
    assert frame["payload"] == {"id": "m1"}
