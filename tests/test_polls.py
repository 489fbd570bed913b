import pytest

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.gateway import Filter, RecordKind
from app.modules.polls.schemas import PollCreate, PollMetadata
from app.modules.realtime.events import EventKind, EventOp

from tests.conftest import ALICE, BOB


def draft(title="Cafe A", type="place", **metadata) -> PollCreate:
    return PollCreate(type=type, title=title, description="somewhere", metadata=PollMetadata(**metadata))


async def active_polls(gateway, group_id):
    return await gateway.list(RecordKind.POLLS, [Filter.eq("group_id", group_id), Filter.eq("active", True)])


async def test_created_poll_is_the_active_poll(poll_service, group):
    poll = await poll_service.create_poll(group.id, ALICE, draft())

    active = await poll_service.get_active_poll(group.id)
    assert active.id == poll.id
    assert active.active is True
    assert active.choices == ["join", "maybe", "no"]
    assert active.creator_name == "Alice"


async def test_create_deactivates_previous_active_poll(poll_service, gateway, group):
    first = await poll_service.create_poll(group.id, ALICE, draft("First"))
    second = await poll_service.create_poll(group.id, BOB, draft("Second"))

    assert (await poll_service.get_poll(first.id)).active is False
    rows = await active_polls(gateway, group.id)
    assert [r["id"] for r in rows] == [second.id]


async def test_create_leaves_other_groups_alone(poll_service, group_service, group):
    from app.modules.groups.schemas import GroupCreate

    other = await group_service.create_group(GroupCreate(name="Other"), BOB["id"])
    theirs = await poll_service.create_poll(other.id, BOB, draft("Theirs"))
    await poll_service.create_poll(group.id, ALICE, draft("Ours"))

    assert (await poll_service.get_active_poll(other.id)).id == theirs.id


@pytest.mark.parametrize("bad", [draft(type="concert"), draft(title="   ")])
async def test_create_rejects_bad_drafts(poll_service, gateway, group, bad):
    with pytest.raises(ValidationError):
        await poll_service.create_poll(group.id, ALICE, bad)
    assert gateway.count(RecordKind.POLLS) == 0


async def test_metadata_round_trips_typed(poll_service, group):
    poll = await poll_service.create_poll(
        group.id, ALICE, draft(date="2025-10-30", time="19:30", rating=4.5, types=["cafe"], source="planbot")
    )
    fetched = await poll_service.get_poll(poll.id)
    assert fetched.metadata.date == "2025-10-30"
    assert fetched.metadata.time == "19:30"
    assert fetched.metadata.rating == 4.5
    assert fetched.metadata.source == "planbot"


async def test_metadata_stored_as_json_text_is_decoded(poll_service, gateway, group):
    record = await gateway.create(RecordKind.POLLS, {
        "group_id": group.id, "creator_id": ALICE["id"], "creator_name": "Alice", "type": "movie",
        "external_id": "603", "title": "The Matrix", "choices": ["join", "maybe", "no"], "active": True,
        "metadata": '{"releaseDate": "1999-03-31", "rating": 8.2}',
    })
    poll = await poll_service.get_poll(record["id"])
    assert poll.metadata.release_date == "1999-03-31"
    assert poll.metadata.rating == 8.2


async def test_activate_requires_creator(poll_service, group):
    poll = await poll_service.create_poll(group.id, ALICE, draft())
    with pytest.raises(PermissionDeniedError):
        await poll_service.activate_poll(poll.id, BOB["id"])


async def test_activate_switches_the_active_poll(poll_service, gateway, group):
    older = await poll_service.create_poll(group.id, ALICE, draft("Older"))
    newer = await poll_service.create_poll(group.id, BOB, draft("Newer"))

    activated = await poll_service.activate_poll(older.id, ALICE["id"])

    assert activated.active is True
    rows = await active_polls(gateway, group.id)
    assert [r["id"] for r in rows] == [older.id]
    assert (await poll_service.get_poll(newer.id)).active is False


async def test_activate_already_active_poll_is_safe(poll_service, gateway, group):
    poll = await poll_service.create_poll(group.id, ALICE, draft())
    again = await poll_service.activate_poll(poll.id, ALICE["id"])
    assert again.active is True
    assert len(await active_polls(gateway, group.id)) == 1


async def test_deactivate_requires_creator_and_touches_only_that_poll(poll_service, group):
    poll = await poll_service.create_poll(group.id, ALICE, draft())
    with pytest.raises(PermissionDeniedError):
        await poll_service.deactivate_poll(poll.id, BOB["id"])

    closed = await poll_service.deactivate_poll(poll.id, ALICE["id"])
    assert closed.active is False
    assert await poll_service.get_active_poll(group.id) is None


async def test_delete_removes_votes_then_poll(poll_service, vote_service, gateway, group):
    poll = await poll_service.create_poll(group.id, ALICE, draft())
    await vote_service.cast_vote(poll.id, ALICE["id"], "join")
    await vote_service.cast_vote(poll.id, BOB["id"], "no")

    with pytest.raises(PermissionDeniedError):
        await poll_service.delete_poll(poll.id, BOB["id"])
    await poll_service.delete_poll(poll.id, ALICE["id"])

    assert gateway.count(RecordKind.VOTES, [Filter.eq("poll_id", poll.id)]) == 0
    with pytest.raises(NotFoundError):
        await poll_service.get_poll(poll.id)


async def test_get_active_poll_heals_duplicate_actives(poll_service, gateway, group):
    base = {
        "group_id": group.id, "creator_id": ALICE["id"], "creator_name": "Alice", "type": "place",
        "external_id": "", "title": "Race", "choices": ["join", "maybe", "no"], "active": True, "metadata": {},
    }
    stale = await gateway.create(RecordKind.POLLS, dict(base, title="Stale"))
    fresh = await gateway.create(RecordKind.POLLS, dict(base, title="Fresh"))

    active = await poll_service.get_active_poll(group.id)

    assert active.id == fresh["id"]
    rows = await active_polls(gateway, group.id)
    assert [r["id"] for r in rows] == [fresh["id"]]
    assert (await poll_service.get_poll(stale["id"])).active is False


async def test_get_active_poll_none_when_nothing_active(poll_service, group):
    assert await poll_service.get_active_poll(group.id) is None


async def test_list_group_polls_newest_first(poll_service, group):
    titles = ["One", "Two", "Three"]
    for title in titles:
        await poll_service.create_poll(group.id, ALICE, draft(title))
    listed = await poll_service.list_group_polls(group.id)
    assert [p.title for p in listed] == list(reversed(titles))


async def test_get_missing_poll_raises_not_found(poll_service):
    with pytest.raises(NotFoundError):
        await poll_service.get_poll("missing")


async def test_poll_events_are_published_in_order(poll_service, group, recorded):
    events = recorded(group.id)
    first = await poll_service.create_poll(group.id, ALICE, draft("First"))
    second = await poll_service.create_poll(group.id, ALICE, draft("Second"))
    await poll_service.delete_poll(second.id, ALICE["id"])

    assert [(e.kind, e.op, e.payload["id"]) for e in events] == [
        (EventKind.POLL, EventOp.CREATE, first.id),
        (EventKind.POLL, EventOp.UPDATE, first.id),
        (EventKind.POLL, EventOp.CREATE, second.id),
        (EventKind.POLL, EventOp.DELETE, second.id),
    ]
    assert events[1].payload["active"] is False
