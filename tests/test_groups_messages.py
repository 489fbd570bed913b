import pytest

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.gateway import Filter, RecordKind
from app.modules.groups.schemas import GroupCreate
from app.modules.polls.schemas import PollCreate
from app.modules.realtime.events import EventKind, EventOp

from tests.conftest import ALICE, BOB, CAROL, MALLORY


async def test_creator_is_sole_member_with_invite_code(group_service):
    group = await group_service.create_group(GroupCreate(name="  Book club "), ALICE["id"])
    assert group.name == "Book club"
    assert group.members == [ALICE["id"]]
    assert group.creator_id == ALICE["id"]
    assert len(group.invite_code) == 6
    assert group.invite_code == group.invite_code.upper()


async def test_blank_group_name_rejected(group_service):
    with pytest.raises(ValidationError):
        await group_service.create_group(GroupCreate(name=" "), ALICE["id"])


async def test_join_by_invite_is_idempotent_and_case_insensitive(group_service, group):
    joined = await group_service.join_by_invite(group.invite_code.lower(), BOB["id"])
    assert joined.members == [ALICE["id"], BOB["id"], CAROL["id"]]

    with pytest.raises(NotFoundError):
        await group_service.join_by_invite("NOPE00", MALLORY["id"])


async def test_list_groups_for_user(group_service, group):
    mine = await group_service.create_group(GroupCreate(name="Solo"), CAROL["id"])
    listed = await group_service.list_groups_for_user(CAROL["id"])
    assert [g.id for g in listed] == [mine.id, group.id]
    assert await group_service.list_groups_for_user(MALLORY["id"]) == []


async def test_leave_group(group_service, group):
    left = await group_service.leave_group(group.id, BOB["id"])
    assert BOB["id"] not in left.members
    with pytest.raises(ValidationError):
        await group_service.leave_group(group.id, ALICE["id"])


async def test_delete_group_is_creator_only_and_cascades(
    group_service, poll_service, vote_service, message_service, gateway, group
):
    poll = await poll_service.create_poll(group.id, ALICE, PollCreate(type="place", title="Cafe A"))
    await vote_service.cast_vote(poll.id, BOB["id"], "join")
    await message_service.send_message(group.id, BOB, "see you")

    with pytest.raises(PermissionDeniedError):
        await group_service.delete_group(group.id, BOB["id"])
    await group_service.delete_group(group.id, ALICE["id"])

    assert gateway.count(RecordKind.GROUPS) == 0
    assert gateway.count(RecordKind.POLLS) == 0
    assert gateway.count(RecordKind.VOTES) == 0
    assert gateway.count(RecordKind.MESSAGES) == 0


async def test_send_message_updates_snapshot_and_publishes(message_service, group_service, group, recorded):
    events = recorded(group.id)
    message = await message_service.send_message(group.id, BOB, "  pizza later?  ")

    assert message.text == "pizza later?"
    assert message.sender_name == "Bob"
    assert message.is_system_message is False
    refreshed = await group_service.get_group(group.id)
    assert refreshed.last_message.text == "pizza later?"
    assert refreshed.last_message.sender_name == "Bob"
    assert [(e.kind, e.op) for e in events] == [(EventKind.MESSAGE, EventOp.CREATE)]


async def test_empty_message_rejected(message_service, group):
    with pytest.raises(ValidationError):
        await message_service.send_message(group.id, BOB, "   ")


async def test_messages_list_oldest_first(message_service, group):
    for text in ("one", "two", "three"):
        await message_service.send_message(group.id, ALICE, text)
    assert [m.text for m in await message_service.list_messages(group.id)] == ["one", "two", "three"]
    assert [m.text for m in await message_service.list_messages(group.id, limit=2)] == ["two", "three"]


async def test_system_message_sender(message_service, group):
    message = await message_service.send_system_message(group.id, "🤖 hello")
    assert (message.sender_id, message.sender_name, message.is_system_message) == ("planbot", "PlanBot", True)


async def test_announce_poll(message_service, poll_service, group):
    poll = await poll_service.create_poll(group.id, ALICE, PollCreate(type="movie", title="Dune"))
    message = await message_service.announce_poll(group.id, ALICE, poll)
    assert message.text == "📊 New poll created: Dune"
    assert message.poll_id == poll.id


async def test_toggle_reaction(message_service, group, recorded):
    message = await message_service.send_message(group.id, ALICE, "dinner?")
    events = recorded(group.id)

    added = await message_service.toggle_reaction(message.id, BOB["id"], "👍")
    also = await message_service.toggle_reaction(message.id, CAROL["id"], "👍")
    removed = await message_service.toggle_reaction(message.id, BOB["id"], "👍")

    assert [r.user_id for r in added.reactions] == [BOB["id"]]
    assert [r.user_id for r in also.reactions] == [BOB["id"], CAROL["id"]]
    assert [r.user_id for r in removed.reactions] == [CAROL["id"]]
    assert [(e.kind, e.op) for e in events] == [(EventKind.REACTION, EventOp.UPDATE)] * 3


async def test_reactions_stored_as_json_text_are_decoded(message_service, gateway, group):
    record = await gateway.create(RecordKind.MESSAGES, {
        "group_id": group.id, "sender_id": BOB["id"], "sender_name": "Bob", "text": "legacy",
        "reactions": '[{"emoji": "🎉", "user_id": "user-carol"}]',
    })
    message = await message_service.get_message(record["id"])
    assert message.reactions[0].emoji == "🎉"


async def test_snapshot_failure_does_not_lose_message(message_service, gateway):
    # group row missing: the snapshot update fails, the message is still stored
    message = await message_service.send_message("ghost-group", ALICE, "hello?")
    assert gateway.count(RecordKind.MESSAGES, [Filter.eq("id", message.id)]) == 1


async def test_user_profile_defaults_and_genres(user_service):
    from app.modules.users.schemas import UserUpdate

    fallback = await user_service.get_or_default_profile(ALICE)
    assert fallback.full_name == "Alice"
    assert await user_service.get_favorite_genres(ALICE["id"]) == []

    await user_service.update_profile(ALICE, UserUpdate(favorite_genres=["Horror", ""]))
    updated = await user_service.update_profile(ALICE, UserUpdate(full_name="Alice L."))
    assert updated.full_name == "Alice L."
    assert updated.favorite_genres == ["Horror"]
