from unittest.mock import AsyncMock, patch

import pytest

from app.core.exceptions import NotFoundError, PersistenceError
from app.modules.notifications.schemas import NotificationMetadata
from app.modules.realtime.events import EventKind, EventOp

from tests.conftest import ALICE, BOB, CAROL


async def test_notify_persists_unread_and_pushes_to_recipient(notification_service, channel):
    pushed = []
    channel.subscribe_user(ALICE["id"], pushed.append)

    note = await notification_service.notify(
        ALICE["id"], "🎉 Plan Confirmed!", NotificationMetadata(group_id="g1", place="Cafe A", attendees=2)
    )

    assert note.read is False
    assert note.type == "plan_confirmation"
    assert note.metadata.place == "Cafe A"
    [event] = pushed
    assert (event.kind, event.op, event.user_id) == (EventKind.NOTIFICATION, EventOp.CREATE, ALICE["id"])
    assert event.payload["id"] == note.id


async def test_notify_raises_on_storage_failure(notification_service):
    with patch.object(notification_service.gateway, "create", AsyncMock(side_effect=PersistenceError())):
        with pytest.raises(PersistenceError):
            await notification_service.notify(ALICE["id"], "hi")


async def test_notify_many_continues_past_failures(notification_service):
    real_create = notification_service.gateway.create

    async def flaky_create(kind, fields):
        if fields["user_id"] == BOB["id"]:
            raise PersistenceError("Failed to create notifications record")
        return await real_create(kind, fields)

    with patch.object(notification_service.gateway, "create", side_effect=flaky_create):
        delivered = await notification_service.notify_many([ALICE["id"], BOB["id"], CAROL["id"]], "Plan locked")

    assert delivered == 2
    assert len(await notification_service.list_for_user(ALICE["id"])) == 1
    assert await notification_service.list_for_user(BOB["id"]) == []
    assert len(await notification_service.list_for_user(CAROL["id"])) == 1


async def test_list_is_newest_first_and_limited(notification_service):
    for i in range(4):
        await notification_service.notify(ALICE["id"], f"note {i}")
    await notification_service.notify(BOB["id"], "not yours")

    listed = await notification_service.list_for_user(ALICE["id"], limit=3)
    assert [n.text for n in listed] == ["note 3", "note 2", "note 1"]


async def test_mark_read_only_for_owner(notification_service):
    note = await notification_service.notify(ALICE["id"], "hi")

    with pytest.raises(NotFoundError):
        await notification_service.mark_read(note.id, BOB["id"])
    assert (await notification_service.mark_read(note.id, ALICE["id"])).read is True


async def test_mark_all_read(notification_service):
    for i in range(3):
        await notification_service.notify(ALICE["id"], f"note {i}")
    other = await notification_service.notify(BOB["id"], "bob's")

    assert await notification_service.mark_all_read(ALICE["id"]) == 3
    assert all(n.read for n in await notification_service.list_for_user(ALICE["id"]))
    assert (await notification_service.list_for_user(BOB["id"]))[0].id == other.id
    assert (await notification_service.list_for_user(BOB["id"]))[0].read is False
    assert await notification_service.mark_all_read(ALICE["id"]) == 0
