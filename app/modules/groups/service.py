import logging
import secrets
import string
from typing import List

from app.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.database.gateway import Filter, Gateway, Order, RecordKind
from app.modules.groups.schemas import GroupCreate, GroupResponse

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
INVITE_CODE_LENGTH = 6


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


class GroupService:
    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    async def _unused_invite_code(self) -> str:
        for _ in range(5):
            code = generate_invite_code()
            taken = await self.gateway.list(RecordKind.GROUPS, [Filter.eq("invite_code", code)], limit=1)
            if not taken:
                return code
        raise ValidationError("Could not allocate an invite code, try again")

    async def create_group(self, group_data: GroupCreate, user_id: str) -> GroupResponse:
        """Create a group whose creator is its only member"""
        name = (group_data.name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        record = await self.gateway.create(RecordKind.GROUPS, {
            "name": name,
            "creator_id": user_id,
            "members": [user_id],
            "invite_code": await self._unused_invite_code(),
            "last_message": None,
        })
        logger.info(f"Group {record['id']} created by {user_id}")
        return GroupResponse(**record)

    async def get_group(self, group_id: str) -> GroupResponse:
        record = await self.gateway.get(RecordKind.GROUPS, group_id)
        return GroupResponse(**record)

    async def list_groups_for_user(self, user_id: str) -> List[GroupResponse]:
        """Groups the user belongs to, newest first"""
        rows = await self.gateway.list(
            RecordKind.GROUPS,
            [Filter.contains("members", user_id)],
            order=Order("created_at", desc=True),
        )
        return [GroupResponse(**row) for row in rows]

    async def join_by_invite(self, invite_code: str, user_id: str) -> GroupResponse:
        code = (invite_code or "").strip().upper()
        if not code:
            raise ValidationError("Invite code is required")
        rows = await self.gateway.list(RecordKind.GROUPS, [Filter.eq("invite_code", code)], limit=1)
        if not rows:
            raise NotFoundError("No group matches this invite code")
        group = rows[0]
        members = list(group.get("members") or [])
        if user_id in members:
            return GroupResponse(**group)
        members.append(user_id)
        record = await self.gateway.update(RecordKind.GROUPS, group["id"], {"members": members})
        logger.info(f"User {user_id} joined group {group['id']}")
        return GroupResponse(**record)

    async def leave_group(self, group_id: str, user_id: str) -> GroupResponse:
        group = await self.get_group(group_id)
        if group.creator_id == user_id:
            raise ValidationError("The group creator cannot leave; delete the group instead")
        if user_id not in group.members:
            raise ValidationError("You are not a member of this group")
        members = [m for m in group.members if m != user_id]
        record = await self.gateway.update(RecordKind.GROUPS, group_id, {"members": members})
        return GroupResponse(**record)

    async def delete_group(self, group_id: str, requester_id: str) -> None:
        """Creator-only. Removes messages, then each poll's votes, then polls, then the group."""
        group = await self.get_group(group_id)
        if group.creator_id != requester_id:
            raise PermissionDeniedError("Only the group creator can delete this group")
        await self.gateway.delete_where(RecordKind.MESSAGES, [Filter.eq("group_id", group_id)])
        polls = await self.gateway.list(RecordKind.POLLS, [Filter.eq("group_id", group_id)])
        for poll in polls:
            await self.gateway.delete_where(RecordKind.VOTES, [Filter.eq("poll_id", poll["id"])])
        await self.gateway.delete_where(RecordKind.POLLS, [Filter.eq("group_id", group_id)])
        await self.gateway.delete(RecordKind.GROUPS, group_id)
        logger.info(f"Group {group_id} deleted with {len(polls)} poll(s)")
