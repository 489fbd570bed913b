"""
Shared fixtures.

Everything runs on the in-memory gateway. Place and movie searches come from
ScriptedLookup, and bearer tokens are resolved by FakeAuthService, so no
test touches the network.
"""
from typing import Dict, List, Optional, Sequence

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.database.memory_gateway import MemoryGateway
from app.modules.groups.schemas import GroupCreate
from app.modules.groups.service import GroupService
from app.modules.messages.service import MessageService
from app.modules.notifications.service import NotificationService
from app.modules.planbot.interpreter import PlanBot
from app.modules.planbot.lookup import Candidate, LookupProvider
from app.modules.planbot.serializer import CommandSerializer
from app.modules.polls.service import PollService
from app.modules.realtime.channel import RealtimeChannel
from app.modules.users.service import UserService
from app.modules.votes.service import VoteService

ALICE = {"id": "user-alice", "email": "alice@example.com", "name": "Alice", "avatar": ""}
BOB = {"id": "user-bob", "email": "bob@example.com", "name": "Bob", "avatar": ""}
CAROL = {"id": "user-carol", "email": "carol@example.com", "name": "Carol", "avatar": ""}
MALLORY = {"id": "user-mallory", "email": "mallory@example.com", "name": "Mallory", "avatar": ""}

TOKENS = {
    "token-alice": ALICE,
    "token-bob": BOB,
    "token-carol": CAROL,
    "token-mallory": MALLORY,
}


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def place(title: str, address: str = "", rating: Optional[float] = None, place_id: Optional[str] = None) -> Candidate:
    return Candidate(
        id=place_id or f"osm_node_{abs(hash(title)) % 100000}",
        title=title,
        description=address or f"{title} street",
        rating=rating,
        extra={"types": ["cafe"], "latitude": 28.63, "longitude": 77.21},
    )


class ScriptedLookup(LookupProvider):
    """Returns whatever the test put in .places / .movies and records what was asked."""

    def __init__(self):
        self.places: List[Candidate] = []
        self.movies: List[Candidate] = []
        self.error: Optional[Exception] = None
        self.place_queries: List[str] = []
        self.genre_queries: List[List[str]] = []

    async def search_places(self, text: str) -> List[Candidate]:
        self.place_queries.append(text)
        if self.error is not None:
            raise self.error
        return list(self.places)

    async def search_movies_by_genres(self, genres: Sequence[str]) -> List[Candidate]:
        self.genre_queries.append(list(genres))
        if self.error is not None:
            raise self.error
        return list(self.movies)


class FakeAuthService:
    def __init__(self, users: Dict[str, Dict]):
        self.users = users

    async def get_current_user(self, token: str) -> Dict:
        if token not in self.users:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return dict(self.users[token])


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def channel():
    return RealtimeChannel()


@pytest.fixture
def lookup():
    return ScriptedLookup()


@pytest.fixture
def poll_service(gateway, channel):
    return PollService(gateway, channel)


@pytest.fixture
def vote_service(gateway, channel):
    return VoteService(gateway, channel)


@pytest.fixture
def message_service(gateway, channel):
    return MessageService(gateway, channel)


@pytest.fixture
def notification_service(gateway, channel):
    return NotificationService(gateway, channel)


@pytest.fixture
def group_service(gateway):
    return GroupService(gateway)


@pytest.fixture
def user_service(gateway):
    return UserService(gateway)


@pytest.fixture
def planbot(gateway, channel, lookup):
    return PlanBot(gateway, channel, lookup)


@pytest.fixture
async def group(group_service):
    """A group created by Alice that Bob and Carol joined."""
    created = await group_service.create_group(GroupCreate(name="Weekend crew"), ALICE["id"])
    await group_service.join_by_invite(created.invite_code, BOB["id"])
    return await group_service.join_by_invite(created.invite_code, CAROL["id"])


@pytest.fixture
def recorded(channel):
    """Collects every event published for a group: recorded(group_id) -> list."""
    def watch(group_id: str) -> List:
        events = []
        channel.subscribe(group_id, events.append)
        return events
    return watch


@pytest.fixture
def client(gateway, channel, lookup):
    from app.main import app

    app.state.gateway = gateway
    app.state.channel = channel
    app.state.lookup = lookup
    app.state.auth_service = FakeAuthService(TOKENS)
    app.state.planbot = PlanBot(gateway, channel, lookup)
    app.state.command_serializer = CommandSerializer()
    with TestClient(app) as test_client:
        yield test_client
    for name in ("gateway", "channel", "lookup", "reranker", "auth_service", "planbot", "command_serializer"):
        setattr(app.state, name, None)
