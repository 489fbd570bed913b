"""Per-group asyncio locks so PlanBot handles one command per group at a time."""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class CommandSerializer:
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def lock_for(self, group_id: str) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = self._locks[group_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def serialized(self, group_id: str) -> AsyncIterator[None]:
        lock = self.lock_for(group_id)
        if lock.locked():
            logger.debug(f"Command for group {group_id} waiting on the previous one")
        async with lock:
            yield

    def forget(self, group_id: str) -> None:
        """Release the lock of a deleted group unless a command still holds it."""
        lock = self._locks.get(group_id)
        if lock is not None and not lock.locked():
            del self._locks[group_id]
