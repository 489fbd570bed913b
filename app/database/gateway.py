"""
Persistence gateway: the one seam every service writes through.

Records cross this boundary as plain dicts with snake_case keys. Columns that
some clients store as encoded JSON text (poll metadata, message reactions,
group last-message snapshots, notification metadata) are decoded here, once,
so nothing past the gateway ever sees raw JSON strings.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordKind(str, Enum):
    GROUPS = "groups"
    MESSAGES = "messages"
    POLLS = "polls"
    VOTES = "votes"
    NOTIFICATIONS = "notifications"
    USER_PROFILES = "user_profiles"

    @property
    def label(self) -> str:
        return _LABELS[self.value]


_LABELS = {
    "groups": "Group",
    "messages": "Message",
    "polls": "Poll",
    "votes": "Vote",
    "notifications": "Notification",
    "user_profiles": "User",
}


# column -> value used when stored text cannot be decoded
JSON_COLUMNS: Dict[str, Any] = {
    "metadata": {},
    "reactions": [],
    "last_message": None,
}


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    @classmethod
    def eq(cls, field: str, value: Any) -> "Filter":
        return cls(field, "eq", value)

    @classmethod
    def contains(cls, field: str, value: Any) -> "Filter":
        """Array column contains value"""
        return cls(field, "contains", value)


@dataclass(frozen=True)
class Order:
    field: str = "created_at"
    desc: bool = False


def decode_record(record: Optional[Record]) -> Optional[Record]:
    """Decode JSON-text columns in place and return the record."""
    if record is None:
        return None
    for column, fallback in JSON_COLUMNS.items():
        value = record.get(column)
        if isinstance(value, str):
            try:
                record[column] = json.loads(value) if value else fallback
            except ValueError:
                logger.warning(f"Undecodable {column} on record {record.get('id')}; using default")
                record[column] = fallback
    return record


class Gateway(ABC):
    """create/get/update/delete/list over record kinds, plus the bulk helpers
    needed to keep poll activation and vote casting single-statement."""

    @abstractmethod
    async def create(self, kind: RecordKind, fields: Record) -> Record:
        ...

    @abstractmethod
    async def get(self, kind: RecordKind, record_id: str) -> Record:
        """Raises NotFoundError when the record does not exist."""

    @abstractmethod
    async def update(self, kind: RecordKind, record_id: str, fields: Record) -> Record:
        ...

    @abstractmethod
    async def delete(self, kind: RecordKind, record_id: str) -> None:
        ...

    @abstractmethod
    async def list(
        self,
        kind: RecordKind,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        ...

    @abstractmethod
    async def update_where(self, kind: RecordKind, filters: Sequence[Filter], fields: Record) -> List[Record]:
        """Update every matching record in one statement; returns updated rows."""

    @abstractmethod
    async def delete_where(self, kind: RecordKind, filters: Sequence[Filter]) -> int:
        ...

    @abstractmethod
    async def upsert(self, kind: RecordKind, fields: Record, conflict: Sequence[str]) -> Record:
        """Insert, or update the record whose `conflict` columns match."""
