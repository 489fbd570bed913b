"""In-process gateway used for local runs (persistence_backend=memory) and tests."""
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence

from app.core.exceptions import NotFoundError
from app.database.gateway import Filter, Gateway, Order, Record, RecordKind, decode_record


def _matches(record: Record, filters: Sequence[Filter]) -> bool:
    for f in filters:
        value = record.get(f.field)
        if f.op == "eq":
            if value != f.value:
                return False
        elif f.op == "contains":
            if not isinstance(value, list) or f.value not in value:
                return False
        else:
            raise ValueError(f"Unsupported filter op: {f.op}")
    return True


class MemoryGateway(Gateway):
    """Dict-backed tables. No statement here awaits, so each call runs to
    completion on the event loop without interleaving."""

    def __init__(self):
        self._tables: Dict[RecordKind, Dict[str, Record]] = {kind: {} for kind in RecordKind}
        self._last_created: Optional[datetime] = None

    def _now(self) -> datetime:
        # strictly increasing so created_at ordering never ties
        now = datetime.now(timezone.utc)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now

    def _out(self, record: Record) -> Record:
        return decode_record(copy.deepcopy(record))

    async def create(self, kind: RecordKind, fields: Record) -> Record:
        record = copy.deepcopy(fields)
        record.setdefault("id", str(uuid.uuid4()))
        record.setdefault("created_at", self._now())
        self._tables[kind][record["id"]] = record
        return self._out(record)

    async def get(self, kind: RecordKind, record_id: str) -> Record:
        record = self._tables[kind].get(record_id)
        if record is None:
            raise NotFoundError(f"{kind.label} not found")
        return self._out(record)

    async def update(self, kind: RecordKind, record_id: str, fields: Record) -> Record:
        record = self._tables[kind].get(record_id)
        if record is None:
            raise NotFoundError(f"{kind.label} not found")
        record.update(copy.deepcopy(fields))
        return self._out(record)

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        self._tables[kind].pop(record_id, None)

    async def list(
        self,
        kind: RecordKind,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        rows = [r for r in self._tables[kind].values() if _matches(r, filters)]
        if order is not None:
            rows = sorted(rows, key=lambda r: r.get(order.field), reverse=order.desc)
        if limit is not None:
            rows = rows[:limit]
        return [self._out(r) for r in rows]

    async def update_where(self, kind: RecordKind, filters: Sequence[Filter], fields: Record) -> List[Record]:
        updated = []
        for record in self._tables[kind].values():
            if _matches(record, filters):
                record.update(copy.deepcopy(fields))
                updated.append(self._out(record))
        return updated

    async def delete_where(self, kind: RecordKind, filters: Sequence[Filter]) -> int:
        doomed = [rid for rid, r in self._tables[kind].items() if _matches(r, filters)]
        for rid in doomed:
            del self._tables[kind][rid]
        return len(doomed)

    async def upsert(self, kind: RecordKind, fields: Record, conflict: Sequence[str]) -> Record:
        key = [Filter.eq(column, fields[column]) for column in conflict]
        for record in self._tables[kind].values():
            if _matches(record, key):
                record.update(copy.deepcopy(fields))
                return self._out(record)
        return await self.create(kind, fields)

    def count(self, kind: RecordKind, filters: Sequence[Filter] = ()) -> int:
        return sum(1 for r in self._tables[kind].values() if _matches(r, filters))
