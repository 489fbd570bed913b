"""Gateway adapter over Supabase (PostgREST) tables."""
import logging
from typing import List, Optional, Sequence

from supabase import AsyncClient

from app.core.exceptions import NotFoundError, PersistenceError
from app.database.gateway import Filter, Gateway, Order, Record, RecordKind, decode_record

logger = logging.getLogger(__name__)


def _apply_filters(query, filters: Sequence[Filter]):
    for f in filters:
        if f.op == "eq":
            query = query.eq(f.field, f.value)
        elif f.op == "contains":
            query = query.contains(f.field, [f.value])
        else:
            raise ValueError(f"Unsupported filter op: {f.op}")
    return query


class SupabaseGateway(Gateway):
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def create(self, kind: RecordKind, fields: Record) -> Record:
        try:
            result = await self.supabase.table(kind.value).insert(fields).execute()
        except Exception as e:
            logger.error(f"Insert into {kind.value} failed: {e}")
            raise PersistenceError(f"Failed to create {kind.value} record")
        if not result.data:
            raise PersistenceError(f"Failed to create {kind.value} record")
        return decode_record(result.data[0])

    async def get(self, kind: RecordKind, record_id: str) -> Record:
        try:
            result = await self.supabase.table(kind.value)\
                .select("*")\
                .eq("id", record_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Fetch {kind.value}/{record_id} failed: {e}")
            raise PersistenceError(f"Failed to fetch {kind.value} record")
        if not result.data:
            raise NotFoundError(f"{kind.label} not found")
        return decode_record(result.data[0])

    async def update(self, kind: RecordKind, record_id: str, fields: Record) -> Record:
        try:
            result = await self.supabase.table(kind.value)\
                .update(fields)\
                .eq("id", record_id)\
                .execute()
        except Exception as e:
            logger.error(f"Update {kind.value}/{record_id} failed: {e}")
            raise PersistenceError(f"Failed to update {kind.value} record")
        if not result.data:
            raise NotFoundError(f"{kind.label} not found")
        return decode_record(result.data[0])

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        try:
            await self.supabase.table(kind.value)\
                .delete()\
                .eq("id", record_id)\
                .execute()
        except Exception as e:
            logger.error(f"Delete {kind.value}/{record_id} failed: {e}")
            raise PersistenceError(f"Failed to delete {kind.value} record")

    async def list(
        self,
        kind: RecordKind,
        filters: Sequence[Filter] = (),
        order: Optional[Order] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        try:
            query = _apply_filters(self.supabase.table(kind.value).select("*"), filters)
            if order is not None:
                query = query.order(order.field, desc=order.desc)
            if limit is not None:
                query = query.limit(limit)
            result = await query.execute()
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"List {kind.value} failed: {e}")
            raise PersistenceError(f"Failed to list {kind.value}")
        return [decode_record(row) for row in (result.data or [])]

    async def update_where(self, kind: RecordKind, filters: Sequence[Filter], fields: Record) -> List[Record]:
        try:
            query = _apply_filters(self.supabase.table(kind.value).update(fields), filters)
            result = await query.execute()
        except Exception as e:
            logger.error(f"Bulk update on {kind.value} failed: {e}")
            raise PersistenceError(f"Failed to update {kind.value}")
        return [decode_record(row) for row in (result.data or [])]

    async def delete_where(self, kind: RecordKind, filters: Sequence[Filter]) -> int:
        try:
            query = _apply_filters(self.supabase.table(kind.value).delete(), filters)
            result = await query.execute()
        except Exception as e:
            logger.error(f"Bulk delete on {kind.value} failed: {e}")
            raise PersistenceError(f"Failed to delete {kind.value}")
        return len(result.data or [])

    async def upsert(self, kind: RecordKind, fields: Record, conflict: Sequence[str]) -> Record:
        try:
            result = await self.supabase.table(kind.value)\
                .upsert(fields, on_conflict=",".join(conflict))\
                .execute()
        except Exception as e:
            logger.error(f"Upsert into {kind.value} failed: {e}")
            raise PersistenceError(f"Failed to save {kind.value} record")
        if not result.data:
            raise PersistenceError(f"Failed to save {kind.value} record")
        return decode_record(result.data[0])
