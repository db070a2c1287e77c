"""SQLAlchemy-backed memory store.

Embeddings are persisted as native JSON float arrays. This adapter is the only
place that converts between stored values and vectors, and it validates on
both read and write so mixed representations cannot reach similarity code.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session

from memory.errors import InputError, NotFoundError, StoreError
from memory.schemas import AgentRecord, MemoryRecord
from memory.stores.base import MemoryFilter, MemoryStore
from memory.stores.sql_store import SQLStore
from memory.types import Memory, MemoryType, MemoryUpdate, NewMemory, utc_now

_ORDERABLE = {
    "importance": MemoryRecord.importance,
    "created_at": MemoryRecord.created_at,
    "updated_at": MemoryRecord.updated_at,
    "last_accessed": MemoryRecord.last_accessed,
    "access_count": MemoryRecord.access_count,
}


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite returns naive datetimes; every stored timestamp is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SQLMemoryStore(MemoryStore):
    """MemoryStore over the ``memories`` table."""

    def __init__(self, sql_store: SQLStore, embedding_dim: int | None = None) -> None:
        self.sql_store = sql_store
        self.embedding_dim = embedding_dim

    # ── embedding boundary ──────────────────────────────────────────

    def _encode_embedding(self, vector: list[float] | None) -> list[float] | None:
        if vector is None:
            return None
        if not all(_is_number(x) for x in vector):
            raise InputError("Embedding must contain only numbers")
        if self.embedding_dim is not None and len(vector) != self.embedding_dim:
            raise InputError(
                f"Embedding has {len(vector)} dimensions, expected {self.embedding_dim}"
            )
        return [float(x) for x in vector]

    def _decode_embedding(self, memory_id: str, raw: Any) -> list[float] | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            # Legacy rows stored the vector as serialized text.
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise StoreError(f"Memory {memory_id} has an unreadable embedding") from exc
        if not isinstance(raw, list) or not all(_is_number(x) for x in raw):
            raise StoreError(f"Memory {memory_id} has a malformed embedding")
        if self.embedding_dim is not None and len(raw) != self.embedding_dim:
            raise StoreError(
                f"Memory {memory_id} embedding has {len(raw)} dimensions, "
                f"expected {self.embedding_dim}"
            )
        return [float(x) for x in raw]

    # ── CRUD ────────────────────────────────────────────────────────

    def create(self, record: NewMemory) -> Memory:
        now = utc_now()
        row = MemoryRecord(
            agent_id=record.agent_id,
            session_id=record.session_id,
            content=record.content,
            type=record.type.value,
            embedding=self._encode_embedding(record.embedding),
            importance=record.importance,
            access_count=record.access_count,
            metadata_json=dict(record.metadata),
            created_at=record.created_at or now,
            updated_at=now,
            last_accessed=record.last_accessed or record.created_at or now,
        )
        with self.sql_store.session() as sess:
            sess.add(row)
            sess.flush()
            return self._to_model(row)

    def get_by_id(self, memory_id: str) -> Memory | None:
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            return self._to_model(row) if row is not None else None

    def update(self, memory_id: str, changes: MemoryUpdate) -> Memory:
        values = changes.changes()
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(f"Memory {memory_id} not found")
            if "content" in values:
                row.content = values["content"]
            if "type" in values:
                row.type = MemoryType(values["type"]).value
            if "embedding" in values:
                row.embedding = self._encode_embedding(values["embedding"])
            if "importance" in values:
                row.importance = values["importance"]
            if "access_count" in values:
                row.access_count = values["access_count"]
            if "metadata" in values:
                row.metadata_json = dict(values["metadata"])
            if "last_accessed" in values:
                row.last_accessed = values["last_accessed"]
            row.updated_at = utc_now()
            sess.flush()
            return self._to_model(row)

    def delete(self, memory_id: str) -> None:
        with self.sql_store.session() as sess:
            row = sess.get(MemoryRecord, memory_id)
            if row is None:
                raise NotFoundError(f"Memory {memory_id} not found")
            sess.delete(row)

    # ── bulk operations ─────────────────────────────────────────────

    def bulk_update_importance(self, flt: MemoryFilter, delta: float) -> int:
        shifted = MemoryRecord.importance + delta
        clamped = case((shifted < 0.0, 0.0), (shifted > 1.0, 1.0), else_=shifted)
        with self.sql_store.session() as sess:
            return self._query(sess, flt).update(
                {MemoryRecord.importance: clamped}, synchronize_session=False
            )

    def bulk_set_type(self, flt: MemoryFilter, memory_type: MemoryType) -> int:
        with self.sql_store.session() as sess:
            return self._query(sess, flt).update(
                {MemoryRecord.type: memory_type.value, MemoryRecord.updated_at: utc_now()},
                synchronize_session=False,
            )

    def delete_many(self, flt: MemoryFilter) -> int:
        with self.sql_store.session() as sess:
            return self._query(sess, flt).delete(synchronize_session=False)

    def find_many(
        self,
        flt: MemoryFilter,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Memory]:
        with self.sql_store.session() as sess:
            query = self._query(sess, flt)
            if order_by:
                descending = order_by.startswith("-")
                column = _ORDERABLE.get(order_by.lstrip("-"))
                if column is None:
                    raise InputError(f"Cannot order memories by '{order_by}'")
                query = query.order_by(column.desc() if descending else column.asc())
            # Stable secondary order keeps snapshots deterministic.
            query = query.order_by(MemoryRecord.created_at.asc(), MemoryRecord.id.asc())
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return [self._to_model(row) for row in query.all()]

    def count(self, flt: MemoryFilter) -> int:
        with self.sql_store.session() as sess:
            return self._query(sess, flt).count()

    def record_access(self, memory_ids: Iterable[str]) -> int:
        ids = list(memory_ids)
        if not ids:
            return 0
        with self.sql_store.session() as sess:
            return self._query(sess, MemoryFilter(ids=ids)).update(
                {
                    MemoryRecord.access_count: MemoryRecord.access_count + 1,
                    MemoryRecord.last_accessed: utc_now(),
                },
                synchronize_session=False,
            )

    def stats(self, agent_id: str | None = None) -> list[dict[str, Any]]:
        with self.sql_store.session() as sess:
            query = sess.query(
                MemoryRecord.type,
                func.count(MemoryRecord.id),
                func.avg(MemoryRecord.importance),
                func.avg(MemoryRecord.access_count),
            )
            if agent_id is not None:
                query = query.filter(MemoryRecord.agent_id == agent_id)
            rows = query.group_by(MemoryRecord.type).order_by(MemoryRecord.type).all()
        return [
            {
                "type": memory_type,
                "count": int(count),
                "avg_importance": float(avg_importance or 0.0),
                "avg_access_count": float(avg_access or 0.0),
            }
            for memory_type, count, avg_importance, avg_access in rows
        ]

    def agent_exists(self, agent_id: str) -> bool:
        with self.sql_store.session() as sess:
            return sess.get(AgentRecord, agent_id) is not None

    # ── helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _query(sess: Session, flt: MemoryFilter) -> Query:
        query = sess.query(MemoryRecord)
        if flt.agent_id is not None:
            query = query.filter(MemoryRecord.agent_id == flt.agent_id)
        if flt.type is not None:
            query = query.filter(MemoryRecord.type == flt.type.value)
        if flt.type_in is not None:
            query = query.filter(MemoryRecord.type.in_([t.value for t in flt.type_in]))
        if flt.type_not is not None:
            query = query.filter(MemoryRecord.type != flt.type_not.value)
        if flt.has_embedding is True:
            query = query.filter(MemoryRecord.embedding.is_not(None))
        elif flt.has_embedding is False:
            query = query.filter(MemoryRecord.embedding.is_(None))
        if flt.ids is not None:
            query = query.filter(MemoryRecord.id.in_(list(flt.ids)))
        if flt.exclude_ids:
            query = query.filter(MemoryRecord.id.not_in(list(flt.exclude_ids)))
        if flt.created_before is not None:
            query = query.filter(MemoryRecord.created_at < flt.created_before)
        if flt.last_accessed_before is not None:
            query = query.filter(MemoryRecord.last_accessed < flt.last_accessed_before)
        if flt.access_count_lte is not None:
            query = query.filter(MemoryRecord.access_count <= flt.access_count_lte)
        if flt.importance_gt is not None:
            query = query.filter(MemoryRecord.importance > flt.importance_gt)
        if flt.importance_gte is not None:
            query = query.filter(MemoryRecord.importance >= flt.importance_gte)
        if flt.importance_lte is not None:
            query = query.filter(MemoryRecord.importance <= flt.importance_lte)
        return query

    def _to_model(self, row: MemoryRecord) -> Memory:
        return Memory(
            id=row.id,
            agent_id=row.agent_id,
            session_id=row.session_id,
            content=row.content,
            type=MemoryType(row.type),
            embedding=self._decode_embedding(row.id, row.embedding),
            importance=row.importance,
            access_count=row.access_count,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
            last_accessed=as_utc(row.last_accessed),
            metadata=dict(row.metadata_json or {}),
        )
