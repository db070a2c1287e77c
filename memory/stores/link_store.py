"""SQLAlchemy-backed link store."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from memory.errors import NotFoundError
from memory.schemas import MemoryLinkRecord
from memory.stores.base import LinkFilter, LinkStore
from memory.stores.memory_store import as_utc
from memory.stores.sql_store import SQLStore
from memory.types import LinkType, MemoryLink, NewLink, utc_now


class SQLLinkStore(LinkStore):
    """LinkStore over the ``memory_links`` table, unique per (source, target, type)."""

    def __init__(self, sql_store: SQLStore) -> None:
        self.sql_store = sql_store

    def create(self, link: NewLink) -> MemoryLink:
        link = link.canonical()
        row = MemoryLinkRecord(
            source_id=link.source_id,
            target_id=link.target_id,
            link_type=link.link_type.value,
            strength=link.strength,
            similarity=link.similarity,
        )
        with self.sql_store.session() as sess:
            sess.add(row)
            sess.flush()
            return self._to_model(row)

    def create_many(self, links: Iterable[NewLink], skip_duplicates: bool = True) -> int:
        pending: dict[tuple[str, str, LinkType], NewLink] = {}
        for link in links:
            link = link.canonical()
            pending.setdefault(link.key(), link)
        if not pending:
            return 0
        with self.sql_store.session() as sess:
            if skip_duplicates:
                for key in self._existing_keys(sess, list(pending)):
                    pending.pop(key, None)
            sess.add_all(
                MemoryLinkRecord(
                    source_id=link.source_id,
                    target_id=link.target_id,
                    link_type=link.link_type.value,
                    strength=link.strength,
                    similarity=link.similarity,
                )
                for link in pending.values()
            )
        return len(pending)

    def find_one(self, flt: LinkFilter) -> MemoryLink | None:
        with self.sql_store.session() as sess:
            row = self._query(sess, flt).order_by(MemoryLinkRecord.created_at.asc()).first()
            return self._to_model(row) if row is not None else None

    def find_many(self, flt: LinkFilter) -> list[MemoryLink]:
        with self.sql_store.session() as sess:
            rows = self._query(sess, flt).order_by(
                MemoryLinkRecord.created_at.asc(), MemoryLinkRecord.id.asc()
            )
            return [self._to_model(row) for row in rows.all()]

    def update(
        self,
        link_id: str,
        strength: float | None = None,
        similarity: float | None = None,
    ) -> MemoryLink:
        with self.sql_store.session() as sess:
            row = sess.get(MemoryLinkRecord, link_id)
            if row is None:
                raise NotFoundError(f"Link {link_id} not found")
            if strength is not None:
                row.strength = strength
            if similarity is not None:
                row.similarity = similarity
            row.updated_at = utc_now()
            sess.flush()
            return self._to_model(row)

    def delete_many(self, flt: LinkFilter) -> int:
        with self.sql_store.session() as sess:
            return self._query(sess, flt).delete(synchronize_session=False)

    def count(self, flt: LinkFilter | None = None) -> int:
        with self.sql_store.session() as sess:
            return self._query(sess, flt or LinkFilter()).count()

    @staticmethod
    def _existing_keys(
        sess: Session, keys: list[tuple[str, str, LinkType]]
    ) -> set[tuple[str, str, LinkType]]:
        source_ids = {source for source, _, _ in keys}
        rows = (
            sess.query(
                MemoryLinkRecord.source_id,
                MemoryLinkRecord.target_id,
                MemoryLinkRecord.link_type,
            )
            .filter(MemoryLinkRecord.source_id.in_(source_ids))
            .all()
        )
        wanted = set(keys)
        return {
            (source, target, LinkType(link_type))
            for source, target, link_type in rows
            if (source, target, LinkType(link_type)) in wanted
        }

    @staticmethod
    def _query(sess: Session, flt: LinkFilter) -> Query:
        query = sess.query(MemoryLinkRecord)
        if flt.source_id is not None:
            query = query.filter(MemoryLinkRecord.source_id == flt.source_id)
        if flt.target_id is not None:
            query = query.filter(MemoryLinkRecord.target_id == flt.target_id)
        if flt.link_type is not None:
            query = query.filter(MemoryLinkRecord.link_type == flt.link_type.value)
        if flt.memory_id is not None:
            query = query.filter(
                or_(
                    MemoryLinkRecord.source_id == flt.memory_id,
                    MemoryLinkRecord.target_id == flt.memory_id,
                )
            )
        if flt.memory_ids is not None:
            ids = list(flt.memory_ids)
            query = query.filter(
                or_(MemoryLinkRecord.source_id.in_(ids), MemoryLinkRecord.target_id.in_(ids))
            )
        if flt.pair is not None:
            a, b = flt.pair
            query = query.filter(
                or_(
                    and_(MemoryLinkRecord.source_id == a, MemoryLinkRecord.target_id == b),
                    and_(MemoryLinkRecord.source_id == b, MemoryLinkRecord.target_id == a),
                )
            )
        return query

    @staticmethod
    def _to_model(row: MemoryLinkRecord) -> MemoryLink:
        return MemoryLink(
            id=row.id,
            source_id=row.source_id,
            target_id=row.target_id,
            link_type=LinkType(row.link_type),
            strength=row.strength,
            similarity=row.similarity,
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )
