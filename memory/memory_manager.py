"""High-level memory service over SQL stores and the embedder."""

from __future__ import annotations

import logging
from typing import Any

from embedding.base_embedder import BaseEmbedder
from memory.errors import InputError, NotFoundError
from memory.schemas import AgentRecord, MemoryLinkRecord, MemoryRecord, SessionRecord
from memory.stores.base import LinkFilter, LinkStore, MemoryFilter, MemoryStore
from memory.stores.memory_store import as_utc
from memory.stores.sql_store import SQLStore
from memory.stores.vector_store import SimilarityHit, find_similar
from memory.types import (
    Agent,
    AgentSession,
    LinkType,
    Memory,
    MemoryType,
    MemoryUpdate,
    NewLink,
    NewMemory,
    utc_now,
)

logger = logging.getLogger("mw.memory")


class MemoryManager:
    """Agents, sessions and memories with embedding-based linking and search."""

    def __init__(
        self,
        sql_store: SQLStore,
        memory_store: MemoryStore,
        link_store: LinkStore,
        embedder: BaseEmbedder,
        link_threshold: float = 0.3,
    ) -> None:
        self.sql_store = sql_store
        self.sql_store.create_all()
        self.memory_store = memory_store
        self.link_store = link_store
        self.embedder = embedder
        self.link_threshold = link_threshold

    # ── agents ──────────────────────────────────────────────────────

    def create_agent(
        self,
        name: str,
        agent_type: str = "AI_AGENT",
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Agent:
        """Insert agent record."""
        if not name.strip():
            raise InputError("Agent name must not be empty")
        record = AgentRecord(
            name=name.strip(),
            type=agent_type,
            description=description,
            metadata_json=metadata or {},
        )
        with self.sql_store.session() as sess:
            sess.add(record)
            sess.flush()
            agent = self._agent_to_model(record)
        logger.info("Created agent %s: %s", agent.id, agent.name)
        return agent

    def get_agent(self, agent_id: str) -> Agent:
        with self.sql_store.session() as sess:
            row = sess.get(AgentRecord, agent_id)
            if row is None:
                raise NotFoundError(f"Agent {agent_id} not found")
            return self._agent_to_model(row)

    def list_agents(self, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """List agents newest first with pagination info."""
        page = max(1, page)
        limit = max(1, limit)
        with self.sql_store.session() as sess:
            total = sess.query(AgentRecord).count()
            rows = (
                sess.query(AgentRecord)
                .order_by(AgentRecord.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            agents = [self._agent_to_model(row) for row in rows]
        return {
            "agents": agents,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": -(-total // limit),
            },
        }

    def update_agent(
        self,
        agent_id: str,
        name: str | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Agent:
        with self.sql_store.session() as sess:
            row = sess.get(AgentRecord, agent_id)
            if row is None:
                raise NotFoundError(f"Agent {agent_id} not found")
            if name:
                row.name = name
            if description is not None:
                row.description = description
            if metadata is not None:
                row.metadata_json = metadata
            row.updated_at = utc_now()
            sess.flush()
            agent = self._agent_to_model(row)
        logger.info("Updated agent %s", agent_id)
        return agent

    def delete_agent(self, agent_id: str) -> None:
        """Delete an agent with its sessions, memories and their links."""
        with self.sql_store.session() as sess:
            row = sess.get(AgentRecord, agent_id)
            if row is None:
                raise NotFoundError(f"Agent {agent_id} not found")
            memory_ids = [
                memory_id
                for (memory_id,) in sess.query(MemoryRecord.id)
                .filter(MemoryRecord.agent_id == agent_id)
                .all()
            ]
            if memory_ids:
                sess.query(MemoryLinkRecord).filter(
                    MemoryLinkRecord.source_id.in_(memory_ids)
                    | MemoryLinkRecord.target_id.in_(memory_ids)
                ).delete(synchronize_session=False)
            sess.query(MemoryRecord).filter(MemoryRecord.agent_id == agent_id).delete(
                synchronize_session=False
            )
            sess.query(SessionRecord).filter(SessionRecord.agent_id == agent_id).delete(
                synchronize_session=False
            )
            sess.delete(row)
        logger.info("Deleted agent %s", agent_id)

    # ── sessions ────────────────────────────────────────────────────

    def start_session(
        self,
        agent_id: str,
        name: str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> AgentSession:
        self.get_agent(agent_id)
        record = SessionRecord(
            agent_id=agent_id,
            name=name,
            description=description,
            metadata_json=metadata or {},
        )
        with self.sql_store.session() as sess:
            sess.add(record)
            sess.flush()
            session = self._session_to_model(record)
        logger.info("Created session %s for agent %s", session.id, agent_id)
        return session

    def end_session(self, session_id: str) -> AgentSession:
        with self.sql_store.session() as sess:
            row = sess.get(SessionRecord, session_id)
            if row is None:
                raise NotFoundError(f"Session {session_id} not found")
            row.is_active = False
            row.ended_at = utc_now()
            sess.flush()
            return self._session_to_model(row)

    def list_sessions(self, agent_id: str, limit: int = 20) -> list[AgentSession]:
        with self.sql_store.session() as sess:
            rows = (
                sess.query(SessionRecord)
                .filter(SessionRecord.agent_id == agent_id)
                .order_by(SessionRecord.started_at.desc())
                .limit(limit)
                .all()
            )
            return [self._session_to_model(row) for row in rows]

    # ── memories ────────────────────────────────────────────────────

    def create_memory(
        self,
        agent_id: str,
        content: str,
        memory_type: MemoryType = MemoryType.EPISODIC,
        session_id: str | None = None,
        importance: float = 0.5,
        metadata: dict[str, Any] | None = None,
    ) -> Memory:
        """Embed ``content``, store it, and link it to similar active memories."""
        if not content.strip():
            raise InputError("Memory content must not be empty")
        self.get_agent(agent_id)
        if session_id is not None:
            self._check_session(session_id, agent_id)
        embedding = self.embedder.embed(content)
        memory = self.memory_store.create(
            NewMemory(
                agent_id=agent_id,
                session_id=session_id,
                content=content,
                type=memory_type,
                importance=importance,
                embedding=embedding,
                metadata=metadata or {},
            )
        )
        self._link_semantically(memory)
        logger.info("Created memory %s for agent %s", memory.id, agent_id)
        return memory

    def get_memory(self, memory_id: str) -> Memory:
        """Return a memory and count the read as an access."""
        if self.memory_store.record_access([memory_id]) == 0:
            raise NotFoundError(f"Memory {memory_id} not found")
        memory = self.memory_store.get_by_id(memory_id)
        if memory is None:
            raise NotFoundError(f"Memory {memory_id} not found")
        return memory

    def get_memory_links(self, memory_id: str) -> list[dict[str, Any]]:
        return [link.model_dump() for link in self.link_store.find_many(LinkFilter(memory_id=memory_id))]

    def update_memory(
        self,
        memory_id: str,
        content: str | None = None,
        memory_type: MemoryType | None = None,
        importance: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Memory:
        """Partial update. New content is re-embedded and its SEMANTIC links rebuilt."""
        changes: dict[str, Any] = {}
        if content:
            changes["content"] = content
            changes["embedding"] = self.embedder.embed(content)
        if memory_type is not None:
            changes["type"] = memory_type
        if importance is not None:
            changes["importance"] = importance
        if metadata is not None:
            changes["metadata"] = metadata
        memory = self.memory_store.update(memory_id, MemoryUpdate(**changes))
        if content:
            self.link_store.delete_many(
                LinkFilter(memory_id=memory_id, link_type=LinkType.SEMANTIC)
            )
            self._link_semantically(memory)
        logger.info("Updated memory %s", memory_id)
        return memory

    def delete_memory(self, memory_id: str) -> None:
        """Delete a memory and every link touching it."""
        if self.memory_store.get_by_id(memory_id) is None:
            raise NotFoundError(f"Memory {memory_id} not found")
        self.link_store.delete_many(LinkFilter(memory_id=memory_id))
        self.memory_store.delete(memory_id)
        logger.info("Deleted memory %s", memory_id)

    def search_memories(
        self,
        agent_id: str,
        query: str,
        memory_type: MemoryType | None = None,
        limit: int = 10,
        offset: int = 0,
        min_similarity: float | None = None,
    ) -> dict[str, Any]:
        """Semantic search within one agent's corpus. Returned hits count as accesses."""
        threshold = self.link_threshold if min_similarity is None else min_similarity
        query_vector = self.embedder.embed(query)
        candidates = self.memory_store.find_many(
            MemoryFilter(agent_id=agent_id, type=memory_type, has_embedding=True)
        )
        by_id = {memory.id: memory for memory in candidates}
        hits = find_similar(
            query_vector,
            ((memory.id, memory.embedding, {}) for memory in candidates),
            threshold=threshold,
        )
        page = hits[offset : offset + limit]
        self.memory_store.record_access(hit.id for hit in page)
        return {
            "memories": [self._hit_payload(by_id[hit.id], hit) for hit in page],
            "total": len(hits),
            "query": query,
            "timestamp": utc_now(),
        }

    def memory_stats(self, agent_id: str | None = None) -> dict[str, Any]:
        total = self.memory_store.count(MemoryFilter(agent_id=agent_id))
        return {
            "total_memories": total,
            "total_links": self.link_store.count(),
            "by_type": self.memory_store.stats(agent_id),
            "timestamp": utc_now(),
        }

    # ── helpers ─────────────────────────────────────────────────────

    def _check_session(self, session_id: str, agent_id: str) -> None:
        with self.sql_store.session() as sess:
            row = sess.get(SessionRecord, session_id)
            if row is None:
                raise NotFoundError(f"Session {session_id} not found")
            if row.agent_id != agent_id:
                raise InputError(f"Session {session_id} belongs to another agent")

    def _link_semantically(self, memory: Memory) -> int:
        if not memory.embedding:
            return 0
        peers = self.memory_store.find_many(
            MemoryFilter(
                type_not=MemoryType.ARCHIVED,
                has_embedding=True,
                exclude_ids=[memory.id],
            )
        )
        hits = find_similar(
            memory.embedding,
            ((peer.id, peer.embedding, {}) for peer in peers),
            threshold=self.link_threshold,
        )
        created = self.link_store.create_many(
            [
                NewLink(
                    source_id=memory.id,
                    target_id=hit.id,
                    link_type=LinkType.SEMANTIC,
                    strength=hit.similarity,
                    similarity=hit.similarity,
                )
                for hit in hits
            ],
            skip_duplicates=True,
        )
        if created:
            logger.info("Created %d semantic links for memory %s", created, memory.id)
        return created

    @staticmethod
    def _hit_payload(memory: Memory, hit: SimilarityHit) -> dict[str, Any]:
        payload = memory.model_dump(exclude={"embedding"})
        payload["similarity"] = hit.similarity
        return payload

    @staticmethod
    def _agent_to_model(row: AgentRecord) -> Agent:
        return Agent(
            id=row.id,
            name=row.name,
            type=row.type,
            description=row.description,
            metadata=dict(row.metadata_json or {}),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )

    @staticmethod
    def _session_to_model(row: SessionRecord) -> AgentSession:
        return AgentSession(
            id=row.id,
            agent_id=row.agent_id,
            name=row.name,
            description=row.description,
            metadata=dict(row.metadata_json or {}),
            is_active=row.is_active,
            started_at=as_utc(row.started_at),
            ended_at=as_utc(row.ended_at),
        )
