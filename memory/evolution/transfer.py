"""Deduplicated knowledge copy between agents."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import datetime

from embedding.base_embedder import BaseEmbedder
from memory.errors import InputError, NotFoundError
from memory.evolution.cancellation import raise_if_cancelled
from memory.evolution.config import EvolutionConfig
from memory.evolution.results import TransferResult
from memory.stores.base import MemoryFilter, MemoryStore
from memory.stores.vector_store import find_similar
from memory.types import Memory, MemoryType, NewMemory

DEFAULT_TRANSFER_TYPES: tuple[MemoryType, ...] = (MemoryType.SEMANTIC, MemoryType.PROCEDURAL)


class KnowledgeTransfer:
    """Copies worthwhile memories into another agent unless it already knows them.

    The source corpus is never modified.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        embedder: BaseEmbedder,
        config: EvolutionConfig,
        clock: Callable[[], datetime],
    ) -> None:
        self.memory_store = memory_store
        self.embedder = embedder
        self.config = config
        self.clock = clock

    def run(
        self,
        source_agent_id: str,
        target_agent_id: str,
        memory_types: Sequence[MemoryType] = DEFAULT_TRANSFER_TYPES,
        cancel_event: threading.Event | None = None,
    ) -> TransferResult:
        if source_agent_id == target_agent_id:
            raise InputError("Source and target agents must differ")
        for agent_id in (source_agent_id, target_agent_id):
            if not self.memory_store.agent_exists(agent_id):
                raise NotFoundError(f"Agent {agent_id} not found")
        candidates = self.memory_store.find_many(
            MemoryFilter(
                agent_id=source_agent_id,
                type_in=tuple(memory_types),
                importance_gte=self.config.transfer_min_importance,
            ),
            order_by="-importance",
        )

        transferred = 0
        for memory in candidates:
            raise_if_cancelled(cancel_event, "transfer")
            vector = memory.embedding or self.embedder.embed(memory.content)
            if self._already_known(target_agent_id, memory.type, vector):
                continue
            self.memory_store.create(
                NewMemory(
                    agent_id=target_agent_id,
                    content=memory.content,
                    type=memory.type,
                    importance=memory.importance * self.config.transfer_importance_factor,
                    embedding=vector,
                    metadata={
                        **memory.metadata,
                        "transferred": True,
                        "sourceAgentId": source_agent_id,
                        "originalMemoryId": memory.id,
                        "transferredAt": self.clock().isoformat(),
                    },
                )
            )
            transferred += 1
        return TransferResult(transferred=transferred, total_source_memories=len(candidates))

    def _already_known(self, agent_id: str, memory_type: MemoryType, vector: list[float]) -> bool:
        known: list[Memory] = self.memory_store.find_many(
            MemoryFilter(agent_id=agent_id, type=memory_type, has_embedding=True)
        )
        hits = find_similar(
            vector,
            ((m.id, m.embedding, {}) for m in known),
            threshold=self.config.similarity_threshold,
            limit=1,
        )
        return bool(hits)
