"""Memory evolution orchestrator."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime

from embedding.base_embedder import BaseEmbedder
from memory.errors import PhaseInProgressError
from memory.evolution.config import EvolutionConfig
from memory.evolution.consolidation import (
    ConsolidationPolicy,
    ContentMerger,
    join_distinct_contents,
)
from memory.evolution.decay import DecayPolicy
from memory.evolution.linking import LinkMaintainer
from memory.evolution.results import (
    ConsolidationResult,
    DecayResult,
    EvolutionCycleResult,
    LinkUpdateResult,
    TransferResult,
)
from memory.evolution.transfer import DEFAULT_TRANSFER_TYPES, KnowledgeTransfer
from memory.stores.base import LinkStore, MemoryStore
from memory.types import MemoryType, utc_now

logger = logging.getLogger("mw.evolution")

PHASES = ("decay", "consolidation", "links", "transfer", "cycle")


class EvolutionEngine:
    """Runs decay, consolidation, link maintenance and knowledge transfer.

    Each entry point is a sequential batch job over a snapshot fetched when the
    phase starts. At most one phase of each kind runs at a time in this
    process; a concurrent call of the same kind raises PhaseInProgressError.
    Failures abort the phase and propagate. Writes already committed stay.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        link_store: LinkStore,
        embedder: BaseEmbedder,
        config: EvolutionConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
        merge_contents: ContentMerger = join_distinct_contents,
    ) -> None:
        self.memory_store = memory_store
        self.link_store = link_store
        self.embedder = embedder
        self.config = config or EvolutionConfig()
        self.decay_policy = DecayPolicy(memory_store, link_store, self.config, clock)
        self.consolidation_policy = ConsolidationPolicy(
            memory_store, link_store, self.config, clock, merge_contents=merge_contents
        )
        self.link_maintainer = LinkMaintainer(memory_store, link_store, self.config)
        self.knowledge_transfer = KnowledgeTransfer(memory_store, embedder, self.config, clock)
        self._locks = {phase: threading.Lock() for phase in PHASES}

    @contextmanager
    def _exclusive(self, phase: str) -> Iterator[None]:
        lock = self._locks[phase]
        if not lock.acquire(blocking=False):
            raise PhaseInProgressError(phase)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, phase: str) -> bool:
        return self._locks[phase].locked()

    def decay_memories(self, cancel_event: threading.Event | None = None) -> DecayResult:
        """Decay importance, archive faded memories, purge forgotten ones."""
        with self._exclusive("decay"):
            logger.info("Starting memory decay (rate=%.4f)", self.config.decay_rate)
            result = self.decay_policy.run(cancel_event=cancel_event)
            logger.info(
                "Memory decay completed: %d decayed, %d archived, %d deleted",
                result.decayed,
                result.archived,
                result.deleted,
            )
            return result

    def consolidate_similar_memories(
        self,
        agent_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConsolidationResult:
        """Merge near-duplicate active memories, optionally for one agent."""
        with self._exclusive("consolidation"):
            logger.info(
                "Starting memory consolidation (threshold=%.2f, agent=%s)",
                self.config.consolidation_threshold,
                agent_id or "*",
            )
            result = self.consolidation_policy.run(agent_id=agent_id, cancel_event=cancel_event)
            logger.info(
                "Memory consolidation completed: %d groups consolidated, %d memories processed",
                result.consolidated,
                result.total_processed,
            )
            return result

    def update_memory_links(self, cancel_event: threading.Event | None = None) -> LinkUpdateResult:
        """Create or refresh SEMANTIC links between similar active memories."""
        with self._exclusive("links"):
            logger.info("Starting memory link update")
            result = self.link_maintainer.run(cancel_event=cancel_event)
            logger.info(
                "Memory link update completed: %d created, %d updated",
                result.links_created,
                result.links_updated,
            )
            return result

    def transfer_knowledge(
        self,
        source_agent_id: str,
        target_agent_id: str,
        memory_types: Sequence[MemoryType] = DEFAULT_TRANSFER_TYPES,
        cancel_event: threading.Event | None = None,
    ) -> TransferResult:
        """Copy important memories the target agent does not already know."""
        with self._exclusive("transfer"):
            logger.info(
                "Starting knowledge transfer from agent %s to agent %s",
                source_agent_id,
                target_agent_id,
            )
            result = self.knowledge_transfer.run(
                source_agent_id,
                target_agent_id,
                memory_types=memory_types,
                cancel_event=cancel_event,
            )
            logger.info(
                "Knowledge transfer completed: %d of %d memories transferred",
                result.transferred,
                result.total_source_memories,
            )
            return result

    def run_evolution_cycle(self, cancel_event: threading.Event | None = None) -> EvolutionCycleResult:
        """Decay, then consolidation, then link update. A failing phase stops the rest."""
        with self._exclusive("cycle"):
            logger.info("Starting memory evolution cycle")
            result = EvolutionCycleResult(
                decay=self.decay_memories(cancel_event=cancel_event),
                consolidation=self.consolidate_similar_memories(cancel_event=cancel_event),
                link_update=self.update_memory_links(cancel_event=cancel_event),
            )
            logger.info("Memory evolution cycle completed: %s", result.as_dict())
            return result
