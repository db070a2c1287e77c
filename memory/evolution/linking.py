"""Semantic link maintenance across the active corpus."""

from __future__ import annotations

import threading

from memory.evolution.cancellation import raise_if_cancelled
from memory.evolution.config import EvolutionConfig
from memory.evolution.results import LinkUpdateResult
from memory.stores.base import LinkFilter, LinkStore, MemoryFilter, MemoryStore
from memory.stores.vector_store import SimilarityIndex
from memory.types import LinkType, MemoryType, NewLink


class LinkMaintainer:
    """Creates or refreshes SEMANTIC links between similar active memories.

    Quadratic in corpus size: every memory is scanned against the snapshot.
    """

    def __init__(self, memory_store: MemoryStore, link_store: LinkStore, config: EvolutionConfig) -> None:
        self.memory_store = memory_store
        self.link_store = link_store
        self.config = config

    def run(self, cancel_event: threading.Event | None = None) -> LinkUpdateResult:
        memories = self.memory_store.find_many(
            MemoryFilter(type_not=MemoryType.ARCHIVED, has_embedding=True)
        )
        index = SimilarityIndex((memory.id, memory.embedding, {}) for memory in memories)

        created = 0
        updated = 0
        for memory in memories:
            raise_if_cancelled(cancel_event, "links")
            hits = index.search(
                memory.embedding,
                exclude_id=memory.id,
                threshold=self.config.similarity_threshold,
                limit=self.config.link_limit,
            )
            for hit in hits:
                existing = self.link_store.find_one(
                    LinkFilter(pair=(memory.id, hit.id), link_type=LinkType.SEMANTIC)
                )
                if existing is not None:
                    self.link_store.update(
                        existing.id, strength=hit.similarity, similarity=hit.similarity
                    )
                    updated += 1
                else:
                    self.link_store.create(
                        NewLink(
                            source_id=memory.id,
                            target_id=hit.id,
                            link_type=LinkType.SEMANTIC,
                            strength=hit.similarity,
                            similarity=hit.similarity,
                        )
                    )
                    created += 1
        return LinkUpdateResult(links_created=created, links_updated=updated)
