"""Near-duplicate consolidation into representative memories."""

from __future__ import annotations

import math
import threading
from collections.abc import Callable
from datetime import datetime

from memory.evolution.cancellation import raise_if_cancelled
from memory.evolution.config import EvolutionConfig
from memory.evolution.results import ConsolidationResult
from memory.stores.base import LinkStore, MemoryFilter, MemoryStore
from memory.types import LinkType, Memory, MemoryType, MemoryUpdate, NewLink
from memory.vector_math import cosine_similarity

ContentMerger = Callable[[list[str]], str]

# Member of a group paired with its similarity to the group's seed.
GroupMember = tuple[Memory, float]

CONTENT_SEPARATOR = "\n\n---\n\n"


def join_distinct_contents(contents: list[str]) -> str:
    """Join distinct contents in order; a single distinct content is kept as is."""
    unique = list(dict.fromkeys(contents))
    if len(unique) == 1:
        return unique[0]
    return CONTENT_SEPARATOR.join(unique)


def consolidation_rank(memory: Memory) -> float:
    """Score used to pick a group's primary memory."""
    return memory.importance * math.log(memory.access_count + 1)


def group_similar(memories: list[Memory], threshold: float) -> tuple[list[list[GroupMember]], int]:
    """Greedily group memories around seeds taken in list order.

    Each memory joins at most one group; earlier (more important) memories
    choose first. Returns the groups of size >= 2 and the number of memories
    examined.
    """
    groups: list[list[GroupMember]] = []
    claimed: set[str] = set()
    for index, seed in enumerate(memories):
        if seed.id in claimed:
            continue
        matches: list[GroupMember] = []
        for other in memories[index + 1 :]:
            if other.id in claimed:
                continue
            similarity = cosine_similarity(seed.embedding, other.embedding)
            if similarity >= threshold:
                matches.append((other, similarity))
        claimed.add(seed.id)
        if matches:
            claimed.update(member.id for member, _ in matches)
            groups.append([(seed, 1.0), *matches])
    return groups, len(claimed)


class ConsolidationPolicy:
    """Merges groups of similar memories into their primary member."""

    def __init__(
        self,
        memory_store: MemoryStore,
        link_store: LinkStore,
        config: EvolutionConfig,
        clock: Callable[[], datetime],
        merge_contents: ContentMerger = join_distinct_contents,
    ) -> None:
        self.memory_store = memory_store
        self.link_store = link_store
        self.config = config
        self.clock = clock
        self.merge_contents = merge_contents

    def run(
        self,
        agent_id: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ConsolidationResult:
        memories = self.memory_store.find_many(
            MemoryFilter(agent_id=agent_id, type_not=MemoryType.ARCHIVED, has_embedding=True),
            order_by="-importance",
        )
        groups, processed = group_similar(memories, self.config.consolidation_threshold)
        for group in groups:
            raise_if_cancelled(cancel_event, "consolidation")
            self.consolidate_group(group)
        return ConsolidationResult(consolidated=len(groups), total_processed=processed)

    def consolidate_group(self, group: list[GroupMember]) -> Memory:
        """Fold ``group`` into its best-ranked member and archive the rest."""
        ranked = sorted(group, key=lambda pair: consolidation_rank(pair[0]), reverse=True)
        primary = ranked[0][0]
        secondaries = ranked[1:]
        members = [memory for memory, _ in ranked]
        stamp = self.clock().isoformat()

        updated = self.memory_store.update(
            primary.id,
            MemoryUpdate(
                content=self.merge_contents([memory.content for memory in members]),
                importance=min(1.0, sum(m.importance for m in members) / len(members)),
                access_count=sum(m.access_count for m in members),
                metadata={
                    **primary.metadata,
                    "consolidated": True,
                    "originalCount": len(members),
                    "consolidatedAt": stamp,
                },
            ),
        )

        self.link_store.create_many(
            [
                NewLink(
                    source_id=primary.id,
                    target_id=memory.id,
                    link_type=LinkType.HIERARCHICAL,
                    strength=1.0,
                    similarity=similarity,
                )
                for memory, similarity in secondaries
            ],
            skip_duplicates=True,
        )

        for memory, _ in secondaries:
            self.memory_store.update(
                memory.id,
                MemoryUpdate(
                    type=MemoryType.ARCHIVED,
                    metadata={
                        **memory.metadata,
                        "consolidatedInto": primary.id,
                        "consolidatedAt": stamp,
                    },
                ),
            )
        return updated
