"""Importance decay, archiving and purge policy."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from memory.evolution.cancellation import raise_if_cancelled
from memory.evolution.config import EvolutionConfig
from memory.evolution.results import DecayResult
from memory.stores.base import LinkFilter, LinkStore, MemoryFilter, MemoryStore
from memory.types import MemoryType


class DecayPolicy:
    """Lowers importance, archives faded memories and purges forgotten ones.

    Purge is conjunctive: a memory is deleted only when it is old by both
    creation and last access, was accessed at most once, and has almost no
    importance left.
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        link_store: LinkStore,
        config: EvolutionConfig,
        clock: Callable[[], datetime],
    ) -> None:
        self.memory_store = memory_store
        self.link_store = link_store
        self.config = config
        self.clock = clock

    def run(self, cancel_event: threading.Event | None = None) -> DecayResult:
        raise_if_cancelled(cancel_event, "decay")
        decayed = self.memory_store.bulk_update_importance(
            MemoryFilter(importance_gt=0.0), -self.config.decay_rate
        )

        raise_if_cancelled(cancel_event, "decay")
        archived = self.memory_store.bulk_set_type(
            MemoryFilter(
                importance_lte=self.config.archive_threshold,
                type_not=MemoryType.ARCHIVED,
            ),
            MemoryType.ARCHIVED,
        )

        raise_if_cancelled(cancel_event, "decay")
        cutoff = self.clock() - timedelta(days=self.config.max_memory_age_days)
        purge_ids = [
            memory.id
            for memory in self.memory_store.find_many(
                MemoryFilter(
                    created_before=cutoff,
                    last_accessed_before=cutoff,
                    access_count_lte=1,
                    importance_lte=self.config.purge_threshold,
                )
            )
        ]
        deleted = 0
        if purge_ids:
            self.link_store.delete_many(LinkFilter(memory_ids=purge_ids))
            deleted = self.memory_store.delete_many(MemoryFilter(ids=purge_ids))

        return DecayResult(decayed=decayed, archived=archived, deleted=deleted)
