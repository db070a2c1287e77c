"""Evolution cycle, phase exclusion and cancellation tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from embedding.providers.mock_embedder import HashingEmbedder
from memory.errors import EvolutionCancelled, PhaseInProgressError
from memory.evolution import EvolutionEngine, join_distinct_contents
from memory.evolution.consolidation import ContentMerger
from memory.memory_manager import MemoryManager
from memory.stores.link_store import SQLLinkStore
from memory.stores.memory_store import SQLMemoryStore
from memory.stores.sql_store import SQLStore
from memory.types import MemoryType, NewMemory


def build_engine(
    tmp_path: Path, merge_contents: ContentMerger = join_distinct_contents
) -> tuple[EvolutionEngine, SQLMemoryStore, SQLLinkStore, str]:
    store = SQLStore(db_path=tmp_path / "mw.db")
    store.create_all()
    memory_store = SQLMemoryStore(store)
    link_store = SQLLinkStore(store)
    embedder = HashingEmbedder(dimensions=2)
    agent = MemoryManager(store, memory_store, link_store, embedder).create_agent("cycler")
    engine = EvolutionEngine(memory_store, link_store, embedder, merge_contents=merge_contents)
    return engine, memory_store, link_store, agent.id


def seed_corpus(memory_store: SQLMemoryStore, agent_id: str) -> list[str]:
    ids = []
    for content, vector, importance in [
        ("first", [1.0, 0.0], 0.9),
        ("second", [1.0, 0.0], 0.8),
        ("third", [0.0, 1.0], 0.2),
    ]:
        memory = memory_store.create(
            NewMemory(agent_id=agent_id, content=content, embedding=vector, importance=importance)
        )
        ids.append(memory.id)
    return ids


def test_cycle_runs_decay_then_consolidation_then_links(tmp_path: Path) -> None:
    engine, memory_store, link_store, agent_id = build_engine(tmp_path)
    first, second, third = seed_corpus(memory_store, agent_id)

    result = engine.run_evolution_cycle()

    assert result.decay.decayed == 3
    assert result.consolidation.consolidated == 1
    # The duplicate is archived before linking, so no SEMANTIC link is created for it.
    assert result.link_update.links_created == 0
    assert memory_store.get_by_id(second).type == MemoryType.ARCHIVED
    assert memory_store.get_by_id(first).importance == pytest.approx((0.89 + 0.79) / 2)
    assert memory_store.get_by_id(third).importance == pytest.approx(0.19)

    payload = result.as_dict()
    assert set(payload) == {"decay", "consolidation", "link_update"}
    assert payload["consolidation"] == {"consolidated": 1, "total_processed": 3}


def test_same_phase_cannot_run_concurrently(tmp_path: Path) -> None:
    nested: list[Exception] = []
    engine: EvolutionEngine | None = None

    def reentrant_merge(contents: list[str]) -> str:
        try:
            engine.consolidate_similar_memories()
        except PhaseInProgressError as exc:
            nested.append(exc)
        return join_distinct_contents(contents)

    engine, memory_store, _, agent_id = build_engine(tmp_path, merge_contents=reentrant_merge)
    seed_corpus(memory_store, agent_id)

    result = engine.consolidate_similar_memories()

    assert result.consolidated == 1
    assert len(nested) == 1
    assert nested[0].phase == "consolidation"
    assert not engine.is_running("consolidation")


def test_different_phases_may_overlap(tmp_path: Path) -> None:
    decays = []
    engine: EvolutionEngine | None = None

    def merge_and_decay(contents: list[str]) -> str:
        decays.append(engine.decay_memories())
        return join_distinct_contents(contents)

    engine, memory_store, _, agent_id = build_engine(tmp_path, merge_contents=merge_and_decay)
    seed_corpus(memory_store, agent_id)

    engine.consolidate_similar_memories()

    assert len(decays) == 1
    assert decays[0].decayed == 3


def test_cancellation_stops_before_any_write(tmp_path: Path) -> None:
    engine, memory_store, _, agent_id = build_engine(tmp_path)
    first, _, _ = seed_corpus(memory_store, agent_id)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(EvolutionCancelled) as excinfo:
        engine.run_evolution_cycle(cancel_event=cancel)

    assert excinfo.value.phase == "decay"
    assert memory_store.get_by_id(first).importance == pytest.approx(0.9)
    assert not engine.is_running("cycle")
    assert not engine.is_running("decay")
