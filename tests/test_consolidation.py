"""Similarity consolidation tests."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any

import pytest

from embedding.providers.mock_embedder import HashingEmbedder
from memory.evolution import EvolutionConfig, EvolutionEngine, join_distinct_contents
from memory.evolution.consolidation import group_similar
from memory.memory_manager import MemoryManager
from memory.stores.base import LinkFilter
from memory.stores.link_store import SQLLinkStore
from memory.stores.memory_store import SQLMemoryStore
from memory.stores.sql_store import SQLStore
from memory.types import LinkType, Memory, MemoryType, NewMemory


def build_engine(tmp_path: Path, **settings: Any) -> tuple[EvolutionEngine, SQLMemoryStore, SQLLinkStore, MemoryManager]:
    store = SQLStore(db_path=tmp_path / "mw.db")
    store.create_all()
    memory_store = SQLMemoryStore(store)
    link_store = SQLLinkStore(store)
    embedder = HashingEmbedder(dimensions=2)
    manager = MemoryManager(store, memory_store, link_store, embedder)
    engine = EvolutionEngine(memory_store, link_store, embedder, config=EvolutionConfig(**settings))
    return engine, memory_store, link_store, manager


def add_memory(
    memory_store: SQLMemoryStore,
    agent_id: str,
    content: str,
    embedding: list[float],
    importance: float,
    access_count: int = 0,
) -> Memory:
    return memory_store.create(
        NewMemory(
            agent_id=agent_id,
            content=content,
            importance=importance,
            access_count=access_count,
            embedding=embedding,
        )
    )


def test_join_distinct_contents() -> None:
    assert join_distinct_contents(["a", "a"]) == "a"
    assert join_distinct_contents(["a", "b", "a"]) == "a\n\n---\n\nb"


def test_similar_pair_is_merged_into_primary(tmp_path: Path) -> None:
    engine, memory_store, link_store, manager = build_engine(tmp_path, consolidation_threshold=0.7)
    agent_id = manager.create_agent("consolidator").id
    primary = add_memory(
        memory_store, agent_id, "User prefers dark mode", [1.0, 0.0], importance=0.6, access_count=3
    )
    secondary = add_memory(
        memory_store,
        agent_id,
        "User likes dark themes",
        [0.85, math.sqrt(1 - 0.85**2)],
        importance=0.4,
        access_count=1,
    )

    result = engine.consolidate_similar_memories()

    assert result.consolidated == 1
    assert result.total_processed == 2

    merged = memory_store.get_by_id(primary.id)
    assert merged.access_count == 4
    assert merged.importance == pytest.approx(0.5)
    assert merged.content == "User prefers dark mode\n\n---\n\nUser likes dark themes"
    assert merged.metadata["consolidated"] is True
    assert merged.metadata["originalCount"] == 2
    assert merged.type == MemoryType.EPISODIC

    archived = memory_store.get_by_id(secondary.id)
    assert archived.type == MemoryType.ARCHIVED
    assert archived.metadata["consolidatedInto"] == primary.id

    link = link_store.find_one(
        LinkFilter(source_id=primary.id, target_id=secondary.id, link_type=LinkType.HIERARCHICAL)
    )
    assert link is not None
    assert link.similarity == pytest.approx(0.85)


def test_primary_is_chosen_by_importance_and_usage(tmp_path: Path) -> None:
    engine, memory_store, link_store, manager = build_engine(tmp_path)
    agent_id = manager.create_agent("consolidator").id
    seed = add_memory(memory_store, agent_id, "seed", [1.0, 0.0], importance=0.9, access_count=0)
    used = add_memory(memory_store, agent_id, "used", [1.0, 0.0], importance=0.5, access_count=10)

    engine.consolidate_similar_memories()

    assert memory_store.get_by_id(seed.id).type == MemoryType.ARCHIVED
    assert memory_store.get_by_id(seed.id).metadata["consolidatedInto"] == used.id
    link = link_store.find_one(LinkFilter(source_id=used.id, target_id=seed.id))
    assert link is not None
    assert link.similarity == pytest.approx(1.0)


def test_three_memory_scenario_forms_one_group(tmp_path: Path) -> None:
    engine, memory_store, _, manager = build_engine(tmp_path, consolidation_threshold=0.99)
    agent_id = manager.create_agent("consolidator").id
    first = add_memory(memory_store, agent_id, "first", [1.0, 0.0], importance=0.9)
    second = add_memory(memory_store, agent_id, "second", [1.0, 0.0], importance=0.8)
    third = add_memory(memory_store, agent_id, "third", [0.0, 1.0], importance=0.2)

    result = engine.consolidate_similar_memories()

    assert result.consolidated == 1
    assert result.total_processed == 3
    assert memory_store.get_by_id(second.id).metadata["consolidatedInto"] == first.id
    untouched = memory_store.get_by_id(third.id)
    assert untouched.type == MemoryType.EPISODIC
    assert untouched.content == "third"
    assert untouched.metadata == {}


def test_consolidation_can_be_scoped_to_one_agent(tmp_path: Path) -> None:
    engine, memory_store, _, manager = build_engine(tmp_path)
    alice = manager.create_agent("alice").id
    bob = manager.create_agent("bob").id
    add_memory(memory_store, alice, "a1", [1.0, 0.0], importance=0.9)
    add_memory(memory_store, alice, "a2", [1.0, 0.0], importance=0.8)
    b1 = add_memory(memory_store, bob, "b1", [1.0, 0.0], importance=0.9)
    b2 = add_memory(memory_store, bob, "b2", [1.0, 0.0], importance=0.8)

    result = engine.consolidate_similar_memories(agent_id=alice)

    assert result.consolidated == 1
    assert memory_store.get_by_id(b1.id).type == MemoryType.EPISODIC
    assert memory_store.get_by_id(b2.id).type == MemoryType.EPISODIC


def test_group_similar_claims_each_memory_once(tmp_path: Path) -> None:
    _, memory_store, _, manager = build_engine(tmp_path)
    agent_id = manager.create_agent("grouper").id
    memories = [
        add_memory(memory_store, agent_id, name, vector, importance=0.5)
        for name, vector in [("a", [1.0, 0.0]), ("b", [1.0, 0.1]), ("c", [1.0, 0.2]), ("d", [0.0, 1.0])]
    ]

    groups, processed = group_similar(memories, threshold=0.9)

    assert processed == 4
    assert len(groups) == 1
    assert [member.id for member, _ in groups[0]] == [m.id for m in memories[:3]]
