"""Importance decay, archive and purge tests."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest

from embedding.providers.mock_embedder import HashingEmbedder
from memory.evolution import EvolutionConfig, EvolutionEngine
from memory.memory_manager import MemoryManager
from memory.stores.base import LinkFilter
from memory.stores.link_store import SQLLinkStore
from memory.stores.memory_store import SQLMemoryStore
from memory.stores.sql_store import SQLStore
from memory.types import LinkType, Memory, MemoryType, NewLink, NewMemory, utc_now


def build_engine(tmp_path: Path, **settings: Any) -> tuple[EvolutionEngine, SQLMemoryStore, SQLLinkStore, str]:
    store = SQLStore(db_path=tmp_path / "mw.db")
    store.create_all()
    memory_store = SQLMemoryStore(store)
    link_store = SQLLinkStore(store)
    embedder = HashingEmbedder(dimensions=2)
    agent = MemoryManager(store, memory_store, link_store, embedder).create_agent("decay-agent")
    engine = EvolutionEngine(memory_store, link_store, embedder, config=EvolutionConfig(**settings))
    return engine, memory_store, link_store, agent.id


def add_memory(
    memory_store: SQLMemoryStore,
    agent_id: str,
    importance: float,
    access_count: int = 0,
    age_days: int = 0,
) -> Memory:
    stamp = utc_now() - timedelta(days=age_days)
    return memory_store.create(
        NewMemory(
            agent_id=agent_id,
            content=f"memory with importance {importance}",
            importance=importance,
            access_count=access_count,
            embedding=[1.0, 0.0],
            created_at=stamp,
            last_accessed=stamp,
        )
    )


def test_decay_lowers_importance_by_rate(tmp_path: Path) -> None:
    engine, memory_store, _, agent_id = build_engine(tmp_path, decay_rate=0.01)
    memory = add_memory(memory_store, agent_id, importance=0.5)

    result = engine.decay_memories()

    assert result.decayed == 1
    assert result.archived == 0
    assert memory_store.get_by_id(memory.id).importance == pytest.approx(0.49)


def test_decay_never_goes_below_zero(tmp_path: Path) -> None:
    engine, memory_store, _, agent_id = build_engine(tmp_path, decay_rate=0.01)
    memory = add_memory(memory_store, agent_id, importance=0.005)

    engine.decay_memories()
    second = engine.decay_memories()

    assert memory_store.get_by_id(memory.id).importance == 0.0
    # Rows already at zero are no longer touched.
    assert second.decayed == 0


def test_decay_archives_faded_memories_once(tmp_path: Path) -> None:
    engine, memory_store, _, agent_id = build_engine(tmp_path, decay_rate=0.01, archive_threshold=0.1)
    faded = add_memory(memory_store, agent_id, importance=0.105)
    healthy = add_memory(memory_store, agent_id, importance=0.8)

    first = engine.decay_memories()
    second = engine.decay_memories()

    assert first.archived == 1
    assert second.archived == 0
    assert memory_store.get_by_id(faded.id).type == MemoryType.ARCHIVED
    assert memory_store.get_by_id(healthy.id).type == MemoryType.EPISODIC


def test_purge_requires_old_unaccessed_and_unimportant(tmp_path: Path) -> None:
    engine, memory_store, link_store, agent_id = build_engine(
        tmp_path, max_memory_age_days=365, purge_threshold=0.05
    )
    forgotten = add_memory(memory_store, agent_id, importance=0.02, access_count=0, age_days=400)
    revisited = add_memory(memory_store, agent_id, importance=0.02, access_count=2, age_days=400)
    recent = add_memory(memory_store, agent_id, importance=0.02, access_count=0, age_days=10)
    link_store.create(
        NewLink(source_id=forgotten.id, target_id=revisited.id, link_type=LinkType.SEMANTIC, strength=0.9)
    )

    result = engine.decay_memories()

    assert result.deleted == 1
    assert memory_store.get_by_id(forgotten.id) is None
    assert memory_store.get_by_id(revisited.id) is not None
    assert memory_store.get_by_id(recent.id) is not None
    assert link_store.count(LinkFilter(memory_id=forgotten.id)) == 0
