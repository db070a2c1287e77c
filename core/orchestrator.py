"""Top-level application orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.policy_runtime import ensure_runtime_dirs, load_effective_config
from core.scheduler import EvolutionScheduler
from embedding.base_embedder import BaseEmbedder
from embedding.embedder_factory import build_embedder
from memory.evolution import EvolutionConfig, EvolutionEngine
from memory.memory_manager import MemoryManager
from memory.stores.link_store import SQLLinkStore
from memory.stores.memory_store import SQLMemoryStore
from memory.stores.sql_store import SQLStore

DEFAULT_JOBS: dict[str, str] = {
    "memory-decay": "0 */6 * * *",
    "memory-consolidation": "0 2 * * *",
    "memory-links": "0 */4 * * *",
    "full-evolution": "0 3 * * 0",
}


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    sql_store: SQLStore
    embedder: BaseEmbedder
    memory: MemoryManager
    engine: EvolutionEngine


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None) -> None:
        default_root = Path(__file__).resolve().parents[1]
        self.root = (root or default_root).resolve()

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root)
        paths = ensure_runtime_dirs(self.root, config)

        sql_store = SQLStore(paths["db_path"])
        sql_store.create_all()

        embedder = build_embedder(config=config)
        memory_store = SQLMemoryStore(sql_store, embedding_dim=embedder.dimensions)
        link_store = SQLLinkStore(sql_store)

        memory = MemoryManager(
            sql_store=sql_store,
            memory_store=memory_store,
            link_store=link_store,
            embedder=embedder,
            link_threshold=float(config.get("memory", {}).get("link_threshold", 0.3)),
        )
        engine = EvolutionEngine(
            memory_store=memory_store,
            link_store=link_store,
            embedder=embedder,
            config=EvolutionConfig.from_config(config),
        )
        return RuntimeBundle(
            config=config,
            sql_store=sql_store,
            embedder=embedder,
            memory=memory,
            engine=engine,
        )


def build_scheduler(engine: EvolutionEngine, config: dict[str, Any]) -> EvolutionScheduler:
    """Register the decay, consolidation, link and full-cycle jobs."""
    scheduler_cfg = config.get("scheduler", {})
    timezone = scheduler_cfg.get("timezone", "UTC")
    crons = {**DEFAULT_JOBS, **(scheduler_cfg.get("jobs", {}) or {})}
    runners = {
        "memory-decay": lambda cancel: engine.decay_memories(cancel_event=cancel),
        "memory-consolidation": lambda cancel: engine.consolidate_similar_memories(cancel_event=cancel),
        "memory-links": lambda cancel: engine.update_memory_links(cancel_event=cancel),
        "full-evolution": lambda cancel: engine.run_evolution_cycle(cancel_event=cancel),
    }
    enabled = bool(scheduler_cfg.get("enabled", True))
    scheduler = EvolutionScheduler(poll_seconds=float(scheduler_cfg.get("poll_seconds", 60)))
    for name, func in runners.items():
        cron_expr = crons.get(name)
        if cron_expr:
            # Disabled jobs stay listed and can still be run by hand.
            scheduler.register(name, cron_expr, func, timezone=timezone).enabled = enabled
    return scheduler
