"""Typer command handlers."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel

from core.orchestrator import Orchestrator, RuntimeBundle, build_scheduler
from core.policy_runtime import configure_logging
from memory.types import MemoryType


def _runtime(root: Path | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=root).build()
    configure_logging(bundle.config)
    return bundle


def _emit(payload: object) -> None:
    typer.echo(json.dumps(_json_safe(payload), indent=2))


def agents_add(name: str, description: str, agent_type: str) -> None:
    bundle = _runtime()
    _emit(bundle.memory.create_agent(name=name, agent_type=agent_type, description=description))


def agents_list(page: int, limit: int) -> None:
    bundle = _runtime()
    _emit(bundle.memory.list_agents(page=page, limit=limit))


def agents_show(agent_id: str) -> None:
    bundle = _runtime()
    _emit(bundle.memory.get_agent(agent_id))


def agents_delete(agent_id: str) -> None:
    bundle = _runtime()
    bundle.memory.delete_agent(agent_id)
    typer.echo(f"Deleted agent {agent_id}")


def sessions_start(agent_id: str, name: str, description: str) -> None:
    bundle = _runtime()
    _emit(bundle.memory.start_session(agent_id=agent_id, name=name, description=description))


def sessions_end(session_id: str) -> None:
    bundle = _runtime()
    _emit(bundle.memory.end_session(session_id))


def sessions_list(agent_id: str, limit: int) -> None:
    bundle = _runtime()
    _emit(bundle.memory.list_sessions(agent_id=agent_id, limit=limit))


def memory_add(
    agent_id: str,
    content: str,
    memory_type: MemoryType,
    importance: float,
    session_id: str | None,
) -> None:
    """Add a memory and report it without its embedding."""
    bundle = _runtime()
    memory = bundle.memory.create_memory(
        agent_id=agent_id,
        content=content,
        memory_type=memory_type,
        importance=importance,
        session_id=session_id,
    )
    _emit(memory.model_dump(exclude={"embedding"}))


def memory_show(memory_id: str, links: bool) -> None:
    bundle = _runtime()
    payload: dict[str, Any] = bundle.memory.get_memory(memory_id).model_dump(exclude={"embedding"})
    if links:
        payload["links"] = bundle.memory.get_memory_links(memory_id)
    _emit(payload)


def memory_update(
    memory_id: str,
    content: str | None,
    memory_type: MemoryType | None,
    importance: float | None,
) -> None:
    bundle = _runtime()
    memory = bundle.memory.update_memory(
        memory_id, content=content, memory_type=memory_type, importance=importance
    )
    _emit(memory.model_dump(exclude={"embedding"}))


def memory_delete(memory_id: str) -> None:
    bundle = _runtime()
    bundle.memory.delete_memory(memory_id)
    typer.echo(f"Deleted memory {memory_id}")


def memory_search(
    agent_id: str,
    query: str,
    memory_type: MemoryType | None,
    limit: int,
    offset: int,
    min_similarity: float | None,
) -> None:
    bundle = _runtime()
    _emit(
        bundle.memory.search_memories(
            agent_id=agent_id,
            query=query,
            memory_type=memory_type,
            limit=limit,
            offset=offset,
            min_similarity=min_similarity,
        )
    )


def memory_stats(agent_id: str | None) -> None:
    bundle = _runtime()
    _emit(bundle.memory.memory_stats(agent_id=agent_id))


def evolve_decay() -> None:
    bundle = _runtime()
    _emit(bundle.engine.decay_memories())


def evolve_consolidate(agent_id: str | None) -> None:
    bundle = _runtime()
    _emit(bundle.engine.consolidate_similar_memories(agent_id=agent_id))


def evolve_links() -> None:
    bundle = _runtime()
    _emit(bundle.engine.update_memory_links())


def evolve_transfer(source_agent_id: str, target_agent_id: str, memory_types: list[MemoryType]) -> None:
    bundle = _runtime()
    kwargs: dict[str, Any] = {}
    if memory_types:
        kwargs["memory_types"] = memory_types
    _emit(bundle.engine.transfer_knowledge(source_agent_id, target_agent_id, **kwargs))


def evolve_cycle() -> None:
    bundle = _runtime()
    _emit(bundle.engine.run_evolution_cycle())


def scheduler_list() -> None:
    bundle = _runtime()
    _emit(build_scheduler(bundle.engine, bundle.config).job_status())


def scheduler_run(job: str | None) -> None:
    """Run one job now, or run the scheduler in the foreground until interrupted."""
    bundle = _runtime()
    scheduler = build_scheduler(bundle.engine, bundle.config)
    if job:
        _emit(scheduler.run_job_now(job))
        return
    scheduler.start()
    typer.echo("Scheduler running. Press Ctrl+C to stop.")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        typer.echo("Stopping scheduler...")
    finally:
        scheduler.stop(timeout=30)


def config_show() -> None:
    """Show effective runtime config."""
    bundle = _runtime()
    _emit(bundle.config)


def _json_safe(payload: object) -> object:
    """Convert models, dataclasses, enums and datetimes for JSON output."""
    if isinstance(payload, BaseModel):
        return _json_safe(payload.model_dump())
    if is_dataclass(payload) and not isinstance(payload, type):
        return _json_safe(asdict(payload))
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, Enum):
        return payload.value
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
