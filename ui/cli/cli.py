"""CLI entrypoint for the memory warehouse."""

from __future__ import annotations

from typing import Optional

import typer

from memory.errors import MemoryWarehouseError
from memory.types import MemoryType
from ui.cli import commands

app = typer.Typer(help="Agent memory warehouse with semantic linking and memory evolution")
agents_app = typer.Typer(help="Agent commands")
sessions_app = typer.Typer(help="Session commands")
memory_app = typer.Typer(help="Memory commands")
evolve_app = typer.Typer(help="Memory evolution commands")
scheduler_app = typer.Typer(help="Scheduler commands")
config_app = typer.Typer(help="Configuration commands")


@agents_app.command("add")
def agents_add_cmd(
    name: str = typer.Argument(..., help="Agent name"),
    description: str = typer.Option("", help="Agent description"),
    agent_type: str = typer.Option("AI_AGENT", "--type", help="Agent type"),
) -> None:
    """Create an agent."""
    commands.agents_add(name=name, description=description, agent_type=agent_type)


@agents_app.command("list")
def agents_list_cmd(
    page: int = typer.Option(1, min=1),
    limit: int = typer.Option(10, min=1, max=100),
) -> None:
    """List agents."""
    commands.agents_list(page=page, limit=limit)


@agents_app.command("show")
def agents_show_cmd(agent_id: str) -> None:
    """Show one agent."""
    commands.agents_show(agent_id)


@agents_app.command("delete")
def agents_delete_cmd(agent_id: str) -> None:
    """Delete an agent with its sessions and memories."""
    commands.agents_delete(agent_id)


@sessions_app.command("start")
def sessions_start_cmd(
    agent_id: str,
    name: str,
    description: str = typer.Option("", help="Session description"),
) -> None:
    """Start a session for an agent."""
    commands.sessions_start(agent_id=agent_id, name=name, description=description)


@sessions_app.command("end")
def sessions_end_cmd(session_id: str) -> None:
    """End a session."""
    commands.sessions_end(session_id)


@sessions_app.command("list")
def sessions_list_cmd(agent_id: str, limit: int = typer.Option(20, min=1)) -> None:
    """List sessions of an agent."""
    commands.sessions_list(agent_id=agent_id, limit=limit)


@memory_app.command("add")
def memory_add_cmd(
    agent_id: str = typer.Argument(..., help="Owning agent id"),
    content: str = typer.Argument(..., help="Memory text content"),
    memory_type: MemoryType = typer.Option(MemoryType.EPISODIC, "--type", help="Memory type"),
    importance: float = typer.Option(0.5, min=0.0, max=1.0),
    session_id: Optional[str] = typer.Option(None, "--session", help="Session id"),
) -> None:
    """Add a memory; it is embedded and linked to similar memories."""
    commands.memory_add(
        agent_id=agent_id,
        content=content,
        memory_type=memory_type,
        importance=importance,
        session_id=session_id,
    )


@memory_app.command("show")
def memory_show_cmd(
    memory_id: str,
    links: bool = typer.Option(False, "--links", help="Include links"),
) -> None:
    """Show a memory (counts as an access)."""
    commands.memory_show(memory_id=memory_id, links=links)


@memory_app.command("update")
def memory_update_cmd(
    memory_id: str,
    content: Optional[str] = typer.Option(None, help="New content"),
    memory_type: Optional[MemoryType] = typer.Option(None, "--type", help="New type"),
    importance: Optional[float] = typer.Option(None, min=0.0, max=1.0),
) -> None:
    """Update a memory."""
    commands.memory_update(
        memory_id=memory_id, content=content, memory_type=memory_type, importance=importance
    )


@memory_app.command("delete")
def memory_delete_cmd(memory_id: str) -> None:
    """Delete a memory and its links."""
    commands.memory_delete(memory_id)


@memory_app.command("search")
def memory_search_cmd(
    agent_id: str,
    query: str,
    memory_type: Optional[MemoryType] = typer.Option(None, "--type"),
    limit: int = typer.Option(10, min=1, max=100),
    offset: int = typer.Option(0, min=0),
    min_similarity: Optional[float] = typer.Option(None, "--min-similarity"),
) -> None:
    """Semantic search in one agent's memories."""
    commands.memory_search(
        agent_id=agent_id,
        query=query,
        memory_type=memory_type,
        limit=limit,
        offset=offset,
        min_similarity=min_similarity,
    )


@memory_app.command("stats")
def memory_stats_cmd(agent_id: Optional[str] = typer.Option(None, "--agent")) -> None:
    """Memory statistics."""
    commands.memory_stats(agent_id=agent_id)


@evolve_app.command("decay")
def evolve_decay_cmd() -> None:
    """Decay importance, archive and purge."""
    commands.evolve_decay()


@evolve_app.command("consolidate")
def evolve_consolidate_cmd(agent_id: Optional[str] = typer.Option(None, "--agent")) -> None:
    """Consolidate near-duplicate memories."""
    commands.evolve_consolidate(agent_id=agent_id)


@evolve_app.command("links")
def evolve_links_cmd() -> None:
    """Refresh semantic links."""
    commands.evolve_links()


@evolve_app.command("transfer")
def evolve_transfer_cmd(
    source_agent_id: str,
    target_agent_id: str,
    memory_types: Optional[list[MemoryType]] = typer.Option(None, "--type", help="Repeatable"),
) -> None:
    """Copy knowledge from one agent to another."""
    commands.evolve_transfer(source_agent_id, target_agent_id, memory_types or [])


@evolve_app.command("cycle")
def evolve_cycle_cmd() -> None:
    """Run decay, consolidation and link update in order."""
    commands.evolve_cycle()


@scheduler_app.command("list")
def scheduler_list_cmd() -> None:
    """List scheduled jobs."""
    commands.scheduler_list()


@scheduler_app.command("run")
def scheduler_run_cmd(
    job: Optional[str] = typer.Option(None, "--job", help="Run a single job now and exit"),
) -> None:
    """Run the scheduler in the foreground."""
    commands.scheduler_run(job=job)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


app.add_typer(agents_app, name="agents")
app.add_typer(sessions_app, name="sessions")
app.add_typer(memory_app, name="memory")
app.add_typer(evolve_app, name="evolve")
app.add_typer(scheduler_app, name="scheduler")
app.add_typer(config_app, name="config")


def main() -> None:
    """Console script entrypoint."""
    try:
        app()
    except MemoryWarehouseError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
