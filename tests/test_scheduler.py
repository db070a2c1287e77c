"""Scheduler registry and execution tests."""

from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from core.orchestrator import DEFAULT_JOBS, build_scheduler
from core.scheduler import EvolutionScheduler, next_fire_time
from embedding.providers.mock_embedder import HashingEmbedder
from memory.errors import NotFoundError, PhaseInProgressError
from memory.evolution import EvolutionEngine
from memory.stores.link_store import SQLLinkStore
from memory.stores.memory_store import SQLMemoryStore
from memory.stores.sql_store import SQLStore

NOW = datetime(2024, 1, 1, 4, 0, tzinfo=UTC)


def build_scheduler_at(now: datetime = NOW) -> EvolutionScheduler:
    return EvolutionScheduler(clock=lambda: now, poll_seconds=0.05)


def test_next_fire_time() -> None:
    assert next_fire_time("0 3 * * *", NOW) == datetime(2024, 1, 2, 3, 0, tzinfo=UTC)
    assert next_fire_time("0 */6 * * *", NOW) == datetime(2024, 1, 1, 6, 0, tzinfo=UTC)


def test_register_validates_cron_and_lists_jobs() -> None:
    scheduler = build_scheduler_at()

    with pytest.raises(ValueError):
        scheduler.register("broken", "not a cron", lambda cancel: None)

    job = scheduler.register("nightly", "0 3 * * *", lambda cancel: None)
    status = scheduler.job_status()

    assert job.next_run == datetime(2024, 1, 2, 3, 0, tzinfo=UTC)
    assert status["nightly"]["cron"] == "0 3 * * *"
    assert status["nightly"]["running"] is False
    assert status["nightly"]["last_status"] is None

    scheduler.unregister("nightly")
    assert scheduler.job_status() == {}
    with pytest.raises(NotFoundError):
        scheduler.unregister("nightly")
    with pytest.raises(NotFoundError):
        scheduler.run_job_now("nightly")


def test_run_job_now_records_success_and_failure() -> None:
    scheduler = build_scheduler_at()
    scheduler.register("ok", "0 3 * * *", lambda cancel: {"done": True})

    def explode(cancel: threading.Event) -> None:
        raise RuntimeError("boom")

    scheduler.register("bad", "0 3 * * *", explode)

    assert scheduler.run_job_now("ok") == {"done": True}
    assert scheduler.get("ok").last_status == "success"
    assert scheduler.get("ok").last_run == NOW

    with pytest.raises(RuntimeError):
        scheduler.run_job_now("bad")
    assert scheduler.get("bad").last_status == "error"
    assert scheduler.get("bad").last_error == "boom"


def test_job_already_running_is_skipped() -> None:
    scheduler = build_scheduler_at()

    def busy(cancel: threading.Event) -> None:
        raise PhaseInProgressError("decay")

    scheduler.register("busy", "0 3 * * *", busy)

    with pytest.raises(PhaseInProgressError):
        scheduler.run_job_now("busy")
    assert scheduler.get("busy").last_status == "skipped"


def test_due_jobs_fire_and_misfires_are_skipped() -> None:
    scheduler = build_scheduler_at()
    fired = threading.Event()
    late_calls: list[int] = []
    scheduler.register("due", "0 3 * * *", lambda cancel: fired.set())
    scheduler.register("late", "0 3 * * *", lambda cancel: late_calls.append(1))
    scheduler.get("due").next_run = NOW - timedelta(seconds=5)
    scheduler.get("late").next_run = NOW - timedelta(hours=1)

    scheduler._fire_due_jobs()

    assert fired.wait(timeout=5)
    assert late_calls == []
    assert scheduler.get("late").next_run == datetime(2024, 1, 2, 3, 0, tzinfo=UTC)
    assert scheduler.get("due").next_run == datetime(2024, 1, 2, 3, 0, tzinfo=UTC)


def test_start_and_stop_lifecycle() -> None:
    scheduler = build_scheduler_at()
    scheduler.register("nightly", "0 3 * * *", lambda cancel: None)

    scheduler.start()
    assert scheduler.is_running
    scheduler.stop(timeout=5)
    assert not scheduler.is_running


def test_build_scheduler_registers_default_jobs(tmp_path: Path) -> None:
    store = SQLStore(db_path=tmp_path / "mw.db")
    store.create_all()
    engine = EvolutionEngine(SQLMemoryStore(store), SQLLinkStore(store), HashingEmbedder(dimensions=8))

    scheduler = build_scheduler(engine, {"scheduler": {"jobs": {"memory-links": "*/30 * * * *"}}})
    status = scheduler.job_status()

    assert set(status) == set(DEFAULT_JOBS)
    assert status["memory-links"]["cron"] == "*/30 * * * *"
    assert status["memory-decay"]["cron"] == DEFAULT_JOBS["memory-decay"]

    assert status["full-evolution"]["enabled"] is True
    disabled = build_scheduler(engine, {"scheduler": {"enabled": False}})
    assert not any(job["enabled"] for job in disabled.job_status().values())

    result = scheduler.run_job_now("full-evolution")
    assert result.decay.decayed == 0
    assert scheduler.get("full-evolution").last_result["consolidation"]["consolidated"] == 0


def test_manual_run_after_stop_is_not_cancelled() -> None:
    scheduler = build_scheduler_at()
    seen: list[bool] = []
    scheduler.register("check", "0 3 * * *", lambda cancel: seen.append(cancel.is_set()))

    scheduler.start()
    scheduler.stop(timeout=5)
    scheduler.run_job_now("check")

    assert seen == [False]
    assert scheduler.get("check").last_status == "success"
