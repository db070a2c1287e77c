"""Configuration loading and runtime wiring tests."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from core.orchestrator import Orchestrator
from core.policy_runtime import apply_env_overrides, load_effective_config
from embedding.embedder_factory import build_embedder
from embedding.providers.mock_embedder import HashingEmbedder
from embedding.providers.openai_embedder import OpenAIEmbedder
from memory.evolution import EvolutionConfig

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_config(root: Path, default_yaml: str, embedding_yaml: str = "") -> Path:
    config_dir = root / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "default.yaml").write_text(default_yaml, encoding="utf-8")
    (config_dir / "embedding.yaml").write_text(embedding_yaml, encoding="utf-8")
    return root


def test_shipped_config_loads_with_defaults() -> None:
    config = load_effective_config(REPO_ROOT, environ={})
    settings = EvolutionConfig.from_config(config)

    assert settings.decay_rate == pytest.approx(0.01)
    assert settings.similarity_threshold == pytest.approx(0.7)
    assert settings.max_memory_age_days == 365
    assert isinstance(build_embedder(config), HashingEmbedder)


def test_environment_overrides_yaml(tmp_path: Path) -> None:
    root = write_config(tmp_path, "evolution:\n  decay_rate: 0.02\n  link_limit: 5\n")

    config = load_effective_config(
        root,
        environ={"MEMORY_DECAY_RATE": "0.05", "MAX_MEMORY_AGE_DAYS": "30", "SIMILARITY_THRESHOLD": ""},
    )
    settings = EvolutionConfig.from_config(config)

    assert settings.decay_rate == pytest.approx(0.05)
    assert settings.max_memory_age_days == 30
    assert settings.link_limit == 5
    assert settings.similarity_threshold == pytest.approx(0.7)


def test_invalid_settings_are_rejected() -> None:
    with pytest.raises(ValueError):
        apply_env_overrides({}, {"MEMORY_DECAY_RATE": "fast"})
    with pytest.raises(ValidationError):
        EvolutionConfig.from_config({"evolution": {"decay_rte": 0.1}})
    with pytest.raises(ValidationError):
        EvolutionConfig.from_config({"evolution": {"decay_rate": 2.0}})


def test_embedding_provider_selection() -> None:
    openai = build_embedder(
        {"embedding": {"active_provider": "openai", "providers": {"openai": {"dimensions": 512}}}}
    )
    hashing = build_embedder({"embedding": {"providers": {"hashing": {"dimensions": 32}}}})

    assert isinstance(openai, OpenAIEmbedder)
    assert openai.dimensions == 512
    assert isinstance(hashing, HashingEmbedder)
    assert len(hashing.embed("hello world")) == 32


def test_orchestrator_builds_runtime_in_workspace(tmp_path: Path) -> None:
    root = write_config(
        tmp_path,
        "paths:\n  db_path: data/test.db\nevolution:\n  consolidation_threshold: 0.9\n",
        "active_provider: hashing\nproviders:\n  hashing:\n    dimensions: 16\n",
    )

    bundle = Orchestrator(root=root).build()
    agent = bundle.memory.create_agent(name="wired")
    memory = bundle.memory.create_memory(agent.id, "the runtime is wired together")

    assert (tmp_path / "data" / "test.db").exists()
    assert bundle.engine.config.consolidation_threshold == pytest.approx(0.9)
    assert len(memory.embedding) == 16
    bundle.sql_store.dispose()
