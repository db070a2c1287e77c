"""Configuration loading and runtime bootstrapping."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

# Environment variable -> (config section, key, type)
ENV_OVERRIDES: dict[str, tuple[str, str, type]] = {
    "MEMORY_DECAY_RATE": ("evolution", "decay_rate", float),
    "MAX_MEMORY_AGE_DAYS": ("evolution", "max_memory_age_days", int),
    "SIMILARITY_THRESHOLD": ("evolution", "similarity_threshold", float),
    "CONSOLIDATION_THRESHOLD": ("evolution", "consolidation_threshold", float),
    "MEMORY_DB_PATH": ("paths", "db_path", str),
    "EMBEDDING_PROVIDER": ("embedding", "active_provider", str),
}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(config: dict[str, Any], environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Overlay recognised environment variables onto the config."""
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for var, (section, key, cast) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = cast(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {var}: {raw!r}") from exc
        overrides.setdefault(section, {})[key] = value
    return merge_dicts(config, overrides)


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure workspace directories exist and return resolved paths."""
    paths_cfg = config.get("paths", {})
    workspace_dir = (root / paths_cfg.get("workspace_dir", "workspace")).resolve()
    db_path = (root / paths_cfg.get("db_path", "workspace/memory_warehouse.db")).resolve()

    workspace_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    return {
        "workspace_dir": workspace_dir,
        "db_path": db_path,
    }


def load_effective_config(root: Path, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Load and merge all runtime configuration files, then environment overrides."""
    config_dir = root / "config"
    default_cfg = load_yaml(config_dir / "default.yaml")
    embedding_cfg = load_yaml(config_dir / "embedding.yaml")

    merged = merge_dicts(default_cfg, {"embedding": embedding_cfg})
    return apply_env_overrides(merged, environ)


def configure_logging(config: dict[str, Any]) -> None:
    """Configure root logging from the ``logging`` config section."""
    logging_cfg = config.get("logging", {})
    level_name = str(logging_cfg.get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=logging_cfg.get("format", "%(asctime)s %(levelname)s %(name)s: %(message)s"),
    )
