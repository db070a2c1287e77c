"""Typed settings for the evolution engine."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EvolutionConfig(BaseModel):
    """Thresholds and rates used by decay, consolidation, linking and transfer."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    decay_rate: float = Field(default=0.01, ge=0.0, le=1.0)
    archive_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    purge_threshold: float = Field(default=0.05, ge=0.0, le=1.0)
    max_memory_age_days: int = Field(default=365, ge=0)
    similarity_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    consolidation_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    link_limit: int = Field(default=10, ge=0)
    transfer_min_importance: float = Field(default=0.5, ge=0.0, le=1.0)
    transfer_importance_factor: float = Field(default=0.8, ge=0.0, le=1.0)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> EvolutionConfig:
        return cls.model_validate(dict(config.get("evolution", {}) or {}))
