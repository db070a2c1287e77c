"""Memory record models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def clamp_importance(value: float) -> float:
    """Clamp an importance score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


class MemoryType(str, Enum):
    """Kinds of memory. ARCHIVED memories are inactive."""

    EPISODIC = "EPISODIC"
    SEMANTIC = "SEMANTIC"
    PROCEDURAL = "PROCEDURAL"
    WORKING = "WORKING"
    ARCHIVED = "ARCHIVED"


class Memory(BaseModel):
    """Persisted memory as seen by the service and the evolution engine."""

    id: str
    agent_id: str
    session_id: str | None = None
    content: str
    type: MemoryType = MemoryType.EPISODIC
    embedding: list[float] | None = None
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    access_count: int = Field(default=0, ge=0)
    created_at: datetime
    updated_at: datetime
    last_accessed: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_archived(self) -> bool:
        return self.type == MemoryType.ARCHIVED


class NewMemory(BaseModel):
    """Fields accepted when inserting a memory."""

    agent_id: str
    content: str
    type: MemoryType = MemoryType.EPISODIC
    session_id: str | None = None
    embedding: list[float] | None = None
    importance: float = 0.5
    access_count: int = Field(default=0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    last_accessed: datetime | None = None

    @field_validator("importance")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_importance(value)


class MemoryUpdate(BaseModel):
    """Partial update; unset fields are left alone."""

    content: str | None = None
    type: MemoryType | None = None
    embedding: list[float] | None = None
    importance: float | None = None
    access_count: int | None = Field(default=None, ge=0)
    metadata: dict[str, Any] | None = None
    last_accessed: datetime | None = None

    @field_validator("importance")
    @classmethod
    def _clamp(cls, value: float | None) -> float | None:
        return None if value is None else clamp_importance(value)

    def changes(self) -> dict[str, Any]:
        """Return only the fields that were explicitly set."""
        return self.model_dump(exclude_unset=True)


def utc_now() -> datetime:
    return datetime.now(UTC)
