"""Store interfaces consumed by the memory service and the evolution engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from memory.types import LinkType, Memory, MemoryLink, MemoryType, MemoryUpdate, NewLink, NewMemory


@dataclass(frozen=True)
class MemoryFilter:
    """Conjunctive memory filter. ``None`` fields do not constrain."""

    agent_id: str | None = None
    type: MemoryType | None = None
    type_in: Collection[MemoryType] | None = None
    type_not: MemoryType | None = None
    has_embedding: bool | None = None
    ids: Collection[str] | None = None
    exclude_ids: Collection[str] | None = None
    created_before: datetime | None = None
    last_accessed_before: datetime | None = None
    access_count_lte: int | None = None
    importance_gt: float | None = None
    importance_gte: float | None = None
    importance_lte: float | None = None


@dataclass(frozen=True)
class LinkFilter:
    """Conjunctive link filter. ``None`` fields do not constrain."""

    source_id: str | None = None
    target_id: str | None = None
    link_type: LinkType | None = None
    memory_id: str | None = None
    memory_ids: Collection[str] | None = None
    pair: tuple[str, str] | None = None


class MemoryStore(ABC):
    """Persistence contract for memory records."""

    @abstractmethod
    def create(self, record: NewMemory) -> Memory:
        """Insert a memory and return it."""

    @abstractmethod
    def get_by_id(self, memory_id: str) -> Memory | None:
        """Return the memory or ``None``."""

    @abstractmethod
    def update(self, memory_id: str, changes: MemoryUpdate) -> Memory:
        """Apply a partial update. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def delete(self, memory_id: str) -> None:
        """Delete one memory. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def bulk_update_importance(self, flt: MemoryFilter, delta: float) -> int:
        """Add ``delta`` to importance of matching rows, clamped to [0, 1]."""

    @abstractmethod
    def bulk_set_type(self, flt: MemoryFilter, memory_type: MemoryType) -> int:
        """Set the type of matching rows."""

    @abstractmethod
    def delete_many(self, flt: MemoryFilter) -> int:
        """Delete matching rows."""

    @abstractmethod
    def find_many(
        self,
        flt: MemoryFilter,
        order_by: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Memory]:
        """Return matching memories. ``order_by`` is a field name, ``-`` prefix for descending."""

    @abstractmethod
    def count(self, flt: MemoryFilter) -> int:
        """Count matching rows."""

    @abstractmethod
    def record_access(self, memory_ids: Iterable[str]) -> int:
        """Increment access counters and stamp last access time."""

    @abstractmethod
    def stats(self, agent_id: str | None = None) -> list[dict[str, Any]]:
        """Per-type aggregate counts."""

    @abstractmethod
    def agent_exists(self, agent_id: str) -> bool:
        """Whether an agent that can own memories exists."""


class LinkStore(ABC):
    """Persistence contract for memory links."""

    @abstractmethod
    def create(self, link: NewLink) -> MemoryLink:
        """Insert a link. Duplicate keys are a StoreError."""

    @abstractmethod
    def create_many(self, links: Iterable[NewLink], skip_duplicates: bool = True) -> int:
        """Insert links, returning how many rows were written."""

    @abstractmethod
    def find_one(self, flt: LinkFilter) -> MemoryLink | None:
        """Return the first matching link or ``None``."""

    @abstractmethod
    def find_many(self, flt: LinkFilter) -> list[MemoryLink]:
        """Return all matching links."""

    @abstractmethod
    def update(
        self,
        link_id: str,
        strength: float | None = None,
        similarity: float | None = None,
    ) -> MemoryLink:
        """Update link weights. Raises NotFoundError for unknown ids."""

    @abstractmethod
    def delete_many(self, flt: LinkFilter) -> int:
        """Delete matching links."""

    @abstractmethod
    def count(self, flt: LinkFilter | None = None) -> int:
        """Count matching links."""
