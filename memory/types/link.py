"""Memory link models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class LinkType(str, Enum):
    """Relationship kinds between two memories."""

    SEMANTIC = "SEMANTIC"
    TEMPORAL = "TEMPORAL"
    CAUSAL = "CAUSAL"
    CONTEXTUAL = "CONTEXTUAL"
    HIERARCHICAL = "HIERARCHICAL"


# Undirected link kinds are stored with the lower id as source.
UNDIRECTED_LINK_TYPES = frozenset({LinkType.SEMANTIC})


class MemoryLink(BaseModel):
    """Typed, weighted edge between two memories."""

    id: str
    source_id: str
    target_id: str
    link_type: LinkType
    strength: float
    similarity: float | None = None
    created_at: datetime
    updated_at: datetime


class NewLink(BaseModel):
    """Fields accepted when inserting a link."""

    source_id: str
    target_id: str
    link_type: LinkType = LinkType.SEMANTIC
    strength: float = 1.0
    similarity: float | None = None

    def canonical(self) -> NewLink:
        """Return the storage form of this link."""
        if self.link_type in UNDIRECTED_LINK_TYPES and self.target_id < self.source_id:
            return self.model_copy(update={"source_id": self.target_id, "target_id": self.source_id})
        return self

    def key(self) -> tuple[str, str, LinkType]:
        link = self.canonical()
        return (link.source_id, link.target_id, link.link_type)
