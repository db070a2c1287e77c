"""Result records returned by evolution phases."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class DecayResult:
    decayed: int = 0
    archived: int = 0
    deleted: int = 0


@dataclass(frozen=True)
class ConsolidationResult:
    consolidated: int = 0
    total_processed: int = 0


@dataclass(frozen=True)
class LinkUpdateResult:
    links_created: int = 0
    links_updated: int = 0


@dataclass(frozen=True)
class TransferResult:
    transferred: int = 0
    total_source_memories: int = 0


@dataclass(frozen=True)
class EvolutionCycleResult:
    """Merged outcome of decay, consolidation and link update."""

    decay: DecayResult
    consolidation: ConsolidationResult
    link_update: LinkUpdateResult

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)
