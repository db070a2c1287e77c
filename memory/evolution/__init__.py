"""Memory evolution: decay, consolidation, linking and knowledge transfer."""

from memory.evolution.config import EvolutionConfig
from memory.evolution.consolidation import join_distinct_contents
from memory.evolution.engine import EvolutionEngine
from memory.evolution.results import (
    ConsolidationResult,
    DecayResult,
    EvolutionCycleResult,
    LinkUpdateResult,
    TransferResult,
)

__all__ = [
    "ConsolidationResult",
    "DecayResult",
    "EvolutionConfig",
    "EvolutionCycleResult",
    "EvolutionEngine",
    "LinkUpdateResult",
    "TransferResult",
    "join_distinct_contents",
]
