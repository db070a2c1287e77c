"""Exception hierarchy for the memory warehouse."""

from __future__ import annotations


class MemoryWarehouseError(Exception):
    """Base class for all memory warehouse errors."""


class InputError(MemoryWarehouseError, ValueError):
    """Caller passed arguments that can never be valid."""


class DependencyError(MemoryWarehouseError):
    """An external collaborator failed."""


class EmbeddingError(DependencyError):
    """The embedding provider could not produce a vector."""


class NotFoundError(MemoryWarehouseError, LookupError):
    """A record targeted by id does not exist."""


class StoreError(MemoryWarehouseError):
    """Persistence failure. Writes committed before it are not rolled back."""


class PhaseInProgressError(MemoryWarehouseError):
    """An evolution phase of the same kind is already running."""

    def __init__(self, phase: str) -> None:
        super().__init__(f"Evolution phase '{phase}' is already running")
        self.phase = phase


class EvolutionCancelled(MemoryWarehouseError):
    """Cancellation was requested between batch steps."""

    def __init__(self, phase: str) -> None:
        super().__init__(f"Evolution phase '{phase}' was cancelled")
        self.phase = phase
