"""Cooperative cancellation between batch steps."""

from __future__ import annotations

import threading

from memory.errors import EvolutionCancelled


def raise_if_cancelled(cancel_event: threading.Event | None, phase: str) -> None:
    """Abort the current phase before its next write if cancellation was requested."""
    if cancel_event is not None and cancel_event.is_set():
        raise EvolutionCancelled(phase)
