"""Exact brute-force similarity index over embedding vectors.

Every query is a linear scan with cosine similarity. This is the seam where an
approximate nearest-neighbour index would replace the scan; callers only rely
on the ``search`` contract below.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from memory.vector_math import cosine_similarity


@dataclass(frozen=True)
class SimilarityHit:
    """One search result."""

    id: str
    similarity: float
    payload: dict[str, Any] = field(default_factory=dict)


CorpusRow = tuple[str, Sequence[float] | None, dict[str, Any]]


def find_similar(
    query: Sequence[float],
    corpus: Iterable[CorpusRow],
    exclude_id: str | None = None,
    threshold: float = 0.0,
    limit: int = 0,
) -> list[SimilarityHit]:
    """Return corpus rows with similarity >= threshold, best first.

    Ties keep corpus order. Rows without a vector are skipped. ``limit`` <= 0
    means no cap.
    """
    hits: list[SimilarityHit] = []
    for item_id, vector, payload in corpus:
        if exclude_id is not None and item_id == exclude_id:
            continue
        if not vector:
            continue
        score = cosine_similarity(query, vector)
        if score >= threshold:
            hits.append(SimilarityHit(id=item_id, similarity=score, payload=payload))
    hits.sort(key=lambda hit: hit.similarity, reverse=True)
    if limit > 0:
        return hits[:limit]
    return hits


class SimilarityIndex:
    """In-memory snapshot of (id, vector, payload) rows."""

    def __init__(self, rows: Iterable[CorpusRow] = ()) -> None:
        self._items: dict[str, tuple[Sequence[float], dict[str, Any]]] = {}
        self.bulk_add(rows)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item_id: str, vector: Sequence[float] | None, payload: dict[str, Any] | None = None) -> None:
        """Add or replace a row. Rows without a vector are ignored."""
        if not vector:
            self._items.pop(item_id, None)
            return
        self._items[item_id] = (vector, payload or {})

    def bulk_add(self, rows: Iterable[CorpusRow]) -> None:
        for item_id, vector, payload in rows:
            self.add(item_id, vector, payload)

    def remove(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    def search(
        self,
        query: Sequence[float],
        exclude_id: str | None = None,
        threshold: float = 0.0,
        limit: int = 0,
    ) -> list[SimilarityHit]:
        """Search the snapshot using insertion order as the tie-break."""
        rows = ((item_id, vector, payload) for item_id, (vector, payload) in self._items.items())
        return find_similar(query, rows, exclude_id=exclude_id, threshold=threshold, limit=limit)
