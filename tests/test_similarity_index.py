"""Brute-force similarity search tests."""

from __future__ import annotations

import pytest

from memory.stores.vector_store import SimilarityIndex, find_similar


def test_find_similar_orders_best_first_and_applies_threshold() -> None:
    corpus = [
        ("far", [0.0, 1.0], {}),
        ("near", [1.0, 0.1], {}),
        ("same", [1.0, 0.0], {"tag": "x"}),
    ]
    hits = find_similar([1.0, 0.0], corpus, threshold=0.5)

    assert [hit.id for hit in hits] == ["same", "near"]
    assert hits[0].similarity == pytest.approx(1.0)
    assert hits[0].payload == {"tag": "x"}


def test_find_similar_threshold_is_inclusive() -> None:
    hits = find_similar([1.0, 0.0], [("a", [1.0, 0.0], {})], threshold=1.0)
    assert [hit.id for hit in hits] == ["a"]


def test_find_similar_excludes_id_skips_missing_vectors_and_limits() -> None:
    corpus = [
        ("self", [1.0, 0.0], {}),
        ("empty", None, {}),
        ("a", [1.0, 0.0], {}),
        ("b", [1.0, 0.0], {}),
        ("c", [1.0, 0.0], {}),
    ]
    hits = find_similar([1.0, 0.0], corpus, exclude_id="self", limit=2)

    # Ties keep corpus order.
    assert [hit.id for hit in hits] == ["a", "b"]


def test_similarity_index_add_remove_and_search() -> None:
    index = SimilarityIndex([("a", [1.0, 0.0], {}), ("b", [0.0, 1.0], {})])
    assert len(index) == 2

    index.add("c", [0.9, 0.1])
    index.add("d", None)
    assert len(index) == 3

    hits = index.search([1.0, 0.0], exclude_id="a", threshold=0.7)
    assert [hit.id for hit in hits] == ["c"]

    index.remove("c")
    assert index.search([1.0, 0.0], exclude_id="a", threshold=0.7) == []
    assert len(index) == 2
