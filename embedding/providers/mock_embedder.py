"""Deterministic local embedder for offline usage and tests."""

from __future__ import annotations

import hashlib
import math
import re

from embedding.base_embedder import BaseEmbedder
from memory.errors import EmbeddingError


class HashingEmbedder(BaseEmbedder):
    """Hashes tokens into a fixed number of buckets and L2-normalises the counts.

    Texts sharing vocabulary land close together, which is enough for local
    runs without an embedding API.
    """

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        return [token for token in re.split(r"[^a-zA-Z0-9]+", text.lower()) if token]

    def _bucket(self, token: str) -> int:
        digest = hashlib.sha256(token.encode("utf-8")).digest()
        return int.from_bytes(digest[:8], "big") % self.dimensions

    def embed(self, text: str) -> list[float]:
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        vector = [0.0] * self.dimensions
        for token in self._tokenize(text):
            vector[self._bucket(token)] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]
