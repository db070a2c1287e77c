"""Base embedder interface."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEmbedder(ABC):
    """Turns text into fixed-length float vectors."""

    dimensions: int

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return the embedding for ``text``. Raises EmbeddingError on failure."""

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts; providers with batch endpoints override this."""
        return [self.embed(text) for text in texts]
