"""OpenAI embeddings provider."""

from __future__ import annotations

import logging
import os
from typing import Any

from embedding.base_embedder import BaseEmbedder
from memory.errors import EmbeddingError

logger = logging.getLogger("mw.embedding.openai")


class OpenAIEmbedder(BaseEmbedder):
    """OpenAI embeddings adapter. Requires the ``openai`` package and OPENAI_API_KEY.

    Errors are raised, never retried here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        base_url: str | None = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self.base_url = base_url
        self._client: Any | None = None

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise EmbeddingError("OpenAI embedder unavailable: OPENAI_API_KEY not set")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise EmbeddingError(
                "OpenAI embedder unavailable: `openai` package missing. "
                "Install with: pip install openai"
            ) from exc
        self._client = OpenAI(api_key=api_key, base_url=self.base_url)
        return self._client

    def embed(self, text: str) -> list[float]:
        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError("Cannot embed empty text")
        return self._request([text.strip()])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts or any(not isinstance(t, str) or not t.strip() for t in texts):
            raise EmbeddingError("Cannot embed an empty text batch")
        return self._request([t.strip() for t in texts])

    def _request(self, inputs: list[str]) -> list[list[float]]:
        client = self._get_client()
        try:
            response = client.embeddings.create(
                model=self.model,
                input=inputs,
                dimensions=self.dimensions,
            )
        except Exception as exc:  # pragma: no cover - external API path
            logger.error("OpenAI embedding call failed: %s", exc)
            raise EmbeddingError(f"Failed to generate embedding: {exc}") from exc
        return [list(item.embedding) for item in response.data]
