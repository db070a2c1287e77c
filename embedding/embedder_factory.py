"""Embedder provider factory."""

from __future__ import annotations

from typing import Any

from embedding.base_embedder import BaseEmbedder
from embedding.providers.mock_embedder import HashingEmbedder
from embedding.providers.openai_embedder import OpenAIEmbedder


def build_embedder(config: dict[str, Any]) -> BaseEmbedder:
    """Build an embedder from configuration, defaulting to the local hashing provider."""
    embedding_cfg = config.get("embedding", {})
    active = embedding_cfg.get("active_provider", "hashing")
    providers = embedding_cfg.get("providers", {})
    active_cfg = providers.get(active, {})
    provider_type = active_cfg.get("type", active)

    if provider_type == "openai":
        return OpenAIEmbedder(
            model=active_cfg.get("model", "text-embedding-3-small"),
            dimensions=int(active_cfg.get("dimensions", 1536)),
            base_url=active_cfg.get("base_url"),
        )
    return HashingEmbedder(dimensions=int(active_cfg.get("dimensions", 256)))
