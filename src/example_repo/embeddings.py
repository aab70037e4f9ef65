"""
Embedding provider for example-document similarity search.

Wraps the Google GenAI embedding API for document and query embedding
with configurable model and dimensions.
"""

from __future__ import annotations

import os
from typing import Any, Protocol

from google.genai import Client as GenAIClient


_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768


class Embedder(Protocol):
    """The slice of an embedding provider the repository depends on."""

    def embed_document(self, text: str) -> list[float]:
        """Embed one document text."""

    def embed_query(self, query: str) -> list[float]:
        """Embed one search query."""


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("EXAMPLE_REPO_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("EXAMPLE_REPO_EMBEDDING_DIM", str(_DEFAULT_DIM)))

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    def embed_document(self, text: str) -> list[float]:
        """Embed a single reference document's semantic content."""
        return self._embed([text], task_type="RETRIEVAL_DOCUMENT")[0]

    def embed_query(self, query: str) -> list[float]:
        """Embed a single query text for retrieval."""
        return self._embed([query], task_type="RETRIEVAL_QUERY")[0]

    def _embed(self, contents: list[str], *, task_type: str) -> list[list[float]]:
        result = self._client.models.embed_content(
            model=self.model,
            contents=contents,
            config={
                "task_type": task_type,
                "output_dimensionality": self.dim,
            },
        )
        embeddings = result.embeddings or []
        if len(embeddings) != len(contents):
            raise RuntimeError(
                f"Embedding API returned {len(embeddings)} vectors for {len(contents)} inputs."
            )
        return [list(emb.values) for emb in embeddings]
