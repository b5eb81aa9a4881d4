from __future__ import annotations

"""In-memory vector store for local testing and small datasets."""

import math
from dataclasses import dataclass, field
from typing import Iterable, Protocol

from src.rag.embeddings import EmbeddingProvider
from src.rag.types import Document


class VectorStore(Protocol):
    """Protocol for vector stores searched by embedding."""

    def add_documents(self, documents: Iterable[Document]) -> int:
        """Embed and store documents, returning the number stored."""
        raise NotImplementedError

    def similarity_search(self, vector: list[float], top_k: int | None = None) -> list[Document]:
        """Return documents ranked by similarity to the vector."""
        raise NotImplementedError


@dataclass
class InMemoryVectorStore:
    """Simple in-memory vector store with cosine similarity search."""
    embedder: EmbeddingProvider
    default_top_k: int = 4
    documents: list[Document] = field(default_factory=list)
    vectors: list[list[float]] = field(default_factory=list)

    def add_documents(self, documents: Iterable[Document]) -> int:
        """Embed and store documents."""
        added = 0
        for document in documents:
            vector = self.embedder.embed(document.content)
            self.documents.append(document)
            self.vectors.append(vector)
            added += 1
        return added

    def similarity_search(self, vector: list[float], top_k: int | None = None) -> list[Document]:
        """Return stored documents ordered by cosine similarity."""
        limit = top_k or self.default_top_k
        if not self.documents or limit <= 0:
            return []
        scored = [
            (doc, self._cosine_similarity(vector, stored))
            for doc, stored in zip(self.documents, self.vectors)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [doc for doc, _ in scored[:limit]]

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Compute cosine similarity between two vectors."""
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)

    def stats(self) -> dict[str, int | str]:
        """Return basic stats for the vector store."""
        return {
            "backend": "memory",
            "document_count": len(self.documents),
            "embedding_dimension": self.embedder.dimension,
        }

    def health(self) -> dict[str, str | bool]:
        """Return health information for the vector store."""
        return {
            "backend": "memory",
            "ok": True,
        }
