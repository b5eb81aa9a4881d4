from __future__ import annotations

"""Embedding providers used by the vector retrieval path."""

import hashlib
import math
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingError(RuntimeError):
    """Raised when embeddings fail or are invalid."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError


def validate_vector(vector: list[float], dimension: int) -> list[float]:
    """Validate and normalize embedding vectors."""
    if len(vector) != dimension:
        raise EmbeddingError(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}"
        )
    cleaned: list[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EmbeddingError("Embedding contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingError("Embedding contains a non-finite value")
        cleaned.append(float(value))
    return cleaned


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 256

    def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            return validate_vector([0.0] * self.dimension, self.dimension)
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dimension
            vector[idx] += 1.0
        return validate_vector(self._l2_normalize(vector), self.dimension)

    def _l2_normalize(self, vector: list[float]) -> list[float]:
        """Normalize vector magnitude to 1.0."""
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


def resolve_openai_dimension(model: str) -> int | None:
    """Return expected dimension for OpenAI embedding model."""
    mapping = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }
    return mapping.get(model)


def extract_embedding(response: Any) -> list[float]:
    """Pull the first embedding vector out of a provider response.

    OpenAI returns ``response.data[0].embedding``; the Gemini SDK returns either
    a mapping or an object with an ``embedding`` attribute.
    """
    data = getattr(response, "data", None)
    if data:
        embedding = getattr(data[0], "embedding", None)
    elif isinstance(response, dict):
        embedding = response.get("embedding")
    else:
        embedding = getattr(response, "embedding", None)
    if embedding is None:
        raise EmbeddingError("Embedding response missing embedding vector")
    return list(embedding)


@dataclass
class OpenAIEmbedder:
    """Query embedder backed by the OpenAI embeddings API."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAIEmbedder")
        if not self.model:
            raise EmbeddingConfigError("OPENAI_EMBEDDING_MODEL is required for OpenAIEmbedder")
        resolved = resolve_openai_dimension(self.model)
        if self.dimension <= 0:
            if resolved is None:
                raise EmbeddingConfigError(
                    "EMBEDDING_DIMENSION must be set for OpenAI embeddings when model is unknown"
                )
            self.dimension = resolved
        elif resolved is not None and self.dimension != resolved:
            raise EmbeddingConfigError(
                f"EMBEDDING_DIMENSION should be {resolved} for model {self.model}"
            )
        if self.client is None:
            from openai import OpenAI

            self.client = OpenAI(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {type(exc).__name__}") from exc
        return validate_vector(extract_embedding(response), self.dimension)


@dataclass
class GeminiEmbedder:
    """Query embedder backed by the Gemini embeddings API."""
    api_key: str
    model: str
    dimension: int
    task_type: str = "retrieval_query"
    client: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise EmbeddingConfigError("GEMINI_API_KEY is required for GeminiEmbedder")
        if not self.model:
            raise EmbeddingConfigError("GEMINI_EMBEDDING_MODEL is required for GeminiEmbedder")
        if self.dimension <= 0:
            raise EmbeddingConfigError("EMBEDDING_DIMENSION must be set for Gemini embeddings")
        if self.client is None:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self.client = genai

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embed_content(
                model=self.model, content=text, task_type=self.task_type
            )
        except Exception as exc:
            raise EmbeddingError(f"Gemini embedding request failed: {type(exc).__name__}") from exc
        return validate_vector(extract_embedding(response), self.dimension)
