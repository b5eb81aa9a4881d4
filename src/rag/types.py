from __future__ import annotations

"""Core data types for documents, few-shot examples and retrieval results."""

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class Document:
    """Retrieved document with its origin and metadata."""
    content: str
    source_type: str = ""
    source_name: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    doc_id: str | None = None


@dataclass(frozen=True)
class Example:
    """Question and graph query pair used for few-shot prompting."""
    question: str
    query: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Example:
        """Build an example from a ``{"question": ..., "query": ...}`` mapping."""
        question = data.get("question")
        query = data.get("query")
        if not isinstance(question, str) or not isinstance(query, str):
            raise ValueError("Example requires string 'question' and 'query' fields")
        return cls(question=question, query=query)


@dataclass(frozen=True)
class GraphPathResult:
    """Outcome of the graph retrieval path."""
    documents: list[Document] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
