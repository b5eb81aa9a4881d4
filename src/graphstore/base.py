from __future__ import annotations

"""Graph store protocol, errors and read-only statement checks."""

import re
from dataclasses import dataclass
from typing import Any, Protocol


class GraphStoreError(RuntimeError):
    """Raised when the graph store is unavailable or misconfigured."""
    pass


class GraphQueryError(GraphStoreError):
    """Raised when a graph statement is rejected or fails to execute."""
    pass


class GraphStore(Protocol):
    """Protocol for graph stores queried with Cypher."""

    def get_schema(self) -> str:
        """Return a textual description of node labels and relationships."""
        raise NotImplementedError

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Execute a statement and return one mapping per result row."""
        raise NotImplementedError

    def health(self) -> dict[str, str | bool]:
        """Return connectivity information for the graph store."""
        raise NotImplementedError

    def close(self) -> None:
        """Release connections held by the graph store."""
        raise NotImplementedError


_WRITE_CLAUSE_RE = re.compile(
    r"\b(create|merge|delete|detach|set|remove|drop|foreach|load\s+csv)\b",
    re.IGNORECASE,
)
_STRING_LITERAL_RE = re.compile(r"'(?:[^'\\]|\\.)*'|\"(?:[^\"\\]|\\.)*\"")


def validate_read_statement(statement: str) -> str:
    """Return the statement if it is a single read-only Cypher query."""
    normalized = statement.strip()
    if not normalized:
        raise GraphQueryError("Cypher statement is empty")
    if normalized.endswith(";"):
        normalized = normalized[:-1].rstrip()
    unquoted = _STRING_LITERAL_RE.sub("''", normalized)
    if ";" in unquoted:
        raise GraphQueryError("Only single Cypher statements are allowed")
    if "//" in unquoted or "/*" in unquoted:
        raise GraphQueryError("Comments are not allowed in Cypher statements")
    match = _WRITE_CLAUSE_RE.search(unquoted)
    if match:
        raise GraphQueryError(f"Write clause not allowed: {match.group(1).upper()}")
    return normalized


@dataclass(frozen=True)
class NullGraphStore:
    """Graph store placeholder used when no graph backend is configured."""
    reason: str = "Graph store is not configured"

    def get_schema(self) -> str:
        raise GraphStoreError(self.reason)

    def query(self, statement: str) -> list[dict[str, Any]]:
        raise GraphStoreError(self.reason)

    def health(self) -> dict[str, str | bool]:
        return {"backend": "none", "ok": False, "detail": self.reason}

    def close(self) -> None:
        return None
