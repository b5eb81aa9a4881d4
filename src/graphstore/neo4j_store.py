from __future__ import annotations

"""Neo4j-backed graph store for Cypher retrieval."""

import logging
from dataclasses import dataclass, field
from itertools import islice
from typing import Any

from src.graphstore.base import GraphQueryError, GraphStoreError, validate_read_statement

logger = logging.getLogger(__name__)

_NODE_PROPERTIES_QUERY = (
    "CALL db.schema.nodeTypeProperties() "
    "YIELD nodeLabels, propertyName, propertyTypes "
    "RETURN nodeLabels, propertyName, propertyTypes"
)
_REL_PROPERTIES_QUERY = (
    "CALL db.schema.relTypeProperties() "
    "YIELD relType, propertyName, propertyTypes "
    "RETURN relType, propertyName, propertyTypes"
)
_REL_PATTERNS_QUERY = (
    "MATCH (a)-[r]->(b) "
    "RETURN DISTINCT labels(a) AS start, type(r) AS type, labels(b) AS end "
    "LIMIT $limit"
)


@dataclass
class Neo4jConfig:
    """Connection settings for Neo4j."""
    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = "neo4j"
    database: str = "neo4j"
    max_rows: int = 100
    schema_pattern_limit: int = 100
    enforce_read_only: bool = True


@dataclass
class Neo4jGraphStore:
    """Graph store executing read-only Cypher against Neo4j."""
    config: Neo4jConfig
    driver: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Create a driver when one was not supplied."""
        if self.driver is not None:
            return
        try:
            from neo4j import GraphDatabase
        except ImportError as exc:
            raise GraphStoreError("neo4j is required for Neo4jGraphStore") from exc
        self.driver = GraphDatabase.driver(
            self.config.uri,
            auth=(self.config.username, self.config.password),
        )

    def close(self) -> None:
        """Close the underlying driver."""
        self.driver.close()

    def get_schema(self) -> str:
        """Describe node properties, relationship properties and patterns."""
        try:
            with self.driver.session(database=self.config.database) as session:
                node_rows = session.execute_read(_collect, _NODE_PROPERTIES_QUERY, None, {})
                rel_rows = session.execute_read(_collect, _REL_PROPERTIES_QUERY, None, {})
                patterns = session.execute_read(
                    _collect,
                    _REL_PATTERNS_QUERY,
                    None,
                    {"limit": self.config.schema_pattern_limit},
                )
        except Exception as exc:
            raise GraphStoreError(f"Failed to load graph schema: {exc}") from exc
        return format_schema(node_rows, rel_rows, patterns)

    def query(self, statement: str) -> list[dict[str, Any]]:
        """Run a statement in a read transaction and return row mappings."""
        if self.config.enforce_read_only:
            statement = validate_read_statement(statement)
        try:
            with self.driver.session(database=self.config.database) as session:
                rows = session.execute_read(_collect, statement, self.config.max_rows, {})
        except Exception as exc:
            raise GraphQueryError(str(exc)) from exc
        logger.info("graph_query_complete", extra={"rows": len(rows)})
        return rows

    def health(self) -> dict[str, str | bool]:
        """Return connectivity information for the graph store."""
        try:
            self.driver.verify_connectivity()
        except Exception as exc:
            return {"backend": "neo4j", "ok": False, "detail": type(exc).__name__}
        return {"backend": "neo4j", "ok": True}


def _collect(
    tx: Any, statement: str, limit: int | None, params: dict[str, Any]
) -> list[dict[str, Any]]:
    result = tx.run(statement, params)
    records = islice(result, limit) if limit is not None else result
    return [record.data() for record in records]


def _format_labels(labels: list[str] | None) -> str:
    return ":".join(labels or [])


def format_schema(
    node_rows: list[dict[str, Any]],
    rel_rows: list[dict[str, Any]],
    patterns: list[dict[str, Any]],
) -> str:
    """Render schema introspection rows as prompt-ready text."""
    node_props: dict[str, list[str]] = {}
    for row in node_rows:
        label = _format_labels(row.get("nodeLabels"))
        if not label:
            continue
        props = node_props.setdefault(label, [])
        name = row.get("propertyName")
        if name:
            types = "|".join(row.get("propertyTypes") or [])
            props.append(f"{name}: {types}" if types else name)

    rel_props: dict[str, list[str]] = {}
    for row in rel_rows:
        rel_type = str(row.get("relType") or "").lstrip(":").strip("`")
        if not rel_type:
            continue
        props = rel_props.setdefault(rel_type, [])
        name = row.get("propertyName")
        if name:
            types = "|".join(row.get("propertyTypes") or [])
            props.append(f"{name}: {types}" if types else name)

    lines = ["Node properties:"]
    for label, props in node_props.items():
        lines.append(f"{label} {{{', '.join(props)}}}")
    lines.append("Relationship properties:")
    for rel_type, props in rel_props.items():
        lines.append(f"{rel_type} {{{', '.join(props)}}}")
    lines.append("The relationships:")
    for row in patterns:
        start = _format_labels(row.get("start"))
        end = _format_labels(row.get("end"))
        lines.append(f"(:{start})-[:{row.get('type')}]->(:{end})")
    return "\n".join(lines)
