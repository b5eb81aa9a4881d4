from __future__ import annotations

"""Conversion of graph query rows into retrievable documents."""

import json
from typing import Any, Iterable, Mapping

from src.rag.types import Document

GRAPH_SOURCE_TYPE = "graph"
GRAPH_SOURCE_NAME = "knowledge_graph"


class RecordSerializationError(ValueError):
    """Raised when a graph record cannot be rendered as text."""
    pass


def _format_value(value: Any) -> str:
    if isinstance(value, (Mapping, list, tuple)):
        try:
            return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise RecordSerializationError(str(exc)) from exc
    if value is None or isinstance(value, bool):
        return json.dumps(value)
    return str(value)


def format_graph_record(record: Mapping[str, Any]) -> str:
    """Render a record as comma separated ``key: value`` pairs."""
    return ", ".join(f"{key}: {_format_value(value)}" for key, value in record.items())


def graph_records_to_documents(
    records: Iterable[Mapping[str, Any]], original_query: str
) -> list[Document]:
    """Normalize graph rows into documents, skipping rows with no content."""
    documents: list[Document] = []
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise RecordSerializationError(
                f"Graph record {index} is {type(record).__name__}, expected a mapping"
            )
        content = format_graph_record(record)
        if not content:
            continue
        documents.append(
            Document(
                content=content,
                source_type=GRAPH_SOURCE_TYPE,
                source_name=GRAPH_SOURCE_NAME,
                metadata={"query": original_query, "record_index": index},
            )
        )
    return documents
