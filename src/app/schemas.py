from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RetrieveRequest(BaseModel):
    query: str


class RetrievedDocument(BaseModel):
    content: str
    source_type: str
    source_name: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrieveResponse(BaseModel):
    documents: list[RetrievedDocument]
    count: int
    request_id: str


class IngestDocument(BaseModel):
    doc_id: str | None = None
    content: str = Field(min_length=1)
    source_name: str = "manual"
    metadata: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    documents: list[IngestDocument]


class IngestResponse(BaseModel):
    ingested: int


class StatsResponse(BaseModel):
    backend: str
    document_count: int
    embedding_dimension: int
    collection: str | None = None


class StatsHealthResponse(BaseModel):
    vectorstore: dict[str, Any]
    graphstore: dict[str, Any]
