from __future__ import annotations

"""Milvus-backed vector store for dense similarity search."""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Iterable

from src.rag.embeddings import EmbeddingConfigError, EmbeddingProvider
from src.rag.types import Document


class MilvusDependencyError(RuntimeError):
    """Raised when Milvus dependencies are missing."""
    pass


@dataclass
class MilvusConfig:
    """Configuration for Milvus connection and indexing."""
    uri: str
    token: str | None
    collection: str
    consistency: str
    index_type: str
    metric_type: str
    nlist: int
    nprobe: int
    hnsw_m: int = 16
    hnsw_ef_construction: int = 200
    hnsw_ef: int = 64
    default_top_k: int = 4
    max_content_length: int = 65535


@dataclass
class MilvusVectorStore:
    """Milvus vector store holding document content, origin and embeddings."""
    embedder: EmbeddingProvider
    config: MilvusConfig

    def __post_init__(self) -> None:
        """Connect to Milvus and ensure collection exists."""
        try:
            from pymilvus import connections
        except ImportError as exc:
            raise MilvusDependencyError("pymilvus is required for MilvusVectorStore") from exc
        if self.embedder.dimension <= 0:
            raise EmbeddingConfigError(
                "Embedding dimension must be set before initializing MilvusVectorStore"
            )
        connections.connect(
            alias="default",
            uri=self.config.uri,
            token=self.config.token,
        )
        self.ensure_collection()

    def ensure_collection(self) -> None:
        """Create collection schema and index when missing."""
        from pymilvus import Collection, CollectionSchema, DataType, FieldSchema, utility

        if utility.has_collection(self.config.collection):
            self.collection = Collection(self.config.collection, consistency_level=self.config.consistency)
            existing_dim = self._existing_embedding_dim()
            if existing_dim is not None and existing_dim != self.embedder.dimension:
                raise EmbeddingConfigError(
                    "Milvus collection embedding dimension mismatch: "
                    f"{existing_dim} (collection) vs {self.embedder.dimension} (embedder). "
                    "Update EMBEDDING_DIMENSION or use a new MILVUS_COLLECTION."
                )
            return

        fields = [
            FieldSchema(
                name="doc_id",
                dtype=DataType.VARCHAR,
                is_primary=True,
                max_length=256,
            ),
            FieldSchema(
                name="content",
                dtype=DataType.VARCHAR,
                max_length=self.config.max_content_length,
            ),
            FieldSchema(name="source_type", dtype=DataType.VARCHAR, max_length=64),
            FieldSchema(name="source_name", dtype=DataType.VARCHAR, max_length=256),
            FieldSchema(name="metadata", dtype=DataType.VARCHAR, max_length=8192),
            FieldSchema(
                name="embedding",
                dtype=DataType.FLOAT_VECTOR,
                dim=self.embedder.dimension,
            ),
        ]
        schema = CollectionSchema(fields=fields, description="Hybrid retrieval documents")
        self.collection = Collection(
            self.config.collection,
            schema,
            consistency_level=self.config.consistency,
        )
        self._create_index()

    def _index_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {
                "index_type": "HNSW",
                "metric_type": self.config.metric_type,
                "params": {
                    "M": self.config.hnsw_m,
                    "efConstruction": self.config.hnsw_ef_construction,
                },
            }
        return {
            "index_type": self.config.index_type,
            "metric_type": self.config.metric_type,
            "params": {"nlist": self.config.nlist},
        }

    def _search_params(self) -> dict[str, Any]:
        if self.config.index_type.upper() == "HNSW":
            return {"metric_type": self.config.metric_type, "params": {"ef": self.config.hnsw_ef}}
        return {"metric_type": self.config.metric_type, "params": {"nprobe": self.config.nprobe}}

    def _create_index(self) -> None:
        """Create the dense vector index on the collection."""
        self.collection.create_index(field_name="embedding", index_params=self._index_params())

    def _existing_embedding_dim(self) -> int | None:
        """Read embedding dimension from existing collection schema."""
        for field in self.collection.schema.fields:
            if field.name != "embedding":
                continue
            params = getattr(field, "params", None)
            dim = params.get("dim") if isinstance(params, dict) else getattr(field, "dim", None)
            try:
                return int(dim) if dim is not None else None
            except (TypeError, ValueError):
                return None
        return None

    def add_documents(self, documents: Iterable[Document]) -> int:
        """Insert documents with dense embeddings."""
        rows: list[dict[str, Any]] = []
        for document in documents:
            content = document.content[: self.config.max_content_length]
            doc_id = document.doc_id or hashlib.sha256(content.encode("utf-8")).hexdigest()
            rows.append(
                {
                    "doc_id": doc_id,
                    "content": content,
                    "source_type": document.source_type or "vector",
                    "source_name": document.source_name,
                    "metadata": json.dumps(document.metadata, ensure_ascii=True, default=str),
                    "embedding": self.embedder.embed(content),
                }
            )

        if not rows:
            return 0

        self.collection.insert(rows)
        self.collection.flush()
        return len(rows)

    def similarity_search(self, vector: list[float], top_k: int | None = None) -> list[Document]:
        """Return documents nearest to the vector, best match first."""
        limit = top_k or self.config.default_top_k
        if limit <= 0:
            return []
        self.collection.load()
        results = self.collection.search(
            data=[vector],
            anns_field="embedding",
            param=self._search_params(),
            limit=limit,
            output_fields=["doc_id", "content", "source_type", "source_name", "metadata"],
        )
        documents: list[Document] = []
        for hit in results[0]:
            entity = hit.entity
            metadata = self._deserialize_metadata(entity.get("metadata"))
            metadata["score"] = float(hit.score)
            documents.append(
                Document(
                    content=entity.get("content"),
                    source_type=entity.get("source_type") or "vector",
                    source_name=entity.get("source_name") or "",
                    metadata=metadata,
                    doc_id=entity.get("doc_id"),
                )
            )
        return documents

    def _deserialize_metadata(self, value: Any) -> dict[str, Any]:
        """Deserialize metadata from storage."""
        if value is None:
            return {}
        if isinstance(value, dict):
            return dict(value)
        if isinstance(value, str):
            try:
                data = json.loads(value)
            except json.JSONDecodeError:
                return {"raw": value}
            return data if isinstance(data, dict) else {"raw": data}
        return {"raw": value}

    def stats(self) -> dict[str, int | str]:
        """Return collection stats."""
        return {
            "backend": "milvus",
            "document_count": int(self.collection.num_entities),
            "embedding_dimension": self.embedder.dimension,
            "collection": self.config.collection,
        }

    def health(self) -> dict[str, str | bool]:
        """Return collection health info."""
        try:
            _ = self.collection.num_entities
        except Exception as exc:
            return {
                "backend": "milvus",
                "ok": False,
                "detail": type(exc).__name__,
            }
        return {
            "backend": "milvus",
            "ok": True,
            "collection": self.config.collection,
        }
