from __future__ import annotations

"""Hybrid retrieval combining vector similarity search and graph queries."""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from src.graphstore.base import GraphStore
from src.rag.embeddings import EmbeddingProvider
from src.rag.graph_documents import graph_records_to_documents
from src.rag.llm import ChatModel
from src.rag.translator import QueryTranslator
from src.rag.types import Document, Example, GraphPathResult
from src.vectorstore.inmemory import VectorStore

logger = logging.getLogger(__name__)


def content_fingerprint(content: str) -> str:
    """Return a fixed-size hash of the exact document content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def combine_results(
    vector_docs: Iterable[Document], graph_docs: Iterable[Document]
) -> list[Document]:
    """Concatenate vector results ahead of graph results."""
    return [*vector_docs, *graph_docs]


def deduplicate_documents(documents: Iterable[Document]) -> list[Document]:
    """Keep the first document for each distinct content fingerprint."""
    unique: dict[str, Document] = {}
    for document in documents:
        unique.setdefault(content_fingerprint(document.content), document)
    return list(unique.values())


@dataclass
class HybridRetriever:
    """Retrieves documents from a vector store and a knowledge graph.

    Vector search is the primary signal: embedding or vector store failures
    propagate to the caller. The graph path is best effort: any failure while
    fetching the schema, translating the question, or executing the Cypher
    statement yields no graph documents for that call. ``on_graph_failure``
    is called with the swallowed exception.
    """
    vectorstore: VectorStore
    embedder: EmbeddingProvider
    chat_model: ChatModel
    graph_store: GraphStore
    examples: Sequence[Example | Mapping[str, Any]] = ()
    top_k: int | None = None
    parallel: bool = True
    on_graph_failure: Callable[[Exception], None] | None = None

    async def retrieve(self, query: str) -> list[Document]:
        """Return deduplicated vector and graph documents for a query."""
        if self.parallel:
            vector_outcome, graph_result = await asyncio.gather(
                asyncio.to_thread(self.retrieve_from_vectorstore, query),
                self.retrieve_from_graph(query),
                return_exceptions=True,
            )
            if isinstance(vector_outcome, BaseException):
                raise vector_outcome
            if isinstance(graph_result, BaseException):
                raise graph_result
            vector_docs = vector_outcome
        else:
            vector_docs = await asyncio.to_thread(self.retrieve_from_vectorstore, query)
            graph_result = await self.retrieve_from_graph(query)

        graph_docs = graph_result.documents if graph_result.ok else []
        documents = deduplicate_documents(combine_results(vector_docs, graph_docs))
        logger.info(
            "retrieval_complete",
            extra={
                "vector_results": len(vector_docs),
                "graph_results": len(graph_docs),
                "graph_ok": graph_result.ok,
                "results": len(documents),
                "query_length": len(query),
            },
        )
        return documents

    def retrieve_from_vectorstore(self, query: str) -> list[Document]:
        """Embed the query and run a similarity search."""
        vector = self.embedder.embed(query)
        return list(self.vectorstore.similarity_search(vector, top_k=self.top_k))

    async def retrieve_from_graph(self, query: str) -> GraphPathResult:
        """Translate the query to Cypher, execute it and normalize the rows."""
        try:
            schema = await asyncio.to_thread(self.graph_store.get_schema)
            translator = QueryTranslator(self.chat_model, schema)
            statement = await translator.convert(query, self.examples)
            records = await asyncio.to_thread(self.graph_store.query, statement)
        except Exception as exc:
            logger.warning(
                "graph_retrieval_failed",
                extra={"error": type(exc).__name__},
            )
            if self.on_graph_failure is not None:
                self.on_graph_failure(exc)
            return GraphPathResult(error=exc)
        return GraphPathResult(documents=graph_records_to_documents(records or [], query))
