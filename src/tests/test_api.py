from __future__ import annotations

"""Tests for the HTTP retrieval surface."""

import httpx
import pytest
from prometheus_client import REGISTRY

from src.app.dependencies import close_retriever, get_retriever
from src.app.main import app
from src.app.metrics import record_graph_failure
from src.rag.embeddings import EmbeddingError, HashEmbedder
from src.rag.retrieval import HybridRetriever
from src.rag.types import Document
from src.tests.fakes import FakeChatModel, FakeEmbedder, FakeGraphStore, FakeVectorStore
from src.vectorstore.inmemory import InMemoryVectorStore

pytestmark = pytest.mark.anyio


def get_client(retriever: HybridRetriever) -> httpx.AsyncClient:
    """Build an ASGI test client bound to the given retriever."""
    app.dependency_overrides[get_retriever] = lambda: retriever
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def build_retriever(**overrides) -> HybridRetriever:
    params = {
        "vectorstore": FakeVectorStore(),
        "embedder": FakeEmbedder(),
        "chat_model": FakeChatModel(),
        "graph_store": FakeGraphStore(rows=[{"name": "John", "role": "engineer"}]),
    }
    params.update(overrides)
    return HybridRetriever(**params)


async def test_health() -> None:
    async with get_client(build_retriever()) as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_ingest_then_retrieve() -> None:
    retriever = build_retriever()
    async with get_client(retriever) as client:
        ingest_response = await client.post(
            "/ingest",
            json={"documents": [{"content": "John is an engineer at Acme."}]},
        )
        assert ingest_response.status_code == 200
        assert ingest_response.json() == {"ingested": 1}

        response = await client.post(
            "/retrieve",
            json={"query": "Who is John?"},
            headers={"x-request-id": "req-1"},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["count"] == 2
    assert payload["request_id"] == "req-1"
    assert [doc["source_type"] for doc in payload["documents"]] == ["vector", "graph"]
    assert payload["documents"][1] == {
        "content": "name: John, role: engineer",
        "source_type": "graph",
        "source_name": "knowledge_graph",
        "metadata": {"query": "Who is John?", "record_index": 0},
    }


async def test_retrieve_reports_vector_failure() -> None:
    retriever = build_retriever(embedder=FakeEmbedder(error=EmbeddingError("down")))
    async with get_client(retriever) as client:
        response = await client.post("/retrieve", json={"query": "Who is John?"})
    assert response.status_code == 502
    assert response.json()["detail"] == "EmbeddingError"


async def test_retrieve_survives_graph_failure() -> None:
    retriever = build_retriever(
        vectorstore=FakeVectorStore(results=[Document(content="Vector result", source_type="vector")]),
        graph_store=FakeGraphStore(query_error=RuntimeError("bad cypher")),
    )
    async with get_client(retriever) as client:
        response = await client.post("/retrieve", json={"query": "Tell me about John"})
    assert response.status_code == 200
    assert [doc["content"] for doc in response.json()["documents"]] == ["Vector result"]


async def test_stats_reports_vector_store_size() -> None:
    embedder = HashEmbedder(dimension=8)
    retriever = build_retriever(
        vectorstore=InMemoryVectorStore(embedder=embedder),
        embedder=embedder,
    )
    async with get_client(retriever) as client:
        await client.post("/ingest", json={"documents": [{"content": "Acme builds rockets."}]})
        response = await client.get("/stats")
    assert response.status_code == 200
    assert response.json() == {
        "backend": "memory",
        "document_count": 1,
        "embedding_dimension": 8,
        "collection": None,
    }


async def test_stats_health_reports_both_stores() -> None:
    retriever = build_retriever(
        vectorstore=InMemoryVectorStore(embedder=HashEmbedder()),
        graph_store=FakeGraphStore(schema_error=RuntimeError("offline")),
    )
    async with get_client(retriever) as client:
        response = await client.get("/stats/health")
    assert response.status_code == 200
    assert response.json() == {
        "vectorstore": {"backend": "memory", "ok": True},
        "graphstore": {"backend": "fake", "ok": False},
    }


def test_close_retriever_closes_graph_store_and_clears_cache() -> None:
    retriever = get_retriever()
    graph_store = FakeGraphStore()
    retriever.graph_store = graph_store

    close_retriever()

    assert graph_store.closed
    assert get_retriever.cache_info().currsize == 0


async def test_retrieve_counts_documents_and_graph_failures() -> None:
    def sample(name: str, labels: dict[str, str]) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    failures_before = sample("graph_retrieval_failures_total", {"error": "RuntimeError"})
    vector_before = sample("retrieved_documents_total", {"source_type": "vector"})
    retriever = build_retriever(
        vectorstore=FakeVectorStore(results=[Document(content="Vector result", source_type="vector")]),
        graph_store=FakeGraphStore(query_error=RuntimeError("bad cypher")),
        on_graph_failure=record_graph_failure,
    )
    async with get_client(retriever) as client:
        response = await client.post("/retrieve", json={"query": "Tell me about John"})

    assert response.status_code == 200
    assert sample("graph_retrieval_failures_total", {"error": "RuntimeError"}) == failures_before + 1
    assert sample("retrieved_documents_total", {"source_type": "vector"}) == vector_before + 1
