from __future__ import annotations

"""Tests for hybrid vector and graph retrieval."""

import ast
import inspect

import pytest

from src.graphstore.base import GraphQueryError, GraphStoreError, NullGraphStore
from src.rag import retrieval
from src.rag.embeddings import EmbeddingError
from src.rag.graph_documents import RecordSerializationError
from src.rag.llm import LLMError
from src.rag.retrieval import (
    HybridRetriever,
    combine_results,
    content_fingerprint,
    deduplicate_documents,
)
from src.rag.types import Document
from src.tests.fakes import FakeChatModel, FakeEmbedder, FakeGraphStore, FakeVectorStore

pytestmark = pytest.mark.anyio


def build_retriever(
    vector_docs: list[Document] | None = None,
    graph_store: FakeGraphStore | None = None,
    chat_model: FakeChatModel | None = None,
    embedder: FakeEmbedder | None = None,
    vectorstore: FakeVectorStore | None = None,
    parallel: bool = True,
    examples=(),
) -> HybridRetriever:
    return HybridRetriever(
        vectorstore=vectorstore or FakeVectorStore(results=list(vector_docs or [])),
        embedder=embedder or FakeEmbedder(),
        chat_model=chat_model or FakeChatModel(),
        graph_store=graph_store or FakeGraphStore(),
        examples=examples,
        parallel=parallel,
    )


@pytest.mark.parametrize("parallel", [True, False])
async def test_combines_vector_and_graph_results(parallel: bool) -> None:
    vector_doc = Document(content="Vector result", source_type="vector")
    graph_store = FakeGraphStore(rows=[{"name": "John", "age": 30}])
    retriever = build_retriever([vector_doc], graph_store=graph_store, parallel=parallel)

    results = await retriever.retrieve("Tell me about John")

    assert results[0] == vector_doc
    assert [doc.source_type for doc in results] == ["vector", "graph"]
    assert results[1].content == "name: John, age: 30"
    assert results[1].metadata == {"query": "Tell me about John", "record_index": 0}
    assert graph_store.statements == ["MATCH (n) RETURN n"]


async def test_graph_query_failure_returns_vector_documents() -> None:
    vector_doc = Document(content="Vector result")
    graph_store = FakeGraphStore(query_error=RuntimeError("Graph query failed"))
    retriever = build_retriever([vector_doc], graph_store=graph_store)

    results = await retriever.retrieve("Tell me about John")

    assert results == [vector_doc]


async def test_graph_failure_hook_receives_swallowed_error() -> None:
    failures: list[Exception] = []
    retriever = build_retriever(
        [Document(content="Vector result")],
        graph_store=FakeGraphStore(query_error=RuntimeError("Graph query failed")),
    )
    retriever.on_graph_failure = failures.append

    result = await retriever.retrieve_from_graph("Tell me about John")

    assert not result.ok
    assert len(failures) == 1
    assert isinstance(failures[0], RuntimeError)
    assert failures[0] is result.error


async def test_graph_failure_hook_not_called_on_success() -> None:
    failures: list[Exception] = []
    retriever = build_retriever(graph_store=FakeGraphStore(rows=[{"name": "John"}]))
    retriever.on_graph_failure = failures.append

    await retriever.retrieve("Who is John?")

    assert failures == []


@pytest.mark.parametrize(
    ("graph_store", "chat_model"),
    [
        (FakeGraphStore(schema_error=GraphStoreError("down")), FakeChatModel()),
        (FakeGraphStore(), FakeChatModel(error=LLMError("timeout"))),
        (FakeGraphStore(query_error=GraphQueryError("syntax")), FakeChatModel()),
    ],
)
async def test_graph_path_failures_fail_open(
    graph_store: FakeGraphStore, chat_model: FakeChatModel
) -> None:
    vector_doc = Document(content="Vector result")
    retriever = build_retriever([vector_doc], graph_store=graph_store, chat_model=chat_model)

    result = await retriever.retrieve_from_graph("Tell me about John")
    documents = await retriever.retrieve("Tell me about John")

    assert not result.ok
    assert result.documents == []
    assert documents == [vector_doc]


async def test_unconfigured_graph_store_skips_translation() -> None:
    chat_model = FakeChatModel()
    retriever = build_retriever(
        [Document(content="Vector result")],
        chat_model=chat_model,
    )
    retriever.graph_store = NullGraphStore()

    results = await retriever.retrieve("Tell me about John")

    assert [doc.content for doc in results] == ["Vector result"]
    assert chat_model.calls == []


async def test_deduplicates_results() -> None:
    retriever = build_retriever(
        [Document(content="Duplicate content"), Document(content="Duplicate content")]
    )

    results = await retriever.retrieve("Test query")

    assert len(results) == 1


async def test_graph_duplicate_of_vector_document_is_dropped() -> None:
    vector_doc = Document(content="name: John", source_type="vector")
    graph_store = FakeGraphStore(rows=[{"name": "John"}, {"name": "Jane"}])
    retriever = build_retriever([vector_doc], graph_store=graph_store)

    results = await retriever.retrieve("people")

    assert [(doc.source_type, doc.content) for doc in results] == [
        ("vector", "name: John"),
        ("graph", "name: Jane"),
    ]


async def test_converts_graph_results_to_documents() -> None:
    graph_store = FakeGraphStore(rows=[{"name": "John", "age": 30}, {"name": "Jane", "age": 25}])
    retriever = build_retriever([], graph_store=graph_store)

    results = await retriever.retrieve("Get all people")

    assert len(results) == 2
    for doc in results:
        assert doc.source_type == "graph"
        assert doc.source_name == "knowledge_graph"
        assert doc.content


@pytest.mark.parametrize("parallel", [True, False])
async def test_embedding_failure_propagates(parallel: bool) -> None:
    retriever = build_retriever(
        embedder=FakeEmbedder(error=EmbeddingError("no embedding")),
        parallel=parallel,
    )

    with pytest.raises(EmbeddingError):
        await retriever.retrieve("Tell me about John")


async def test_vector_store_failure_propagates() -> None:
    retriever = build_retriever(vectorstore=FakeVectorStore(error=ConnectionError("milvus down")))

    with pytest.raises(ConnectionError):
        await retriever.retrieve("Tell me about John")


async def test_serialization_failure_propagates() -> None:
    graph_store = FakeGraphStore(rows=[{"node": {"blob": object()}}])
    retriever = build_retriever([Document(content="Vector result")], graph_store=graph_store)

    with pytest.raises(RecordSerializationError):
        await retriever.retrieve("Tell me about John")


async def test_empty_query_passed_through() -> None:
    embedder = FakeEmbedder()
    chat_model = FakeChatModel()
    retriever = build_retriever(embedder=embedder, chat_model=chat_model)

    await retriever.retrieve("")

    assert embedder.calls == [""]
    assert chat_model.last_prompt.endswith("# Question\n\n\n# Cypher Query\n")


async def test_configured_examples_reach_prompt() -> None:
    chat_model = FakeChatModel()
    retriever = build_retriever(
        chat_model=chat_model,
        examples=[{"question": "Who founded Acme?", "query": "MATCH (p)-[:FOUNDED]->(c) RETURN p"}],
    )

    await retriever.retrieve("Who runs Acme?")

    assert "Question: Who founded Acme?" in chat_model.last_prompt


def test_vector_documents_precede_graph_documents() -> None:
    vector_docs = [Document(content="a"), Document(content="b")]
    graph_docs = [Document(content="c", source_type="graph"), Document(content="a", source_type="graph")]

    fused = deduplicate_documents(combine_results(vector_docs, graph_docs))

    assert [doc.content for doc in fused] == ["a", "b", "c"]
    assert fused[0] is vector_docs[0]


def test_deduplication_is_idempotent() -> None:
    documents = [Document(content=text) for text in ["x", "y", "x", "z", "y"]]

    once = deduplicate_documents(documents)
    twice = deduplicate_documents(once)

    assert once == twice
    assert [doc.content for doc in once] == ["x", "y", "z"]


def test_fingerprint_is_content_exact() -> None:
    assert content_fingerprint("John") == content_fingerprint("John")
    assert content_fingerprint("John") != content_fingerprint("John ")
    assert len(content_fingerprint("")) == 64


def test_retrieval_does_not_depend_on_app_layer() -> None:
    tree = ast.parse(inspect.getsource(retrieval))
    imported = {
        node.module
        for node in ast.walk(tree)
        if isinstance(node, ast.ImportFrom) and node.module
    }
    imported |= {
        alias.name
        for node in ast.walk(tree)
        if isinstance(node, ast.Import)
        for alias in node.names
    }
    assert not [name for name in imported if name.startswith("src.app")]
