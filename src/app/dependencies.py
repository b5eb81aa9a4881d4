from __future__ import annotations

from functools import lru_cache

from src.app.metrics import record_graph_failure
from src.app.settings import settings
from src.graphstore.base import GraphStore, GraphStoreError, NullGraphStore
from src.graphstore.neo4j_store import Neo4jConfig, Neo4jGraphStore
from src.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingProvider,
    GeminiEmbedder,
    HashEmbedder,
    OpenAIEmbedder,
)
from src.rag.llm import ChatModel, build_chat_model
from src.rag.retrieval import HybridRetriever
from src.vectorstore.inmemory import InMemoryVectorStore
from src.vectorstore.milvus import MilvusConfig, MilvusVectorStore


@lru_cache
def get_retriever() -> HybridRetriever:
    embedder = build_embedder()
    return HybridRetriever(
        vectorstore=build_vectorstore(embedder),
        embedder=embedder,
        chat_model=build_chat_model_from_settings(),
        graph_store=build_graph_store(),
        examples=settings.cypher_examples,
        top_k=settings.top_k,
        parallel=settings.parallel_retrieval,
        on_graph_failure=record_graph_failure,
    )


def reset_retriever_cache() -> None:
    get_retriever.cache_clear()


def close_retriever() -> None:
    """Release collaborator connections held by a cached retriever."""
    if get_retriever.cache_info().currsize:
        get_retriever().graph_store.close()
    reset_retriever_cache()


def build_embedder() -> EmbeddingProvider:
    provider = settings.embedding_provider.lower().strip()
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    if provider in {"gemini", "google"}:
        return GeminiEmbedder(
            api_key=settings.gemini_api_key or "",
            model=settings.gemini_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_vectorstore(embedder: EmbeddingProvider) -> InMemoryVectorStore | MilvusVectorStore:
    backend = settings.vectorstore_backend.lower().strip()
    if backend == "milvus":
        config = MilvusConfig(
            uri=settings.milvus_uri,
            token=settings.milvus_token,
            collection=settings.milvus_collection,
            consistency=settings.milvus_consistency,
            index_type=settings.milvus_index_type,
            metric_type=settings.milvus_metric_type,
            nlist=settings.milvus_nlist,
            nprobe=settings.milvus_nprobe,
            default_top_k=settings.top_k,
        )
        return MilvusVectorStore(embedder=embedder, config=config)
    return InMemoryVectorStore(embedder=embedder, default_top_k=settings.top_k)


def build_chat_model_from_settings() -> ChatModel:
    return build_chat_model(
        settings.llm_provider,
        api_key_openai=settings.openai_api_key,
        api_key_gemini=settings.gemini_api_key,
        openai_base_url=settings.openai_base_url,
        openai_model=settings.openai_chat_model,
        gemini_model=settings.gemini_chat_model,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout,
    )


def build_graph_store() -> GraphStore:
    backend = settings.graphstore_backend.lower().strip()
    if backend in {"", "none"}:
        return NullGraphStore()
    if backend == "neo4j":
        config = Neo4jConfig(
            uri=settings.neo4j_uri,
            username=settings.neo4j_username,
            password=settings.neo4j_password,
            database=settings.neo4j_database,
            max_rows=settings.graph_max_rows,
        )
        return Neo4jGraphStore(config=config)
    raise GraphStoreError(f"Unsupported graph store: {backend}")
