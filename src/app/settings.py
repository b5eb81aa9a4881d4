from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from src.rag.types import Example

load_dotenv()


@dataclass(frozen=True)
class Settings:
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    top_k: int = int(os.getenv("RAG_TOP_K", "4"))
    parallel_retrieval: bool = os.getenv("RAG_PARALLEL_RETRIEVAL", "true").lower() in {"1", "true", "yes"}
    cypher_examples_path: str | None = os.getenv("RAG_CYPHER_EXAMPLES_PATH")
    vectorstore_backend: str = os.getenv("RAG_VECTORSTORE", "memory")
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "hash")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    openai_chat_model: str | None = os.getenv("OPENAI_CHAT_MODEL")
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_embedding_model: str | None = os.getenv("GEMINI_EMBEDDING_MODEL")
    gemini_chat_model: str | None = os.getenv("GEMINI_CHAT_MODEL")
    milvus_uri: str = os.getenv("MILVUS_URI", "http://localhost:19530")
    milvus_token: str | None = os.getenv("MILVUS_TOKEN")
    milvus_collection: str = os.getenv("MILVUS_COLLECTION", "hybrid_documents")
    milvus_consistency: str = os.getenv("MILVUS_CONSISTENCY", "Strong")
    milvus_index_type: str = os.getenv("MILVUS_INDEX_TYPE", "IVF_FLAT")
    milvus_metric_type: str = os.getenv("MILVUS_METRIC_TYPE", "COSINE")
    milvus_nlist: int = int(os.getenv("MILVUS_NLIST", "1024"))
    milvus_nprobe: int = int(os.getenv("MILVUS_NPROBE", "10"))
    llm_provider: str = os.getenv("RAG_LLM_PROVIDER", "ollama")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1")
    llm_temperature: float = float(os.getenv("LLM_TEMPERATURE", "0.0"))
    llm_max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "512"))
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "60"))
    graphstore_backend: str = os.getenv("RAG_GRAPHSTORE", "none")
    neo4j_uri: str = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    neo4j_username: str = os.getenv("NEO4J_USERNAME", "neo4j")
    neo4j_password: str = os.getenv("NEO4J_PASSWORD", "neo4j")
    neo4j_database: str = os.getenv("NEO4J_DATABASE", "neo4j")
    graph_max_rows: int = int(os.getenv("RAG_GRAPH_MAX_ROWS", "100"))
    metrics_enabled: bool = os.getenv("RAG_METRICS_ENABLED", "true").lower() in {"1", "true", "yes"}

    @property
    def cypher_examples(self) -> list[Example]:
        """Load few-shot examples from RAG_CYPHER_EXAMPLES_PATH, if set."""
        raw_path = self.cypher_examples_path or ""
        if not raw_path.strip():
            return []
        data = json.loads(Path(raw_path).read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError("RAG_CYPHER_EXAMPLES_PATH must contain a JSON list")
        return [Example.from_mapping(item) for item in data]


settings = Settings()
