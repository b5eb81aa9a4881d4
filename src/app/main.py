from __future__ import annotations

"""FastAPI application entrypoint for the hybrid retrieval service."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request

from src.app.dependencies import close_retriever, get_retriever
from src.app.metrics import metrics_middleware, metrics_response, record_retrieved_documents
from src.app.schemas import (
    IngestRequest,
    IngestResponse,
    RetrievedDocument,
    RetrieveRequest,
    RetrieveResponse,
    StatsHealthResponse,
    StatsResponse,
)
from src.app.settings import settings
from src.rag.embeddings import EmbeddingError
from src.rag.graph_documents import RecordSerializationError
from src.rag.retrieval import HybridRetriever
from src.rag.types import Document

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    close_retriever()
    logger.info("shutdown_complete")


app = FastAPI(title="Hybrid Graph Retrieval", version="0.1.0", lifespan=lifespan)


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _safe_error_message(exc: Exception) -> str:
    """Return a safe error type name for logs and responses."""
    return type(exc).__name__


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness check for uptime monitoring."""
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats(retriever: HybridRetriever = Depends(get_retriever)) -> StatsResponse:
    """Return vector store size and embedding dimension."""
    return StatsResponse(**await asyncio.to_thread(retriever.vectorstore.stats))


@app.get("/stats/health", response_model=StatsHealthResponse)
async def stats_health(
    retriever: HybridRetriever = Depends(get_retriever),
) -> StatsHealthResponse:
    """Report vector store and graph store connectivity."""
    vectorstore, graphstore = await asyncio.gather(
        asyncio.to_thread(retriever.vectorstore.health),
        asyncio.to_thread(retriever.graph_store.health),
    )
    return StatsHealthResponse(vectorstore=vectorstore, graphstore=graphstore)


@app.post("/ingest", response_model=IngestResponse)
async def ingest(
    request: IngestRequest,
    retriever: HybridRetriever = Depends(get_retriever),
) -> IngestResponse:
    """Add vector-origin documents to the vector store."""
    documents = [
        Document(
            content=doc.content,
            source_type="vector",
            source_name=doc.source_name,
            metadata=dict(doc.metadata),
            doc_id=doc.doc_id,
        )
        for doc in request.documents
    ]
    if not documents:
        raise HTTPException(status_code=400, detail="No documents provided")
    ingested = await asyncio.to_thread(retriever.vectorstore.add_documents, documents)
    logger.info("ingest_complete", extra={"ingested": ingested})
    return IngestResponse(ingested=ingested)


@app.post("/retrieve", response_model=RetrieveResponse)
async def retrieve(
    request: RetrieveRequest,
    http_request: Request,
    retriever: HybridRetriever = Depends(get_retriever),
) -> RetrieveResponse:
    """Return hybrid vector and graph documents for a query."""
    request_id = getattr(http_request.state, "request_id", str(uuid.uuid4()))
    try:
        documents = await retriever.retrieve(request.query)
    except (EmbeddingError, RecordSerializationError) as exc:
        logger.error(
            "retrieve_failed",
            extra={"request_id": request_id, "error": _safe_error_message(exc)},
        )
        raise HTTPException(status_code=502, detail=_safe_error_message(exc)) from exc
    record_retrieved_documents(documents)
    return RetrieveResponse(
        documents=[
            RetrievedDocument(
                content=doc.content,
                source_type=doc.source_type,
                source_name=doc.source_name,
                metadata=doc.metadata,
            )
            for doc in documents
        ],
        count=len(documents),
        request_id=request_id,
    )
