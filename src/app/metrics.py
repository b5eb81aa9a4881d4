from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from src.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
GRAPH_RETRIEVAL_FAILURES = Counter(
    "graph_retrieval_failures_total",
    "Graph retrieval attempts that fell back to no graph documents",
    ["error"],
)
RETRIEVED_DOCUMENTS = Counter(
    "retrieved_documents_total",
    "Documents returned by hybrid retrieval",
    ["source_type"],
)


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path).observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_graph_failure(exc: Exception) -> None:
    GRAPH_RETRIEVAL_FAILURES.labels(type(exc).__name__).inc()


def record_retrieved_documents(documents) -> None:
    for document in documents:
        RETRIEVED_DOCUMENTS.labels(document.source_type or "unknown").inc()
