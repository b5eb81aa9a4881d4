from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("RAG_CYPHER_EXAMPLES_PATH", None)
os.environ.setdefault("RAG_VECTORSTORE", "memory")
os.environ.setdefault("RAG_GRAPHSTORE", "none")
os.environ.setdefault("EMBEDDING_PROVIDER", "hash")

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"
