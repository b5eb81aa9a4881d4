from __future__ import annotations

"""Text-to-Cypher translation with few-shot prompting."""

import logging
import re
from typing import Any, Mapping, Sequence

from src.rag.llm import ChatModel
from src.rag.types import Example

logger = logging.getLogger(__name__)

DEFAULT_EXAMPLES: tuple[Example, ...] = (
    Example(
        question="What are the relationships of John?",
        query=(
            "MATCH (n:Entity {id: 'John'})-[r]->(m) "
            "RETURN type(r) AS relationship, m.id AS connected_entity"
        ),
    ),
    Example(
        question="Who is connected to Sarah through KNOWS relationship?",
        query="MATCH (n:Entity {id: 'Sarah'})-[:KNOWS]->(m) RETURN m.id AS connected_entity",
    ),
    Example(
        question="Show me all entities that are related to the concept",
        query=(
            "MATCH (n:Entity)-[r:RELATED_TO]->(m:Entity {id: 'concept'}) "
            "RETURN n.id AS entity, type(r) AS relationship"
        ),
    ),
    Example(
        question="What is the path between Alice and Bob?",
        query=(
            "MATCH path = shortestPath((a:Entity {id: 'Alice'})-[*..5]-(b:Entity {id: 'Bob'})) "
            "RETURN path"
        ),
    ),
    Example(
        question="List all entities connected within 2 hops from the topic",
        query="MATCH (n:Entity {id: 'topic'})-[*1..2]-(m) RETURN DISTINCT m.id AS entity",
    ),
)

_GUIDELINES = (
    "Use the graph schema above to understand available nodes and relationships",
    "Generate queries that are efficient and return relevant results",
    "Use MATCH clauses for retrieving data",
    "Use WHERE clauses for filtering when needed",
    "Return only the Cypher query without any explanation or markdown formatting",
    'Do not include backticks, code fences, or the word "cypher"',
    "Ensure the query is a single valid Cypher statement",
)

_LEADING_FENCE_RE = re.compile(
    r"^\s*```(?:[ \t]*[A-Za-z][\w+-]*[ \t]*(?=\r?\n|$)|[ \t]*(?:cypher|neo4j)\b)?",
    re.IGNORECASE,
)
_TRAILING_FENCE_RE = re.compile(r"\s*```\s*$")


def sanitize_query(response: str) -> str:
    """Strip surrounding code fences and whitespace from model output."""
    query = _LEADING_FENCE_RE.sub("", response, count=1)
    query = _TRAILING_FENCE_RE.sub("", query, count=1)
    return query.strip()


def _coerce_examples(examples: Sequence[Example | Mapping[str, Any]]) -> list[Example]:
    return [
        item if isinstance(item, Example) else Example.from_mapping(item)
        for item in examples
    ]


class QueryTranslator:
    """Converts natural language questions into Cypher statements using a chat model."""

    def __init__(self, chat_model: ChatModel, graph_schema: str) -> None:
        self.chat_model = chat_model
        self.graph_schema = graph_schema

    async def convert(
        self,
        question: str,
        examples: Sequence[Example | Mapping[str, Any]] = (),
    ) -> str:
        """Translate a question into a single Cypher statement.

        Custom examples replace the built-in defaults entirely. Failures from
        the chat model propagate to the caller.
        """
        resolved = _coerce_examples(examples) if examples else list(DEFAULT_EXAMPLES)
        prompt = self.build_prompt(question, resolved)
        response = await self.chat_model.chat([{"role": "user", "content": prompt}])
        statement = sanitize_query(response)
        logger.debug(
            "cypher_translation_complete",
            extra={
                "question_length": len(question),
                "statement_length": len(statement),
                "example_count": len(resolved),
            },
        )
        return statement

    def build_prompt(self, question: str, examples: Sequence[Example]) -> str:
        """Build the few-shot translation prompt."""
        guidelines = "\n".join(
            f"{idx}. {line}" for idx, line in enumerate(_GUIDELINES, start=1)
        )
        prompt = (
            "You are an expert at converting natural language questions into "
            "Cypher queries for Neo4j graph databases.\n\n"
            f"# Graph Schema\n{self.graph_schema}\n\n"
            "# Task\n"
            "Convert the following natural language question into a valid Cypher query.\n\n"
            f"# Guidelines\n{guidelines}\n"
        )
        if examples:
            prompt += "\n# Examples\nHere are some example conversions:\n\n"
            for example in examples:
                prompt += f"Question: {example.question}\n"
                prompt += f"Cypher: {example.query}\n\n"
        return prompt + f"\n# Question\n{question}\n\n# Cypher Query\n"
