from __future__ import annotations

"""Chat model clients used for Text-to-Cypher translation."""

from dataclasses import dataclass
import asyncio
import logging
from typing import Protocol

import httpx


class LLMError(RuntimeError):
    """Raised when LLM requests fail or responses are invalid."""
    pass


logger = logging.getLogger(__name__)


class ChatModel(Protocol):
    """Protocol for single-turn chat completion providers."""

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Return the completion text for the given messages."""
        raise NotImplementedError


@dataclass(frozen=True)
class OllamaChatModel:
    """Chat model backed by the Ollama chat API."""
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send messages to Ollama and return the reply content."""
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        message = data.get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMError("Invalid LLM response")
        return content


@dataclass(frozen=True)
class OpenAIChatModel:
    """Chat model backed by OpenAI chat completions."""
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send messages to OpenAI chat completions and return the reply content."""
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc

        choices = data.get("choices") or []
        if not choices:
            raise LLMError("Invalid OpenAI response")
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMError("Invalid OpenAI response content")
        return content


@dataclass(frozen=True)
class GeminiChatModel:
    """Chat model backed by Gemini generative models."""
    api_key: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float

    async def chat(self, messages: list[dict[str, str]]) -> str:
        """Send messages to Gemini and return the generated text."""
        try:
            import google.generativeai as genai
        except ImportError as exc:
            raise LLMError("google-generativeai is required for GeminiChatModel") from exc
        prompt = "\n\n".join(
            item.get("content", "") for item in messages if item.get("content")
        )

        def _run() -> str:
            genai.configure(api_key=self.api_key)
            model = genai.GenerativeModel(self.model)
            response = model.generate_content(
                prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )
            return getattr(response, "text", "") or ""

        try:
            return await asyncio.wait_for(asyncio.to_thread(_run), timeout=self.timeout)
        except Exception as exc:
            raise LLMError(str(exc)) from exc


def build_chat_model(
    provider: str,
    *,
    api_key_openai: str | None,
    api_key_gemini: str | None,
    openai_base_url: str,
    openai_model: str | None,
    gemini_model: str | None,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> OllamaChatModel | OpenAIChatModel | GeminiChatModel:
    """Factory for chat models based on provider."""
    normalized = provider.strip().lower()
    if normalized in {"openai"}:
        if not api_key_openai:
            raise LLMError("OPENAI_API_KEY is required for OpenAI provider")
        if not openai_model:
            raise LLMError("OPENAI_CHAT_MODEL is required for OpenAI provider")
        return OpenAIChatModel(
            api_key=api_key_openai,
            base_url=openai_base_url.rstrip("/"),
            model=openai_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
    if normalized in {"gemini", "google"}:
        if not api_key_gemini:
            raise LLMError("GEMINI_API_KEY is required for Gemini provider")
        if not gemini_model:
            raise LLMError("GEMINI_CHAT_MODEL is required for Gemini provider")
        return GeminiChatModel(
            api_key=api_key_gemini,
            model=gemini_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
    if normalized not in {"", "ollama"}:
        logger.warning("unknown_llm_provider", extra={"provider": normalized})
    return OllamaChatModel(
        base_url=ollama_base_url.rstrip("/"),
        model=ollama_model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout=timeout,
    )
