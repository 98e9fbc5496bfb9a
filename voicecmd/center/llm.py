"""LLM provider abstractions used by the command fallback."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import LLMConfig

ANTHROPIC_VERSION = "2023-06-01"
MAX_OUTPUT_TOKENS = 200


class LLMError(RuntimeError):
    """Provider request failed or returned no text."""


class LLMProvider:
    name = "base"

    async def complete(self, system_prompt: str, user_text: str) -> str:
        raise NotImplementedError


async def _post_json(
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str],
    timeout: float,
    provider: str,
    params: dict[str, str] | None = None,
) -> dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(url, json=payload, headers=headers, params=params)
        response.raise_for_status()
        parsed = response.json()
    except httpx.HTTPStatusError as exc:
        raise LLMError(f"{provider} HTTP error: {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
        raise LLMError(f"Unable to reach {provider}: {exc}") from exc
    except ValueError as exc:
        raise LLMError(f"{provider} returned invalid JSON") from exc
    if not isinstance(parsed, dict):
        raise LLMError(f"{provider} returned an unexpected payload")
    return parsed


class OpenAIProvider(LLMProvider):
    """Call OpenAI-compatible chat completion endpoints."""

    name = "openai"

    def __init__(self, config: LLMConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)

    async def complete(self, system_prompt: str, user_text: str) -> str:
        if not self.config.openai_api_key:
            raise LLMError("OPENAI_API_KEY is not set")
        payload = self._build_payload(system_prompt, user_text)
        parsed = await _post_json(
            f"{self.config.openai_base_url.rstrip('/')}/chat/completions",
            payload,
            headers={
                "Authorization": f"Bearer {self.config.openai_api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.config.openai_timeout,
            provider="OpenAI",
        )
        choices = parsed.get("choices") or []
        if not choices:
            raise LLMError("LLM response missing choices")
        message = choices[0].get("message") or {}
        content = message.get("content")
        # Empty content is rejected downstream by parse_generated_command.
        return str(content) if content is not None else ""

    def _build_payload(self, system_prompt: str, user_text: str) -> dict:
        return {
            "model": self.config.openai_model,
            "messages": [
                {"role": "system", "content": system_prompt.strip()},
                {"role": "user", "content": user_text.strip()},
            ],
            "temperature": 0.0,
            "max_tokens": MAX_OUTPUT_TOKENS,
        }


class GeminiProvider(LLMProvider):
    """Call Google Gemini (Generative Language) models."""

    name = "gemini"

    def __init__(self, config: LLMConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)

    async def complete(self, system_prompt: str, user_text: str) -> str:
        if not self.config.gemini_api_key:
            raise LLMError("GEMINI_API_KEY is not set")
        model = (self.config.gemini_model or "").strip()
        if not model:
            raise LLMError("GEMINI_MODEL is not set")
        endpoint = f"{self.config.gemini_base_url.rstrip('/')}/models/{model}:generateContent"
        parsed = await _post_json(
            endpoint,
            self._build_payload(system_prompt, user_text),
            headers={
                "Content-Type": "application/json",
                "x-goog-api-key": self.config.gemini_api_key,
            },
            timeout=self.config.gemini_timeout,
            provider="Gemini",
        )
        candidates = parsed.get("candidates") or []
        for candidate in candidates:
            content = candidate.get("content") or {}
            if not isinstance(content, dict):
                continue
            parts = content.get("parts") or []
            if not isinstance(parts, list):
                continue
            for part in parts:
                if isinstance(part, dict):
                    text = part.get("text")
                    if isinstance(text, str) and text.strip():
                        return text

        prompt_feedback = parsed.get("promptFeedback")
        if isinstance(prompt_feedback, dict):
            block_reason = prompt_feedback.get("blockReason")
            if block_reason:
                raise LLMError(f"Gemini blocked prompt: {block_reason}")
        if not candidates:
            raise LLMError("LLM response missing candidates")
        return ""

    def _build_payload(self, system_prompt: str, user_text: str) -> dict:
        payload: dict[str, object] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": user_text.strip()}],
                }
            ],
            "generationConfig": {
                "temperature": 0.0,
                "maxOutputTokens": MAX_OUTPUT_TOKENS,
            },
        }
        if system_prompt.strip():
            payload["system_instruction"] = {"parts": [{"text": system_prompt.strip()}]}
        return payload


class AnthropicProvider(LLMProvider):
    """Call the Anthropic Messages API."""

    name = "anthropic"

    def __init__(self, config: LLMConfig, logger: logging.Logger | None = None) -> None:
        self.config = config
        self._logger = logger or logging.getLogger(__name__)

    async def complete(self, system_prompt: str, user_text: str) -> str:
        if not self.config.anthropic_api_key:
            raise LLMError("ANTHROPIC_API_KEY is not set")
        parsed = await _post_json(
            f"{self.config.anthropic_base_url.rstrip('/')}/messages",
            self._build_payload(system_prompt, user_text),
            headers={
                "x-api-key": self.config.anthropic_api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "Content-Type": "application/json",
            },
            timeout=self.config.anthropic_timeout,
            provider="Anthropic",
        )
        blocks = parsed.get("content")
        if not isinstance(blocks, list):
            raise LLMError("LLM response missing content")
        texts = [
            block.get("text")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return "".join(texts)

    def _build_payload(self, system_prompt: str, user_text: str) -> dict:
        return {
            "model": self.config.anthropic_model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "system": system_prompt.strip(),
            "messages": [{"role": "user", "content": user_text.strip()}],
        }


_PROVIDERS: dict[str, type[LLMProvider]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "anthropic": AnthropicProvider,
}


def get_supported_providers() -> list[str]:
    return sorted(_PROVIDERS)


def build_llm_provider(config: LLMConfig, logger: logging.Logger | None = None) -> LLMProvider:
    provider = (config.provider or "").strip().lower()
    provider_cls = _PROVIDERS.get(provider, OpenAIProvider)
    return provider_cls(config, logger)
