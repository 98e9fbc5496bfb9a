"""Ask an LLM for a one-line shell command when no trigger phrase matched."""

from __future__ import annotations

import logging
import re

from .errors import GenerationFailure, UnsafeRejection
from .llm import LLMError, LLMProvider
from .models import UNSAFE_SENTINEL

LOGGER = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[^\n`]*\n(.*?)```", re.DOTALL)
_INLINE_FENCE_RE = re.compile(r"```(.*?)```")
_WRAPPING_PAIRS = (('"', '"'), ("'", "'"), ("`", "`"))


def _strip_wrapping(text: str) -> str:
    value = text.strip()
    changed = True
    while changed and len(value) >= 2:
        changed = False
        for opener, closer in _WRAPPING_PAIRS:
            if value.startswith(opener) and value.endswith(closer):
                value = value[len(opener) : len(value) - len(closer)].strip()
                changed = True
                break
    return value


def _non_empty_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_generated_command(response_text: str | None) -> str:
    """Reduce a provider answer to a single runnable line.

    A fenced block wins over surrounding prose and must hold exactly one
    non-empty line. Without a fence, the first non-empty line is used and any
    trailing commentary is dropped. Raises ``UnsafeRejection`` for the sentinel,
    an empty answer, or a multi-line fenced script.
    """
    text = (response_text or "").strip()
    fence = _FENCE_RE.search(text) or _INLINE_FENCE_RE.search(text)
    if fence:
        lines = _non_empty_lines(fence.group(1))
        if len(lines) > 1:
            raise UnsafeRejection("LLM returned a multi-line script instead of a single command")
    else:
        lines = _non_empty_lines(text.replace("```", ""))
    if not lines:
        raise UnsafeRejection("LLM returned an empty response")

    command = _strip_wrapping(lines[0])
    if not command:
        raise UnsafeRejection("LLM returned an empty response")
    if command == UNSAFE_SENTINEL:
        raise UnsafeRejection("Request was deemed unsafe by the LLM")
    return command


class FallbackGenerator:
    """Turn a spoken request into a command via the configured LLM provider."""

    def __init__(self, provider: LLMProvider | None, logger: logging.Logger | None = None) -> None:
        self.provider = provider
        self._logger = logger or LOGGER

    async def generate(self, spoken_text: str, system_prompt: str) -> str:
        if self.provider is None:
            raise GenerationFailure("No LLM provider configured")
        try:
            response_text = await self.provider.complete(system_prompt, spoken_text)
        except LLMError as exc:
            self._logger.warning("[fallback] LLM request failed: %s", exc)
            raise GenerationFailure(f"LLM request failed: {exc}") from exc
        except Exception as exc:
            self._logger.exception("[fallback] Unexpected LLM failure: %s", exc)
            raise GenerationFailure(f"LLM request failed: {exc}") from exc

        command = parse_generated_command(response_text)
        self._logger.debug("[fallback] LLM suggested command: %s", command)
        return command
