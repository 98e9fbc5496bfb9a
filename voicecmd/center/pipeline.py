"""Resolve a transcript into a presented command or a user notice."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .channels import EventChannels
from .config import DEFAULT_SYSTEM_PROMPT, VoiceCommandSettings
from .errors import GenerationFailure, UnsafeRejection
from .fallback import FallbackGenerator
from .matcher import MatchEngine
from .models import CommandSource, Notice, ResolvedCommand

LOGGER = logging.getLogger(__name__)

OUTCOME_MATCHED = "matched"
OUTCOME_GENERATED = "generated"
OUTCOME_NO_MATCH = "no_match"
OUTCOME_UNSAFE = "unsafe"
OUTCOME_FAILED = "failed"
OUTCOME_EMPTY = "empty"


@dataclass(frozen=True)
class Resolution:
    outcome: str
    resolved: ResolvedCommand | None = None
    score: float | None = None
    message: str = ""

    @property
    def presented(self) -> bool:
        return self.resolved is not None


class VoiceCommandPipeline:
    """Match first, fall back to the LLM, then hand the result to the surface.

    A resolved command goes out on ``channels.show``; every other outcome goes
    out on ``channels.notice``. Nothing here executes commands.
    """

    def __init__(
        self,
        channels: EventChannels,
        generator: FallbackGenerator | None = None,
        matcher: MatchEngine | None = None,
        logger: logging.Logger | None = None,
        log_transcripts: bool = False,
    ) -> None:
        self.channels = channels
        self.generator = generator
        self.matcher = matcher
        self._logger = logger or LOGGER
        self._log_transcripts = log_transcripts

    async def handle_transcript(self, spoken_text: str, settings: VoiceCommandSettings) -> Resolution:
        text = (spoken_text or "").strip()
        if not text:
            return self._notice(OUTCOME_EMPTY, "No command detected", text)
        if self._log_transcripts:
            self._logger.info("[pipeline] Heard: %s", text)
        else:
            self._logger.debug("[pipeline] Heard: %s", text)

        matcher = self.matcher or MatchEngine.for_metric(settings.match_metric, self._logger)
        match = matcher.best_match(text, settings.commands, settings.default_threshold)
        if match:
            command = match.command
            resolved = ResolvedCommand(
                source=CommandSource.MATCHED,
                command_text=command.script,
                spoken_text=text,
                execution_options=command.resolve_execution_options(settings.execution_defaults),
                auto_run=settings.auto_run_enabled,
                auto_run_seconds=settings.auto_run_seconds if settings.auto_run_enabled else 0.0,
                command_name=command.name,
                score=match.score,
            )
            self._logger.info(
                "[pipeline] Matched '%s' (score %.0f%%)",
                command.name,
                match.score * 100,
            )
            self.channels.show.emit(resolved)
            return Resolution(
                OUTCOME_MATCHED,
                resolved,
                match.score,
                f"Matched predefined command: '{command.name}' (score: {match.score * 100:.0f}%)",
            )

        if not settings.llm_fallback_enabled or self.generator is None:
            return self._notice(OUTCOME_NO_MATCH, f"No matching command found for: '{text}'", text)

        system_prompt = settings.system_prompt.strip() or DEFAULT_SYSTEM_PROMPT
        try:
            suggestion = await self.generator.generate(text, system_prompt)
        except UnsafeRejection as exc:
            self._logger.info("[pipeline] Fallback refused request: %s", exc)
            return self._notice(OUTCOME_UNSAFE, str(exc), text, kind="unsafe")
        except GenerationFailure as exc:
            return self._notice(OUTCOME_FAILED, f"Failed to generate command: {exc}", text, kind="error")

        # Generated commands always wait for an explicit confirmation.
        resolved = ResolvedCommand(
            source=CommandSource.GENERATED,
            command_text=suggestion,
            spoken_text=text,
            execution_options=settings.execution_defaults,
        )
        self.channels.show.emit(resolved)
        return Resolution(OUTCOME_GENERATED, resolved, None, f"LLM suggested command: '{suggestion}'")

    def _notice(self, outcome: str, message: str, spoken_text: str, kind: str = "info") -> Resolution:
        self.channels.notice.emit(Notice(kind=kind, message=message, spoken_text=spoken_text))
        return Resolution(outcome, message=message)
