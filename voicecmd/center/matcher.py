"""
Trigger phrase matching for spoken voice commands

Scores a transcript against every enabled command's trigger phrase and returns
the best candidate that clears its threshold.

Metrics (pluggable, see ``METRICS``):
- jaccard (default): 1.0 for an exact normalized match, otherwise the word-set
  Jaccard index. Word order is ignored, so "computer lock" still matches
  "lock computer".
- edit: difflib.SequenceMatcher ratio of the normalized phrases. Tolerates small
  transcription slips ("lock computor") that Jaccard scores as a miss.

Ties within ``SCORE_EPSILON`` go to the command listed first, so configuration
order is the tie-breaker and results are reproducible.
"""

from __future__ import annotations

import difflib
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .config import DEFAULT_SIMILARITY_THRESHOLD, VoiceCommand

LOGGER = logging.getLogger(__name__)

SCORE_EPSILON = 1e-6

SimilarityMetric = Callable[[str, str], float]


def normalize_phrase(text: str | None) -> str:
    """Lowercase, trim and collapse internal whitespace."""
    if not text:
        return ""
    return " ".join(text.lower().split())


def token_jaccard(a: str, b: str) -> float:
    left = normalize_phrase(a)
    right = normalize_phrase(b)
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    left_words = set(left.split())
    right_words = set(right.split())
    union = left_words | right_words
    if not union:
        return 0.0
    return len(left_words & right_words) / len(union)


def edit_ratio(a: str, b: str) -> float:
    left = normalize_phrase(a)
    right = normalize_phrase(b)
    if not left or not right:
        return 0.0
    return difflib.SequenceMatcher(None, left, right).ratio()


METRICS: dict[str, SimilarityMetric] = {
    "jaccard": token_jaccard,
    "edit": edit_ratio,
}


@dataclass(frozen=True)
class MatchResult:
    command: VoiceCommand
    score: float
    threshold: float


class MatchEngine:
    """Pick the registered command that best matches a transcript."""

    def __init__(self, metric: SimilarityMetric | None = None, logger: logging.Logger | None = None) -> None:
        self.metric = metric or token_jaccard
        self._logger = logger or LOGGER

    @classmethod
    def for_metric(cls, name: str | None, logger: logging.Logger | None = None) -> MatchEngine:
        metric = METRICS.get((name or "").strip().lower(), token_jaccard)
        return cls(metric, logger)

    def resolve(
        self,
        spoken_text: str,
        commands: Sequence[VoiceCommand],
        default_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> VoiceCommand | None:
        result = self.best_match(spoken_text, commands, default_threshold)
        return result.command if result else None

    def best_match(
        self,
        spoken_text: str,
        commands: Sequence[VoiceCommand],
        default_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> MatchResult | None:
        spoken = normalize_phrase(spoken_text)
        if not spoken:
            return None

        best: MatchResult | None = None
        for command in commands:
            if not command.enabled:
                continue
            threshold = command.similarity_threshold or default_threshold
            score = max(0.0, min(1.0, self.metric(spoken, normalize_phrase(command.trigger_phrase))))
            if score < threshold:
                continue
            # Strictly better only: an equal score keeps the earlier command.
            if best is None or score > best.score + SCORE_EPSILON:
                best = MatchResult(command=command, score=score, threshold=threshold)

        if best:
            self._logger.debug(
                "[match] '%s' -> '%s' (score=%.2f threshold=%.2f)",
                spoken,
                best.command.trigger_phrase,
                best.score,
                best.threshold,
            )
        else:
            self._logger.debug("[match] No trigger phrase matched '%s'", spoken)
        return best
