"""Tests for trigger phrase matching."""

from __future__ import annotations

import pytest
from voicecmd.center.matcher import (
    MatchEngine,
    edit_ratio,
    normalize_phrase,
    token_jaccard,
)

# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TestNormalizePhrase:
    def test_lowercases_and_collapses_whitespace(self):
        assert normalize_phrase("  Lock   COMPUTER \n") == "lock computer"

    def test_none_is_empty(self):
        assert normalize_phrase(None) == ""


class TestTokenJaccard:
    def test_exact_match_scores_one(self):
        assert token_jaccard("lock computer", "Lock  Computer") == 1.0

    def test_word_order_ignored(self):
        assert token_jaccard("computer lock", "lock computer") == 1.0

    def test_partial_overlap(self):
        # {open, browser} vs {open, the, browser} -> 2/3
        assert token_jaccard("open browser", "open the browser") == pytest.approx(2 / 3)

    def test_disjoint(self):
        assert token_jaccard("make me a sandwich", "lock computer") == 0.0

    def test_empty_side_scores_zero(self):
        assert token_jaccard("", "lock computer") == 0.0


class TestEditRatio:
    def test_identical_after_normalization_scores_one(self):
        assert edit_ratio("Lock  Computer", "lock computer") == 1.0

    def test_disjoint_scores_zero(self):
        assert edit_ratio("abc", "xyz") == 0.0

    def test_ratio_matches_difflib(self):
        # 2 * matched chars / total chars: 2 * 4 / (6 + 7)
        assert edit_ratio("kitten", "sitting") == pytest.approx(8 / 13)

    def test_tolerates_transcription_slip(self):
        assert edit_ratio("lock computor", "lock computer") > 0.9

    def test_empty_scores_zero(self):
        assert edit_ratio("   ", "lock") == 0.0


# ---------------------------------------------------------------------------
# MatchEngine
# ---------------------------------------------------------------------------


class TestMatchEngine:
    def test_exact_match_resolves(self, make_command):
        lock = make_command("lock computer", "rundll32.exe user32.dll,LockWorkStation")
        engine = MatchEngine()
        result = engine.best_match("Lock computer", [lock], 0.75)
        assert result is not None
        assert result.command is lock
        assert result.score == 1.0
        assert result.threshold == 0.75

    def test_empty_spoken_text_returns_none(self, make_command):
        engine = MatchEngine()
        assert engine.resolve("   ", [make_command("lock computer")], 0.75) is None

    def test_below_threshold_is_rejected(self, make_command):
        engine = MatchEngine()
        command = make_command("open the browser", similarity_threshold=0.9)
        assert engine.resolve("open browser", [command], 0.75) is None

    def test_default_threshold_used_when_command_has_none(self, make_command):
        engine = MatchEngine()
        command = make_command("open the browser", similarity_threshold=None)
        assert engine.resolve("open browser", [command], 0.6) is command
        assert engine.resolve("open browser", [command], 0.7) is None

    def test_score_just_below_threshold_is_rejected(self, make_command):
        engine = MatchEngine(lambda _spoken, _trigger: 0.7499995)
        assert engine.resolve("lock computer", [make_command("lock computer", similarity_threshold=0.75)]) is None

    def test_score_equal_to_threshold_matches(self, make_command):
        engine = MatchEngine()
        command = make_command("open the browser", similarity_threshold=2 / 3)
        assert engine.resolve("open browser", [command], 0.75) is command

    def test_disabled_commands_are_never_selected(self, make_command):
        engine = MatchEngine()
        disabled = make_command("lock computer", id="a", enabled=False)
        assert engine.resolve("lock computer", [disabled], 0.75) is None

    def test_highest_score_wins(self, make_command):
        engine = MatchEngine()
        partial = make_command("open browser window", id="partial", similarity_threshold=0.5)
        exact = make_command("open browser", id="exact")
        assert engine.resolve("open browser", [partial, exact], 0.5) is exact

    def test_tie_goes_to_first_listed(self, make_command):
        engine = MatchEngine()
        first = make_command("lock computer", id="first")
        second = make_command("computer lock", id="second")
        for _ in range(5):
            assert engine.resolve("lock computer", [first, second], 0.75) is first
            assert engine.resolve("lock computer", [second, first], 0.75) is second

    def test_tie_skips_disabled_leader(self, make_command):
        engine = MatchEngine()
        disabled = make_command("lock computer", id="disabled", enabled=False)
        enabled = make_command("lock computer", id="enabled")
        assert engine.resolve("lock computer", [disabled, enabled], 0.75) is enabled

    def test_logs_match(self, make_command, mock_logger):
        engine = MatchEngine(logger=mock_logger)
        engine.resolve("lock computer", [make_command("lock computer")], 0.75)
        assert mock_logger.debug.called


class TestForMetric:
    def test_edit_metric(self, make_command):
        engine = MatchEngine.for_metric("edit")
        command = make_command("lock computer")
        assert engine.resolve("lock computor", [command], 0.75) is command

    def test_jaccard_misses_the_same_slip(self, make_command):
        engine = MatchEngine.for_metric("jaccard")
        assert engine.resolve("lock computor", [make_command("lock computer")], 0.75) is None

    def test_unknown_metric_falls_back_to_jaccard(self):
        assert MatchEngine.for_metric("cosine").metric is token_jaccard
