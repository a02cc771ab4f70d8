"""
Tests for the reduction engine.

These tests verify:
1. The original input is checked before any mutation
2. Windows are tried largest first and rolled back on failure
3. Every accepted removal is persisted to the last-good file
4. The removed count never decreases during a run
"""

import logging

import pytest

from lineshrink.config import ShrinkConfig
from lineshrink.document import SourceDocument
from lineshrink.engine import ReductionEngine, ReductionProgress
from lineshrink.errors import OriginalInputRejected
from lineshrink.oracle import OracleInvoker, equivalent, not_equivalent


def numbered(count: int) -> SourceDocument:
    return SourceDocument.load("".join(f"line {i}\n" for i in range(1, count + 1)))


def needs_line(marker: str):
    """Oracle that rejects renderings missing `marker` or empty ones."""
    def check(text):
        if not text:
            return not_equivalent("empty file")
        if f"{marker}\n" not in text:
            return not_equivalent(f"{marker} is gone")
        return equivalent()
    return check


def make_engine(doc, checks, tmp_path, **config):
    engine = ReductionEngine(
        doc,
        OracleInvoker(checks),
        tmp_path / "last_ok.rs",
        config=ShrinkConfig(**config),
    )
    return engine


# =============================================================================
# SCENARIOS
# =============================================================================

class TestScenarios:
    """End-to-end reductions on small documents."""

    def test_converges_to_required_line_without_tail_margin(self, tmp_path):
        """With every position visited, only the required line survives."""
        doc = numbered(10)
        engine = make_engine(doc, [needs_line("line 5")], tmp_path, tail_margin=0)

        engine.run()

        assert doc.render() == "line 5\n"
        assert (tmp_path / "last_ok.rs").read_text(encoding="utf-8") == "line 5\n"

    def test_default_tail_margin_keeps_last_lines(self, tmp_path):
        """The last five lines are never attempted by default."""
        doc = numbered(10)
        engine = make_engine(doc, [needs_line("line 5")], tmp_path)

        result = engine.run()

        assert doc.render() == "".join(f"line {i}\n" for i in range(5, 11))
        assert result.removed == 4
        assert result.attempts == 8

    def test_short_document_makes_no_attempts(self, tmp_path):
        """A document shorter than the tail margin is left unchanged."""
        doc = numbered(3)
        oracle = OracleInvoker([lambda t: equivalent()])
        engine = ReductionEngine(doc, oracle, tmp_path / "last_ok.rs")

        result = engine.run()

        assert result.attempts == 0
        assert oracle.calls == 1  # the original check only
        assert doc.removed_count() == 0
        assert not (tmp_path / "last_ok.rs").exists()

    def test_failing_original_aborts_before_mutation(self, tmp_path):
        """A rejected original is fatal and leaves the mask untouched."""
        doc = numbered(10)
        oracle = OracleInvoker([lambda t: not_equivalent("does not crash")])
        engine = ReductionEngine(doc, oracle, tmp_path / "last_ok.rs")

        with pytest.raises(OriginalInputRejected, match="does not crash"):
            engine.run()

        assert doc.mask() == (False,) * 10
        assert oracle.calls == 1
        assert not (tmp_path / "last_ok.rs").exists()

    def test_accept_everything_uses_largest_window(self, tmp_path):
        """Each visited position removes a full three-line span."""
        doc = numbered(10)
        engine = make_engine(doc, [lambda t: equivalent()], tmp_path)

        result = engine.run()

        assert doc.render() == "line 8\nline 9\nline 10\n"
        assert result.attempts == 5


# =============================================================================
# CANDIDATE ATTEMPTS
# =============================================================================

class TestCandidates:
    """Test single candidate attempts."""

    def test_failed_span_is_rolled_back(self, tmp_path):
        doc = numbered(6)
        engine = make_engine(doc, [needs_line("line 2")], tmp_path)

        result = engine.try_remove_span(range(0, 3))

        assert not result.ok
        assert doc.removed_count() == 0

    def test_failed_span_keeps_earlier_removals(self, tmp_path):
        """Rollback after a failed overlapping span keeps committed lines removed."""
        doc = numbered(6)
        engine = make_engine(doc, [needs_line("line 3")], tmp_path)
        assert engine.try_remove_line(1).ok

        assert not engine.try_remove_span(range(0, 3)).ok

        assert doc.mask() == (False, True, False, False, False, False)

    def test_removed_span_skips_oracle(self, tmp_path):
        """A span that is already gone is accepted without re-validation."""
        doc = numbered(6)
        oracle = OracleInvoker([lambda t: equivalent()])
        engine = ReductionEngine(doc, oracle, tmp_path / "last_ok.rs")
        engine.try_remove_span(range(0, 3))
        calls = oracle.calls

        assert engine.try_remove_span(range(1, 3)).ok
        assert engine.try_remove_line(0).ok
        assert oracle.calls == calls

    def test_span_is_clipped_to_document(self, tmp_path):
        doc = numbered(4)
        engine = make_engine(doc, [lambda t: equivalent()], tmp_path)

        assert engine.try_remove_span(range(2, 5)).ok
        assert doc.render() == "line 1\nline 2\n"

    def test_falls_back_to_smaller_windows(self, tmp_path):
        """Position 0 drops to a single line when larger spans fail."""
        doc = numbered(6)
        engine = make_engine(doc, [needs_line("line 2")], tmp_path)

        assert engine.try_position(0).ok
        assert doc.mask() == (True, False, False, False, False, False)
        assert engine.attempts == 3

    def test_accepted_removal_is_persisted(self, tmp_path):
        doc = numbered(6)
        engine = make_engine(doc, [lambda t: equivalent()], tmp_path)

        engine.try_remove_line(2)

        text = (tmp_path / "last_ok.rs").read_text(encoding="utf-8")
        assert "line 3\n" not in text
        assert text == doc.render()

    def test_rejection_diagnostic_is_truncated_in_logs(self, tmp_path, caplog):
        doc = numbered(6)
        engine = make_engine(doc, [lambda t: not_equivalent("x" * 200)], tmp_path)
        caplog.set_level(logging.DEBUG, logger="lineshrink.engine")

        engine.try_remove_line(0)

        messages = [r.getMessage() for r in caplog.records]
        assert any("x" * 90 in m for m in messages)
        assert not any("x" * 91 in m for m in messages)


# =============================================================================
# RUN PROPERTIES
# =============================================================================

class TestRunProperties:
    """Properties that hold over a whole run."""

    def test_removed_count_is_monotonic(self, tmp_path):
        text = "".join(
            f"keep {i}\n" if i % 4 == 0 else f"drop {i}\n" for i in range(30)
        )
        doc = SourceDocument.load(text)
        keep = [line for line in doc.lines if line.startswith("keep")]

        def keeps_all(rendered):
            missing = [k for k in keep if f"{k}\n" not in rendered]
            if missing:
                return not_equivalent(f"missing {missing[0]}")
            return equivalent()

        engine = make_engine(doc, [keeps_all], tmp_path)
        result = engine.run()

        assert result.history == sorted(result.history)
        assert all(f"{k}\n" in doc.render() for k in keep)
        assert result.removed == doc.removed_count()

    def test_progress_reports_every_position(self, tmp_path):
        doc = numbered(8)
        seen: list[ReductionProgress] = []
        engine = ReductionEngine(
            doc,
            OracleInvoker([needs_line("line 1")]),
            tmp_path / "last_ok.rs",
            on_progress=seen.append,
        )

        engine.run()

        assert [p.position for p in seen] == [1, 2, 3]
        assert all(p.line_count == 8 for p in seen)
        assert seen[-1].removed == doc.removed_count()
        assert 0.0 <= seen[-1].percent_done <= 100.0

    def test_interrupted_run_leaves_last_good_file(self, tmp_path):
        """A crash mid-run keeps the best accepted reduction on disk."""
        doc = numbered(12)
        calls = {"n": 0}

        def flaky(text):
            calls["n"] += 1
            if calls["n"] > 3:
                raise RuntimeError("oracle crashed")
            return needs_line("line 9")(text)

        engine = make_engine(doc, [flaky], tmp_path)

        with pytest.raises(RuntimeError):
            engine.run()

        saved = (tmp_path / "last_ok.rs").read_text(encoding="utf-8")
        assert "line 9\n" in saved
        assert saved.count("\n") < 12

    def test_fatal_diagnostic_is_truncated(self, tmp_path):
        doc = numbered(8)
        engine = make_engine(
            doc, [lambda t: not_equivalent("abcdefghijklmnop")], tmp_path,
            fatal_diagnostic_limit=5,
        )

        with pytest.raises(OriginalInputRejected) as info:
            engine.run()

        assert info.value.message == "abcde"


class TestReductionProgress:
    """Test derived progress figures."""

    def test_estimates(self):
        progress = ReductionProgress(
            position=4, line_count=10, removed=2, attempts=6, elapsed=8.0,
        )
        assert progress.percent_done == 40.0
        assert progress.seconds_per_line == 2.0
        assert progress.remaining_seconds == 12.0
        assert progress.expected_minimization == 50.0

    def test_zero_position_is_safe(self):
        progress = ReductionProgress(
            position=0, line_count=0, removed=0, attempts=0, elapsed=0.0,
        )
        assert progress.seconds_per_line == 0.0
        assert progress.expected_minimization == 0.0
