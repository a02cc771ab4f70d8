"""
Reduction engine for lineshrink.

Algorithm (single pass, left to right, fixed windows):
    0. The untouched document must pass the oracle, otherwise the run
       aborts with OriginalInputRejected before any mutation.
    1. For every start index i in range(line_count - tail_margin):
         try to remove [i, i+3); on failure roll back and try [i, i+2);
         on failure roll back and try line i alone.
    2. Every accepted removal is committed and the rendering persisted
       to the last-good file.

Positions are never revisited, so the result is a local fixed point
under this strategy, not a global minimum.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from .config import ShrinkConfig
from .document import SourceDocument
from .errors import OriginalInputRejected, truncate_diagnostic
from .oracle import OracleInvoker, OracleResult, equivalent

logger = logging.getLogger(__name__)


# =============================================================================
# PROGRESS
# =============================================================================

@dataclass(frozen=True)
class ReductionProgress:
    """
    Snapshot of a run, emitted after every visited position.

    This is data only; callers decide whether and how to display it.
    """
    position: int  # 1-based count of positions visited so far
    line_count: int
    removed: int
    attempts: int
    elapsed: float  # seconds

    @property
    def percent_done(self) -> float:
        if self.line_count == 0:
            return 100.0
        return self.position / self.line_count * 100.0

    @property
    def seconds_per_line(self) -> float:
        if self.position == 0:
            return 0.0
        return self.elapsed / self.position

    @property
    def remaining_seconds(self) -> float:
        return self.seconds_per_line * (self.line_count - self.position)

    @property
    def expected_minimization(self) -> float:
        """Share of visited positions that ended up removed, in percent."""
        if self.position == 0:
            return 0.0
        return self.removed / self.position * 100.0


ProgressCallback = Callable[[ReductionProgress], None]


@dataclass
class ReductionResult:
    """Outcome of a completed run."""
    line_count: int
    removed: int
    attempts: int
    elapsed: float
    history: list[int] = field(default_factory=list)  # removed_count after each position

    @property
    def remaining(self) -> int:
        return self.line_count - self.removed


# =============================================================================
# ENGINE
# =============================================================================

class ReductionEngine:
    """
    Drives line removal on a SourceDocument it exclusively owns.

    Every oracle call blocks until the validators return; mutation,
    evaluation and commit/rollback of one candidate complete before the
    next candidate starts, because the oracle judges the document's
    cumulative state.
    """

    def __init__(
        self,
        document: SourceDocument,
        oracle: OracleInvoker,
        last_ok_path: Union[str, os.PathLike],
        config: Optional[ShrinkConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.document = document
        self.oracle = oracle
        self.last_ok_path = last_ok_path
        self.config = config or ShrinkConfig()
        self.on_progress = on_progress
        self.attempts = 0

    # -------------------------------------------------------------------------
    # Candidate attempts
    # -------------------------------------------------------------------------

    def _ask(self, what: str) -> OracleResult:
        self.attempts += 1
        result = self.oracle.evaluate(self.document.render())
        if not result.ok:
            reason = truncate_diagnostic(
                result.message or "", self.config.candidate_diagnostic_limit
            )
            logger.debug("Can't remove %s because %s.", what, reason)
        return result

    def _commit(self, what: str) -> None:
        logger.info("Removing %s", what)
        self.document.persist(self.last_ok_path)

    def try_remove_line(self, index: int) -> OracleResult:
        """Remove a single line if the oracle still accepts the document."""
        if self.document.is_removed(index):
            return equivalent()

        what = f"line {index + 1}"
        self.document.remove_line(index)
        result = self._ask(what)
        if result.ok:
            self._commit(what)
        else:
            self.document.restore_line(index)
        return result

    def try_remove_span(self, span: range) -> OracleResult:
        """
        Remove a span of lines if the oracle still accepts the document.

        A span whose lines are all removed already counts as accepted
        without asking the oracle again.
        """
        span = range(span.start, min(span.stop, len(self.document)))
        if self.document.is_span_removed(span):
            return equivalent()

        what = f"lines {span.start + 1}-{span.stop}"
        saved = self.document.span_mask(span)
        self.document.remove_span(span)
        result = self._ask(what)
        if result.ok:
            self._commit(what)
        else:
            self.document.rollback_span(span, saved)
        return result

    def try_position(self, index: int) -> OracleResult:
        """Try the windows at `index`, largest first; stop at the first accepted."""
        result = equivalent()
        for size in self.config.window_sizes:
            if size == 1:
                result = self.try_remove_line(index)
            else:
                result = self.try_remove_span(range(index, index + size))
            if result.ok:
                return result
        return result

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def check_original(self) -> None:
        """
        Raises:
            OriginalInputRejected: If the untouched document fails the oracle.
        """
        result = self.oracle.evaluate(self.document.render())
        if not result.ok:
            message = truncate_diagnostic(
                result.message or "", self.config.fatal_diagnostic_limit
            )
            logger.error("Could not minimize because the original contained errors %s.", message)
            raise OriginalInputRejected(message)

    def positions(self) -> range:
        return range(max(0, len(self.document) - self.config.tail_margin))

    def run(self) -> ReductionResult:
        """
        Reduce the document in place.

        Raises:
            OriginalInputRejected: The original input does not reproduce
                the failure; the mask is left untouched.
            ResourceIOError: The last-good file could not be written.
        """
        self.check_original()

        line_count = len(self.document)
        start = time.monotonic()
        history: list[int] = []

        for index in self.positions():
            self.try_position(index)

            removed = self.document.removed_count()
            history.append(removed)
            if self.on_progress is not None:
                self.on_progress(ReductionProgress(
                    position=index + 1,
                    line_count=line_count,
                    removed=removed,
                    attempts=self.attempts,
                    elapsed=time.monotonic() - start,
                ))

        return ReductionResult(
            line_count=line_count,
            removed=self.document.removed_count(),
            attempts=self.attempts,
            elapsed=time.monotonic() - start,
            history=history,
        )
