"""
Error taxonomy for lineshrink.

Failure kinds:
    OracleFailure          — a candidate is not equivalent; recoverable
    OriginalInputRejected  — the untouched input fails the oracle; fatal
    ResourceIOError        — temp resource or persistence I/O failed; fatal
    ScriptError            — the oracle script cannot be loaded; fatal

Launch failures and timeouts are not exceptions: they are outcomes of
a command (see sandbox.command.CommandOutcome) and each validator
decides what they mean.
"""

from __future__ import annotations


def truncate_diagnostic(message: str, limit: int) -> str:
    """Cut a diagnostic down to its first `limit` characters."""
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return message[:limit]


class ShrinkError(Exception):
    """Base class for every error raised by lineshrink."""


class OracleFailure(ShrinkError):
    """
    Raised by a validator to report that a rendering is not equivalent.

    Returning `not_equivalent(message)` has the same effect.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class OriginalInputRejected(ShrinkError):
    """The original, unreduced input does not reproduce the failure."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(
            f"Could not minimize because the original contained errors: {message}"
        )


class ResourceIOError(ShrinkError):
    """A temporary resource or the last-good file could not be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ScriptError(ShrinkError):
    """The oracle script is missing, broken, or returned no validators."""


class UnsupportedPlatformError(ShrinkError):
    """A sandbox feature needs a helper that this platform does not have."""
