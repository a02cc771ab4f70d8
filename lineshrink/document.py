"""
SourceDocument — the line buffer the reduction engine works on.

INVARIANT:
    `lines` and `removed` always have the same length, fixed at load time.
    A reduction only flips entries of `removed`; lines are never inserted,
    deleted, or edited, so index i means the same line for the whole run.

Rendering emits every line whose `removed` entry is False, each followed
by a newline. Removed lines are omitted entirely, not blanked.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Union

from .errors import ResourceIOError


# Source files are read and written as UTF-8; bytes that are not valid
# UTF-8 survive the round trip unchanged.
ENCODING = "utf-8"
ENCODING_ERRORS = "surrogateescape"


def split_lines(text: str) -> list[str]:
    """Split text on '\\n' without keeping terminators."""
    if text == "":
        return []
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    return lines


class SourceDocument:
    """
    An indexed, line-oriented text buffer with a removal mask.
    """

    def __init__(self, lines: list[str]):
        self._lines: tuple[str, ...] = tuple(lines)
        self._removed: list[bool] = [False] * len(self._lines)

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, text: str) -> SourceDocument:
        """Create a document from text; every line starts unremoved."""
        return cls(split_lines(text))

    @classmethod
    def from_file(cls, path: Union[str, os.PathLike]) -> SourceDocument:
        """
        Read a document from disk.

        Raises:
            OSError: If the file cannot be read. This is fatal to a run.
        """
        with open(path, "r", encoding=ENCODING, errors=ENCODING_ERRORS, newline="") as f:
            return cls.load(f.read())

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> tuple[str, ...]:
        return self._lines

    def is_removed(self, index: int) -> bool:
        return self._removed[index]

    def mask(self) -> tuple[bool, ...]:
        """Snapshot of the whole removal mask."""
        return tuple(self._removed)

    def span_mask(self, span: range) -> tuple[bool, ...]:
        """Snapshot of the removal mask over `span`."""
        return tuple(self._removed[i] for i in span)

    def is_span_removed(self, span: range) -> bool:
        return all(self._removed[i] for i in span)

    def removed_count(self) -> int:
        return sum(self._removed)

    def visible_lines(self) -> Iterator[str]:
        for line, removed in zip(self._lines, self._removed):
            if not removed:
                yield line

    def render(self) -> str:
        """Current visible text. Pure; may be called any number of times."""
        return "".join(f"{line}\n" for line in self.visible_lines())

    def __str__(self) -> str:
        return self.render()

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def remove_line(self, index: int) -> None:
        self._removed[index] = True

    def restore_line(self, index: int) -> None:
        self._removed[index] = False

    def remove_span(self, span: range) -> bool:
        """
        Remove every line in `span`.

        Returns:
            False if every line in the span was already removed (nothing
            to do), True otherwise.
        """
        if self.is_span_removed(span):
            return False
        for index in span:
            self.remove_line(index)
        return True

    def rollback_span(self, span: range, saved_mask: tuple[bool, ...]) -> None:
        """
        Undo a failed `remove_span`.

        Only lines that were present in `saved_mask` are restored. Lines
        already removed before the attempt stay removed, so a failed
        overlapping attempt never resurrects a committed removal.
        """
        if len(saved_mask) != len(span):
            raise ValueError(
                f"saved mask covers {len(saved_mask)} lines, span covers {len(span)}"
            )
        for index, was_removed in zip(span, saved_mask):
            if not was_removed:
                self.restore_line(index)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def persist(self, path: Union[str, os.PathLike]) -> None:
        """
        Overwrite `path` with the current rendering.

        The text is written to a sibling file first and moved into place,
        so `path` always holds a complete rendering.

        Raises:
            ResourceIOError: If the file cannot be written.
        """
        target = Path(path)
        staging = target.with_name(f".{target.name}.partial")
        try:
            with open(staging, "w", encoding=ENCODING, errors=ENCODING_ERRORS, newline="") as f:
                f.write(self.render())
            os.replace(staging, target)
        except OSError as e:
            try:
                os.remove(staging)
            except OSError:
                pass
            raise ResourceIOError(str(target), str(e)) from e
