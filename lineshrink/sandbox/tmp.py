"""
Scoped temporary files and directories.

A TempResource owns a path in the scratch directory. Holders share it
through a reference count: `acquire()` adds a holder, `release()` drops
one, and the path is deleted when the last holder lets go. The resource
is also deleted if it is garbage collected first. Deletion happens at
most once and its failures are logged, never raised.

    with TempFile.create("rs", source) as tmp:
        cmd = CommandBuilder("rustc").arg(tmp.path).hold(tmp)
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import weakref
from typing import Iterable, Optional

from ..config import (
    DEFAULT_SCAFFOLD_ENTRY,
    DEFAULT_SCAFFOLD_INIT,
    DEFAULT_SCAFFOLD_TOOL,
)
from ..document import ENCODING, ENCODING_ERRORS
from ..errors import ResourceIOError, truncate_diagnostic
from .command import CommandBuilder

logger = logging.getLogger(__name__)

PREFIX = "tmp"

# Scratch directory for new resources; None means the platform temp dir
_scratch_dir: Optional[str] = None


def get_scratch_dir() -> Optional[str]:
    return _scratch_dir


def set_scratch_dir(path: Optional[str]) -> None:
    """Set where TempFile and TempScaffold allocate by default."""
    global _scratch_dir
    _scratch_dir = path


def _remove_path(path: str, is_dir: bool) -> None:
    try:
        if is_dir:
            shutil.rmtree(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        logger.debug("Temp path already gone: %s", path)
    except OSError as e:
        logger.warning("Could not delete temp path %s: %s", path, e)


class TempResource:
    """A path deleted when its last holder releases it."""

    is_dir = False

    def __init__(self, path: str):
        self.path = path
        self._holders = 1
        self._finalizer = weakref.finalize(self, _remove_path, path, self.is_dir)

    @property
    def released(self) -> bool:
        return not self._finalizer.alive

    @property
    def holders(self) -> int:
        return self._holders

    def acquire(self) -> TempResource:
        if self.released:
            raise ResourceIOError(self.path, "temp resource was already released")
        self._holders += 1
        return self

    def release(self) -> None:
        if self.released:
            return
        self._holders -= 1
        if self._holders <= 0:
            self._finalizer()

    def __fspath__(self) -> str:
        return self.path

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r}, holders={self._holders})"


# =============================================================================
# FILES
# =============================================================================

class TempFile(TempResource):
    """A uniquely named file in the scratch directory."""

    @classmethod
    def create_empty(cls, extension: str, scratch_dir: Optional[str] = None) -> TempFile:
        """Allocate a unique path; the caller writes it later."""
        scratch_dir = scratch_dir or _scratch_dir
        try:
            fd, path = tempfile.mkstemp(suffix=f".{extension}", prefix=PREFIX, dir=scratch_dir)
            os.close(fd)
        except OSError as e:
            raise ResourceIOError(scratch_dir or tempfile.gettempdir(), str(e)) from e
        return cls(path)

    @classmethod
    def create(cls, extension: str, contents: str, scratch_dir: Optional[str] = None) -> TempFile:
        """Allocate a unique path and write `contents` to it."""
        tmp = cls.create_empty(extension, scratch_dir)
        try:
            tmp.write(contents)
        except ResourceIOError:
            tmp.release()
            raise
        return tmp

    def write(self, contents: str) -> None:
        try:
            with open(self.path, "w", encoding=ENCODING, errors=ENCODING_ERRORS) as f:
                f.write(contents)
        except (OSError, UnicodeError) as e:
            raise ResourceIOError(self.path, str(e)) from e

    def read(self) -> str:
        with open(self.path, "r", encoding=ENCODING, errors=ENCODING_ERRORS) as f:
            return f.read()


# =============================================================================
# PROJECT SCAFFOLDS
# =============================================================================

class TempScaffold(TempResource):
    """
    A throwaway project directory created by a project initializer
    (`cargo new` by default) with its entry point replaced by `contents`.

    The whole directory tree is deleted on release.
    """

    is_dir = True

    def __init__(self, path: str, root: str, entry_path: str, tool: str):
        super().__init__(path)
        self.root = root
        self.entry_path = entry_path
        self.tool = tool

    @classmethod
    def create(
        cls,
        contents: str,
        init_command: Iterable[str] = DEFAULT_SCAFFOLD_INIT,
        entry_point: str = DEFAULT_SCAFFOLD_ENTRY,
        tool: str = DEFAULT_SCAFFOLD_TOOL,
        scratch_dir: Optional[str] = None,
    ) -> TempScaffold:
        """
        Raises:
            ResourceIOError: If the directory cannot be created, the
                initializer fails, or the entry point cannot be written.
            ValueError: If `init_command` is empty.
        """
        init = list(init_command)
        if not init:
            raise ValueError("init_command must name an executable")

        scratch_dir = scratch_dir or _scratch_dir
        try:
            parent = tempfile.mkdtemp(prefix=PREFIX, dir=scratch_dir)
        except OSError as e:
            raise ResourceIOError(scratch_dir or tempfile.gettempdir(), str(e)) from e

        # Crate names must be lowercase identifiers
        name = os.path.basename(parent).lower()
        root = os.path.join(parent, name)
        entry_path = os.path.join(root, *entry_point.split("/"))
        scaffold = cls(parent, root, entry_path, tool)

        try:
            cmd = CommandBuilder(init[0]).set_dir(parent)
            for arg in init[1:]:
                cmd.arg(arg)
            cmd.arg(name)
            outcome = cmd.launch()
            if not outcome.is_ok or outcome.returncode != 0:
                reason = truncate_diagnostic(outcome.stderr.strip(), 500)
                raise ResourceIOError(
                    root, f"project initializer failed ({outcome.kind.value}): {reason}"
                )
            logger.debug("Created scaffold %s", root)

            try:
                os.makedirs(os.path.dirname(entry_path), exist_ok=True)
                with open(entry_path, "w", encoding=ENCODING, errors=ENCODING_ERRORS) as f:
                    f.write(contents)
            except (OSError, UnicodeError) as e:
                raise ResourceIOError(entry_path, str(e)) from e
        except ResourceIOError:
            scaffold.release()
            raise
        return scaffold

    def command(self, subcommand: str) -> CommandBuilder:
        """A toolchain command (e.g. `cargo build`) rooted at the scaffold."""
        cmd = CommandBuilder(self.tool).set_dir(self.root)
        cmd.arg(subcommand)
        cmd.hold(self)
        return cmd
