"""
Ready-made rustc helpers for oracle scripts.

    compile_command(source)  — temp .rs file + `rustc ... -o <exec>` command
    check_compiles(source)   — fast type check with `-Z no-codegen`
"""

from __future__ import annotations

import os
from typing import Optional

from ..oracle import OracleResult, equivalent, not_equivalent
from .command import CommandBuilder, CommandOutcome
from .tmp import TempFile

RUSTC = "rustc"
EDITION = "2021"


class CompileCommand:
    """
    A rustc invocation compiling a temp copy of `source`.

    The temp source stays on disk while the command is open.
    """

    def __init__(self, source: str, exec_ext: str = "a", rustc: str = RUSTC,
                 scratch_dir: Optional[str] = None):
        with TempFile.create("rs", source, scratch_dir) as src:
            self.exec_file = os.path.splitext(src.path)[0] + f".{exec_ext}"
            self.source_file = src.path
            self.cmd = CommandBuilder(rustc)
            self.cmd.arg(src.path).arg("--edition").arg(EDITION)
            self.cmd.arg("-o").arg(self.exec_file)
            self.cmd.hold(src)

    def arg(self, arg: str) -> CompileCommand:
        self.cmd.arg(arg)
        return self

    def set_env(self, key: str, value: str) -> CompileCommand:
        self.cmd.set_env(key, value)
        return self

    def set_dir(self, dir: str) -> CompileCommand:
        self.cmd.set_dir(dir)
        return self

    def display(self) -> str:
        return self.cmd.display()

    def launch(self) -> CommandOutcome:
        return self.cmd.launch()

    def close(self) -> None:
        self.cmd.close()
        try:
            os.remove(self.exec_file)
        except FileNotFoundError:
            pass

    def __enter__(self) -> CompileCommand:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def compile_command(source: str, exec_ext: str = "a") -> CompileCommand:
    return CompileCommand(source, exec_ext)


def check_compiles(source: str, rustc: str = RUSTC) -> OracleResult:
    """Accept `source` if nightly rustc type-checks it without errors."""
    with TempFile.create("rs", source) as src:
        cmd = CommandBuilder(rustc)
        cmd.arg("+nightly").arg("-Z").arg("no-codegen")
        cmd.arg(src.path).arg("--edition").arg(EDITION)
        outcome = cmd.launch()

    if not outcome.is_ok:
        return not_equivalent(f"Could not run {rustc}")
    if "error" in outcome.stderr:
        return not_equivalent(f"{rustc} error")
    return equivalent()
