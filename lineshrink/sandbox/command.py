"""
Process sandbox: build an external command, run it, classify the outcome.

Outcome classification:
    SUCCESS         — the process ran to completion with an exit code.
                      Nonzero codes are SUCCESS too; callers read
                      `returncode`, `stdout` and `stderr` themselves.
    LAUNCH_FAILURE  — the process could not be spawned, or was killed
                      by a signal and has no exit code.
    TIMEOUT         — the wall-clock bound was hit, either by our own
                      timer or by a `timeout` wrapper exiting with 124.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import signal
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..config import TIMEOUT_EXIT_CODE
from ..errors import UnsupportedPlatformError

logger = logging.getLogger(__name__)


# =============================================================================
# OUTCOME
# =============================================================================

class OutcomeKind(Enum):
    SUCCESS = "success"
    LAUNCH_FAILURE = "launch_failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class CommandOutcome:
    """
    Result of one launch. Output is always decoded text, never None.
    """
    kind: OutcomeKind
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None

    @property
    def is_ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def has_launch_failed(self) -> bool:
        return self.kind is OutcomeKind.LAUNCH_FAILURE

    @property
    def has_timed_out(self) -> bool:
        return self.kind is OutcomeKind.TIMEOUT


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def classify(returncode: Optional[int], stdout: bytes, stderr: bytes) -> CommandOutcome:
    """Map a finished process to an outcome."""
    out, err = _decode(stdout), _decode(stderr)
    if returncode is None or returncode < 0:
        # Killed by a signal: there is no exit code
        return CommandOutcome(OutcomeKind.LAUNCH_FAILURE, out, err, returncode)
    if returncode == TIMEOUT_EXIT_CODE:
        return CommandOutcome(OutcomeKind.TIMEOUT, out, err, returncode)
    return CommandOutcome(OutcomeKind.SUCCESS, out, err, returncode)


def _kill_group(process: subprocess.Popen) -> None:
    if hasattr(os, "killpg"):
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    process.kill()


# =============================================================================
# BUILDER
# =============================================================================

class CommandBuilder:
    """
    An external command: executable, arguments, environment overrides,
    working directory and an optional timeout.

    Temp resources the command reads can be attached with `hold()`;
    they stay on disk until the builder is closed.
    """

    def __init__(self, exec_path: str):
        self.exec_path = str(exec_path)
        self.args: list[str] = []
        self.env: dict[str, str] = {}
        self.dir: Optional[str] = None
        self.timeout: Optional[float] = None
        self._held: list = []

    @classmethod
    def with_timeout(cls, exec_path: str, seconds: float) -> CommandBuilder:
        """A command killed, with its process group, after `seconds`."""
        if seconds <= 0:
            raise ValueError(f"timeout must be > 0, got {seconds}")
        cmd = cls(exec_path)
        cmd.timeout = float(seconds)
        return cmd

    @classmethod
    def wrapped_in_timeout(cls, exec_path: str, seconds: float) -> CommandBuilder:
        """
        A command run under the `timeout` utility, which exits with 124
        when it kills the command.

        Raises:
            UnsupportedPlatformError: If `timeout` is not on PATH.
        """
        wrapper = shutil.which("timeout")
        if wrapper is None:
            raise UnsupportedPlatformError(
                "the 'timeout' utility is not available on this platform"
            )
        cmd = cls(wrapper)
        cmd.arg(f"{seconds}")
        cmd.arg(str(exec_path))
        return cmd

    # -------------------------------------------------------------------------
    # Building
    # -------------------------------------------------------------------------

    def arg(self, arg: Union[str, os.PathLike]) -> CommandBuilder:
        self.args.append(os.fspath(arg))
        return self

    def set_env(self, key: str, value: str) -> CommandBuilder:
        self.env[key] = value
        return self

    def set_dir(self, dir: Union[str, os.PathLike]) -> CommandBuilder:
        self.dir = os.fspath(dir)
        return self

    def hold(self, resource) -> CommandBuilder:
        """Keep `resource` alive until this builder is closed."""
        self._held.append(resource.acquire())
        return self

    def argv(self) -> list[str]:
        return [self.exec_path, *self.args]

    def display(self) -> str:
        parts = []
        if self.dir is not None:
            parts.append(f"cd {shlex.quote(self.dir)} &&")
        parts.extend(f"{k}={shlex.quote(v)}" for k, v in self.env.items())
        parts.append(shlex.join(self.argv()))
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"CommandBuilder({self.display()!r})"

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def launch(self) -> CommandOutcome:
        """Run the command to completion and classify the result."""
        env = None
        if self.env:
            env = dict(os.environ)
            env.update(self.env)

        logger.debug("Launching %s", self.display())
        try:
            process = subprocess.Popen(
                self.argv(),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                cwd=self.dir,
                env=env,
                start_new_session=self.timeout is not None,
            )
        except (OSError, ValueError) as e:
            logger.debug("Could not launch %s: %s", self.exec_path, e)
            return CommandOutcome(OutcomeKind.LAUNCH_FAILURE)

        try:
            stdout, stderr = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            _kill_group(process)
            stdout, stderr = process.communicate()
            logger.debug("Timed out after %ss: %s", self.timeout, self.display())
            return CommandOutcome(
                OutcomeKind.TIMEOUT, _decode(stdout), _decode(stderr), process.returncode
            )

        return classify(process.returncode, stdout, stderr)

    # -------------------------------------------------------------------------
    # Resource scope
    # -------------------------------------------------------------------------

    def close(self) -> None:
        held, self._held = self._held, []
        for resource in held:
            resource.release()

    def __enter__(self) -> CommandBuilder:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
