# lineshrink: line-based test case reducer

"""
Shrinks a source file that reproduces a failure down to a smaller file
that still reproduces it, one span of lines at a time.

Names exported here are the ones oracle scripts use.
"""

from .errors import OracleFailure, ShrinkError
from .oracle import (
    OracleResult,
    Validator,
    ValidatorList,
    equivalent,
    new_minimizer,
    not_equivalent,
)
from .sandbox.command import CommandBuilder, CommandOutcome, OutcomeKind
from .sandbox.rustc import check_compiles, compile_command
from .sandbox.tmp import TempFile, TempScaffold

__version__ = "0.1.0"
