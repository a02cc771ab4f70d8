# Sandbox package for lineshrink
"""
External process execution and scoped temporary resources.
"""

from .command import CommandBuilder, CommandOutcome, OutcomeKind
from .tmp import TempFile, TempResource, TempScaffold
