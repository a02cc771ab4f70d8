"""
lineshrink CLI entry point.

Usage:
    python -m lineshrink.cli reduce -s <source> -m <oracle script>
    python -m lineshrink.cli check -s <source> -m <oracle script>
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
