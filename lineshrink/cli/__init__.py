# CLI package for lineshrink
"""
Command-line interface for running reductions.

Commands:
    lineshrink reduce — Shrink a failing source file
    lineshrink check  — Check that the source reproduces the failure
"""
