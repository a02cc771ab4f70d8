"""
Pipeline orchestrator for lineshrink.

Stages:
    1. Load the oracle script
    2. Load the source document
    3. Run the reduction engine, persisting to the last-good file

The last-good file is written next to the source as
`last_ok.<source extension>`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..config import ShrinkConfig
from ..document import SourceDocument
from ..engine import ProgressCallback, ReductionEngine, ReductionResult
from ..errors import ResourceIOError
from ..oracle import OracleResult
from ..sandbox.tmp import set_scratch_dir
from ..script import load_oracle


def last_ok_path_for(source_path: Union[str, os.PathLike], stem: str) -> Path:
    """`dir/file.rs` -> `dir/<stem>.rs`"""
    source = Path(source_path)
    return source.with_name(stem + source.suffix)


def _load_document(source_path: Union[str, os.PathLike]) -> SourceDocument:
    try:
        return SourceDocument.from_file(source_path)
    except OSError as e:
        raise ResourceIOError(str(source_path), f"cannot read source: {e}") from e


@dataclass
class PipelineResult:
    """Everything the CLI reports after a run."""
    source_path: Path
    last_ok_path: Path
    result: ReductionResult


def run_reduction(
    source_path: Union[str, os.PathLike],
    oracle_path: Union[str, os.PathLike],
    config: Optional[ShrinkConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """
    Reduce `source_path` with the validators from `oracle_path`.

    Raises:
        ShrinkError: On a broken script, an original input that does not
            reproduce the failure, or an I/O failure.
    """
    config = config or ShrinkConfig.from_env()
    set_scratch_dir(config.scratch_dir)
    oracle = load_oracle(oracle_path)
    document = _load_document(source_path)
    last_ok = last_ok_path_for(source_path, config.last_ok_stem)

    engine = ReductionEngine(
        document,
        oracle,
        last_ok,
        config=config,
        on_progress=on_progress,
    )
    result = engine.run()

    return PipelineResult(
        source_path=Path(source_path),
        last_ok_path=last_ok,
        result=result,
    )


def check_original(
    source_path: Union[str, os.PathLike],
    oracle_path: Union[str, os.PathLike],
    config: Optional[ShrinkConfig] = None,
) -> OracleResult:
    """Run the oracle once against the untouched source."""
    config = config or ShrinkConfig.from_env()
    set_scratch_dir(config.scratch_dir)
    oracle = load_oracle(oracle_path)
    document = _load_document(source_path)
    return oracle.evaluate(document.render())
