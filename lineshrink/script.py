"""
Loading oracle scripts.

An oracle script is a Python file defining `init()`, which returns the
validators to run, in order:

    from lineshrink import CommandBuilder, new_minimizer, not_equivalent

    def still_crashes(text):
        ...

    def init():
        return new_minimizer().add(still_crashes, "still crashes")

`init()` may also return any iterable of validators or plain callables.
"""

from __future__ import annotations

import importlib.util
import logging
import os
import sys
from typing import Union

from .errors import ScriptError
from .oracle import OracleInvoker, Validator, as_validator

logger = logging.getLogger(__name__)

INIT_FUNCTION = "init"


def load_validators(path: Union[str, os.PathLike]) -> list[Validator]:
    """
    Import the script at `path` and collect its validators.

    Raises:
        ScriptError: If the script cannot be imported, has no `init`, or
            `init()` raises or does not return validators.
    """
    path = os.fspath(path)
    if not os.path.isfile(path):
        raise ScriptError(f"oracle script not found: {path}")

    module_name = f"_lineshrink_oracle_{abs(hash(os.path.abspath(path)))}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ScriptError(f"cannot import oracle script: {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[module_name]
        raise ScriptError(f"oracle script {path} failed to import: {e}") from e

    init = getattr(module, INIT_FUNCTION, None)
    if not callable(init):
        raise ScriptError(f"oracle script {path} does not define {INIT_FUNCTION}()")

    try:
        returned = init()
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise ScriptError(f"{INIT_FUNCTION}() in {path} failed: {e}") from e
    if returned is None:
        raise ScriptError(f"{INIT_FUNCTION}() in {path} returned None")
    try:
        validators = [as_validator(item) for item in returned]
    except TypeError as e:
        raise ScriptError(f"{INIT_FUNCTION}() in {path} returned invalid validators: {e}") from e

    if not validators:
        logger.warning("Oracle script %s registered no validators; every candidate will pass", path)
    for validator in validators:
        logger.debug("Registered validator %s", validator.name)
    return validators


def load_oracle(path: Union[str, os.PathLike]) -> OracleInvoker:
    return OracleInvoker(load_validators(path))
