"""
Oracle invocation for lineshrink.

An oracle is an ordered list of validators. Each validator takes the
rendered text of a candidate and says whether it is still "equivalent"
to the original failure. This is a binary gate: there is no "maybe".

Evaluation rules:
1. Validators run in registration order
2. The first failing validator stops evaluation
3. The candidate is equivalent only if every validator accepts it
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Optional, Union

from .errors import OracleFailure


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class OracleResult:
    """Verdict of a validator or of the whole oracle."""
    ok: bool
    message: Optional[str] = None

    def __post_init__(self):
        if not self.ok and self.message is None:
            object.__setattr__(self, "message", "")

    def __bool__(self) -> bool:
        return self.ok


def equivalent() -> OracleResult:
    """The candidate still reproduces the failure."""
    return OracleResult(ok=True)


def not_equivalent(message: str) -> OracleResult:
    """The candidate no longer reproduces the failure, and why."""
    return OracleResult(ok=False, message=message)


# =============================================================================
# VALIDATORS
# =============================================================================

CheckFn = Callable[[str], Optional[OracleResult]]


@dataclass(frozen=True)
class Validator:
    """
    A named predicate over rendered text.

    `check` may return an OracleResult, return None (accepted), or raise
    OracleFailure (rejected). Any other exception is a bug in the oracle
    script and propagates.
    """
    name: str
    check: CheckFn

    def evaluate(self, text: str) -> OracleResult:
        try:
            result = self.check(text)
        except OracleFailure as e:
            return not_equivalent(e.message)
        if result is None:
            return equivalent()
        if not isinstance(result, OracleResult):
            raise TypeError(
                f"validator {self.name!r} returned {type(result).__name__}, "
                "expected OracleResult or None"
            )
        return result


ValidatorLike = Union[Validator, CheckFn]


def as_validator(item: ValidatorLike) -> Validator:
    """Wrap a plain callable in a Validator named after it."""
    if isinstance(item, Validator):
        return item
    if not callable(item):
        raise TypeError(f"validator must be callable, got {type(item).__name__}")
    return Validator(name=getattr(item, "__name__", repr(item)), check=item)


class ValidatorList:
    """Ordered collection of validators built by an oracle script."""

    def __init__(self, validators: Iterable[ValidatorLike] = ()):
        self._validators: list[Validator] = [as_validator(v) for v in validators]

    def add(self, check: CheckFn, name: Optional[str] = None) -> ValidatorList:
        if name is None:
            self._validators.append(as_validator(check))
        else:
            self._validators.append(Validator(name=name, check=check))
        return self

    def __iter__(self) -> Iterator[Validator]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)


def new_minimizer() -> ValidatorList:
    """Start an empty validator list (script-facing helper)."""
    return ValidatorList()


# =============================================================================
# INVOKER
# =============================================================================

class OracleInvoker:
    """
    Runs validators against a candidate rendering, fail-fast.
    """

    def __init__(self, validators: Iterable[ValidatorLike]):
        self._validators: tuple[Validator, ...] = tuple(
            as_validator(v) for v in validators
        )
        self.calls = 0

    @property
    def validators(self) -> tuple[Validator, ...]:
        return self._validators

    def evaluate(self, text: str) -> OracleResult:
        """Return the first failure, or success if every validator accepts."""
        self.calls += 1
        for validator in self._validators:
            result = validator.evaluate(text)
            if not result.ok:
                return result
        return equivalent()

    def __call__(self, text: str) -> OracleResult:
        return self.evaluate(text)
