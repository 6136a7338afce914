"""Base data structures for the assertion system."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Kind(str, Enum):
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    ALMOST_EQUAL = "almost_equal"
    TRUE = "true"
    FALSE = "false"
    NONE = "none"
    NOT_NONE = "not_none"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    LENGTH = "length"
    EMPTY = "empty"
    NOT_EMPTY = "not_empty"
    INSTANCE = "instance"
    ERROR = "error"
    NO_ERROR = "no_error"
    FAIL = "fail"


# Kinds whose failure message carries no expected/actual clause.
PREDICATE_KINDS = frozenset(
    {Kind.TRUE, Kind.FALSE, Kind.EMPTY, Kind.NOT_EMPTY, Kind.NOT_NONE, Kind.FAIL}
)


@dataclass(frozen=True)
class SourceLocation:
    filename: str
    lineno: int
    function: str = ""

    def __str__(self) -> str:
        return f"{self.filename}:{self.lineno}"


@dataclass(frozen=True)
class Expectation:
    """A single evaluation request.

    Attributes:
        kind: Which check to run.
        actual: The value under test (haystack for containment checks).
        expected: The reference value; unused by predicate kinds. For
            ``almost_equal`` this is the target and ``delta`` the tolerance.
        message: Optional caller message, formatted with ``args`` via
            ``str.format`` only when the expectation fails.
        args: Positional arguments for ``message``.
        delta: Tolerance for ``almost_equal``.
    """

    kind: Kind
    actual: Any = None
    expected: Any = None
    message: str | None = None
    args: tuple[Any, ...] = ()
    delta: float = 0.0


@dataclass(frozen=True)
class Outcome:
    """Result of evaluating one Expectation.

    ``message`` stays ``None`` for passing outcomes; the formatter never runs
    on the success path.
    """

    passed: bool
    message: str | None = None
    location: SourceLocation | None = None
    kind: Kind | None = field(default=None, compare=False)

    def describe(self) -> str:
        if self.location is None:
            return self.message or ""
        return f"{self.location}: {self.message}"
