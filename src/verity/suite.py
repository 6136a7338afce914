"""Explicit test registration."""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Iterator

from verity.context import TestFunc


@dataclass
class TestCase:
    __test__ = False

    name: str
    func: TestFunc
    parallel: bool = False


class Suite:
    """Named, ordered collection of test functions.

    Tests are registered explicitly; nothing is collected by naming
    convention::

        suite = Suite("arithmetic")

        @suite.test
        def addition(t):
            t.check.equal(3, 1 + 2)

        @suite.test(parallel=True)
        def division(t):
            ...
    """

    def __init__(self, name: str):
        if not name or "/" in name:
            raise ValueError(f"Invalid suite name '{name}'")
        self.name = name
        self._cases: list[TestCase] = []

    def __repr__(self) -> str:
        return f"Suite({self.name!r}, {len(self._cases)} tests)"

    def __len__(self) -> int:
        return len(self._cases)

    def __iter__(self) -> Iterator[TestCase]:
        return iter(list(self._cases))

    @property
    def cases(self) -> list[TestCase]:
        return list(self._cases)

    def add(self, name: str, func: TestFunc, *, parallel: bool = False) -> TestCase:
        if not name or "/" in name:
            raise ValueError(f"Invalid test name '{name}' in suite '{self.name}'")
        if any(case.name == name for case in self._cases):
            raise ValueError(
                f"Test '{name}' is already registered in suite '{self.name}'"
            )
        case = TestCase(name=name, func=func, parallel=parallel)
        self._cases.append(case)
        return case

    def test(
        self,
        func: TestFunc | None = None,
        *,
        name: str | None = None,
        parallel: bool = False,
    ) -> TestFunc | Callable[[TestFunc], TestFunc]:
        """Register a test; usable as ``@suite.test`` or ``@suite.test(...)``."""

        def register(fn: TestFunc) -> TestFunc:
            self.add(name or fn.__name__, fn, parallel=parallel)
            return fn

        if func is not None:
            return register(func)
        return register


def load_suite(reference: str) -> Suite:
    """Resolve a ``"package.module:attribute"`` reference to a Suite."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(
            f"Suite reference '{reference}' must look like 'module:attribute'"
        )

    module = importlib.import_module(module_name)
    try:
        suite = getattr(module, attr)
    except AttributeError:
        raise ValueError(f"Module '{module_name}' has no attribute '{attr}'") from None

    if not isinstance(suite, Suite):
        raise ValueError(
            f"'{reference}' is a {type(suite).__name__}, not a Suite"
        )
    return suite
