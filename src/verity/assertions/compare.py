"""Structural comparison over a closed set of value shapes.

Every value is tagged with a :class:`Shape` before it is compared, and
comparison dispatches on the pair of tags. Values of different shapes are
never equal; pairs whose ``==`` raises are reported as not comparable
rather than propagating the error.

One documented exception to reflexivity: NaN (float, complex, Decimal,
numpy) is never equal to itself, even when compared by identity.

Set members and mapping keys are matched by shape as well as by hash, so
``{1}`` and ``{True}`` differ just as ``[1]`` and ``[True]`` do. A 0-d
numpy array is treated as the scalar it holds.
"""

from __future__ import annotations

import dataclasses
import numbers
from collections import deque
from collections.abc import Mapping, Sequence, Set
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from pydantic import BaseModel

from verity.assertions.formatting import show


class Shape(str, Enum):
    NONE = "none"
    BOOL = "bool"
    NUMBER = "number"
    TEXT = "text"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    SET = "set"
    MAPPING = "mapping"
    RECORD = "record"
    OPAQUE = "opaque"


_SCALAR_SHAPES = frozenset({Shape.BOOL, Shape.NUMBER, Shape.TEXT, Shape.BYTES})


@dataclass(frozen=True)
class Comparison:
    """Outcome of a comparison; truthy when the values matched.

    Attributes:
        matched: Whether the comparison succeeded.
        reason: Diagnostic explaining a mismatch, or ``None`` when the
            expected/actual pair speaks for itself.
        malformed: The operands cannot be compared with this operation at
            all (e.g. containment in an integer).
    """

    matched: bool
    reason: str | None = None
    malformed: bool = False

    def __bool__(self) -> bool:
        return self.matched


MATCH = Comparison(True)


def shape_of(value: Any) -> Shape:
    if value is None:
        return Shape.NONE
    if isinstance(value, (bool, np.bool_)):
        return Shape.BOOL
    if isinstance(value, (numbers.Number, np.number)):
        return Shape.NUMBER
    if isinstance(value, str):
        return Shape.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Shape.BYTES
    if isinstance(value, np.ndarray):
        if value.ndim == 0:
            return shape_of(value.item())
        return Shape.SEQUENCE
    if isinstance(value, Mapping):
        return Shape.MAPPING
    if isinstance(value, Set):
        return Shape.SET
    if isinstance(value, BaseModel):
        return Shape.RECORD
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return Shape.RECORD
    if isinstance(value, (Sequence, deque)):
        return Shape.SEQUENCE
    return Shape.OPAQUE


def type_name(value: Any) -> str:
    return type(value).__name__


def compare_equal(actual: Any, expected: Any) -> Comparison:
    """Deep structural equality of ``actual`` and ``expected``."""
    return _compare(actual, expected, "", set())


def compare_contains(haystack: Any, needle: Any) -> Comparison:
    """Substring check for text, membership by :func:`compare_equal` otherwise."""
    haystack = _unwrap(haystack)
    shape = shape_of(haystack)

    if shape is Shape.TEXT:
        if not isinstance(needle, str):
            return _malformed(
                f"cannot search {type_name(haystack)} for {type_name(needle)}"
            )
        return Comparison(needle in haystack)

    if shape is Shape.BYTES:
        if shape_of(needle) is not Shape.BYTES:
            return _malformed(
                f"cannot search {type_name(haystack)} for {type_name(needle)}"
            )
        return Comparison(bytes(needle) in bytes(haystack))

    if shape is Shape.MAPPING:
        try:
            return Comparison(needle in haystack)
        except TypeError as exc:
            return _malformed(f"cannot look up key in {type_name(haystack)}: {exc}")

    if shape in (Shape.SEQUENCE, Shape.SET):
        for item in _items(haystack):
            if compare_equal(item, needle):
                return MATCH
        return Comparison(False)

    return _malformed(f"cannot check containment in {type_name(haystack)}")


def length_of(value: Any) -> int | None:
    """Return ``len(value)`` or ``None`` when the value has no length."""
    try:
        return len(value)
    except TypeError:
        return None


def _malformed(reason: str) -> Comparison:
    return Comparison(False, reason=reason, malformed=True)


def _differ(path: str, what: str) -> Comparison:
    if not path:
        return Comparison(False, reason=what)
    return Comparison(False, reason=f"{what} at {path}")


def _not_comparable(actual: Any, expected: Any, path: str, exc: Exception) -> Comparison:
    return _differ(
        path,
        f"not comparable: {type_name(actual)} vs {type_name(expected)} ({exc})",
    )


def _unwrap(value: Any) -> Any:
    if isinstance(value, np.ndarray) and value.ndim == 0:
        return value.item()
    return value


def _member_key(value: Any) -> tuple[Shape, Any]:
    """Hashable key that keeps members of different shapes apart."""
    value = _unwrap(value)
    shape = shape_of(value)
    if shape is Shape.SET:
        return shape, frozenset(_member_key(v) for v in value)
    if isinstance(value, tuple):
        return shape, tuple(_member_key(v) for v in value)
    return shape, value


def _items(value: Any) -> list[Any]:
    if isinstance(value, np.ndarray):
        return value.tolist()
    return list(value)


def _fields(record: Any) -> dict[str, Any]:
    if isinstance(record, BaseModel):
        return {name: getattr(record, name) for name in type(record).model_fields}
    return {
        f.name: getattr(record, f.name)
        for f in dataclasses.fields(record)
        if f.compare
    }


def _compare(actual: Any, expected: Any, path: str, seen: set[tuple[int, int]]) -> Comparison:
    actual = _unwrap(actual)
    expected = _unwrap(expected)
    actual_shape = shape_of(actual)
    expected_shape = shape_of(expected)

    if actual_shape is not expected_shape:
        return _differ(
            path, f"type mismatch: {type_name(actual)} vs {type_name(expected)}"
        )

    if actual_shape is Shape.NONE:
        return MATCH

    if actual_shape in _SCALAR_SHAPES:
        try:
            equal = bool(actual == expected)
        except Exception as exc:
            return _not_comparable(actual, expected, path, exc)
        if equal:
            return MATCH
        return Comparison(False) if not path else _differ(path, "differs")

    if actual_shape is Shape.OPAQUE:
        if actual is expected:
            return MATCH
        try:
            equal = bool(actual == expected)
        except Exception as exc:
            return _not_comparable(actual, expected, path, exc)
        if equal:
            return MATCH
        return Comparison(False) if not path else _differ(path, "differs")

    # Containers: a pair already on the stack is treated as equal so
    # self-referencing structures terminate.
    key = (id(actual), id(expected))
    if key in seen:
        return MATCH
    seen.add(key)
    try:
        if actual_shape is Shape.SEQUENCE:
            return _compare_sequences(_items(actual), _items(expected), path, seen)
        if actual_shape is Shape.MAPPING:
            return _compare_mappings(actual, expected, path, seen)
        if actual_shape is Shape.SET:
            return _compare_sets(actual, expected, path)
        return _compare_records(actual, expected, path, seen)
    finally:
        seen.discard(key)


def _compare_sequences(
    actual: list[Any], expected: list[Any], path: str, seen: set[tuple[int, int]]
) -> Comparison:
    if len(actual) != len(expected):
        return _differ(path, f"length mismatch: {len(actual)} vs {len(expected)}")
    for index, (a, e) in enumerate(zip(actual, expected)):
        result = _compare(a, e, f"{path}[{index}]", seen)
        if not result:
            return result
    return MATCH


def _compare_mappings(
    actual: Mapping, expected: Mapping, path: str, seen: set[tuple[int, int]]
) -> Comparison:
    try:
        actual_keys = {_member_key(k): k for k in actual}
        expected_keys = {_member_key(k): k for k in expected}
    except Exception as exc:
        return _not_comparable(actual, expected, path, exc)
    missing = [k for mk, k in expected_keys.items() if mk not in actual_keys]
    unexpected = [k for mk, k in actual_keys.items() if mk not in expected_keys]
    if missing or unexpected:
        return _differ(
            path,
            f"keys differ: missing [{', '.join(show(k) for k in missing)}], "
            f"unexpected [{', '.join(show(k) for k in unexpected)}]",
        )
    for mk, key in expected_keys.items():
        result = _compare(
            actual[actual_keys[mk]], expected[key], f"{path}[{show(key)}]", seen
        )
        if not result:
            return result
    return MATCH


def _compare_sets(actual: Set, expected: Set, path: str) -> Comparison:
    try:
        actual_members = {_member_key(v): v for v in actual}
        expected_members = {_member_key(v): v for v in expected}
    except Exception as exc:
        return _not_comparable(actual, expected, path, exc)
    missing = sorted(
        show(v) for mk, v in expected_members.items() if mk not in actual_members
    )
    unexpected = sorted(
        show(v) for mk, v in actual_members.items() if mk not in expected_members
    )
    if not missing and not unexpected:
        return MATCH
    return _differ(
        path,
        f"members differ: missing [{', '.join(missing)}], "
        f"unexpected [{', '.join(unexpected)}]",
    )


def _compare_records(
    actual: Any, expected: Any, path: str, seen: set[tuple[int, int]]
) -> Comparison:
    if type(actual) is not type(expected):
        return _differ(
            path, f"type mismatch: {type_name(actual)} vs {type_name(expected)}"
        )
    expected_fields = _fields(expected)
    actual_fields = _fields(actual)
    for name, value in expected_fields.items():
        result = _compare(actual_fields[name], value, f"{path}.{name}", seen)
        if not result:
            return result
    return MATCH
