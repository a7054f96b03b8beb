"""Structural matching of JSON response bodies.

Expected shapes are plain Python values where some leaves are matchers:

- dict: every expected key must exist in the actual object; extra keys are fine
- list: every expected element must match a distinct actual element, any order
- re.Pattern: searched in the JSON text form of a scalar
- ANY: any present value, including null
- a type: isinstance check
- a callable: predicate on the actual value
- anything else: equality

Example:
    assert_shape(body, [{"id": ANY, "nome": re.compile(r".*"), "cnpj": str}])
"""

import json
import re
from dataclasses import dataclass
from typing import Any

from .errors import ShapeMismatchError


class _Any:
    """Wildcard that matches any present value."""

    def __repr__(self) -> str:
        return "ANY"


ANY = _Any()


@dataclass(frozen=True)
class Mismatch:
    """A single place where the actual body differs from the expected shape."""

    path: str
    reason: str

    def __str__(self) -> str:
        return f"{self.path}: {self.reason}"


def _describe(value: Any) -> str:
    if isinstance(value, re.Pattern):
        return f"/{value.pattern}/"
    if isinstance(value, type):
        return value.__name__
    text = repr(value)
    return text if len(text) <= 60 else text[:60] + "..."


def _scalar_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _child(path: str, key: Any) -> str:
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}"


def _match(actual: Any, expected: Any, path: str) -> list[Mismatch]:
    if expected is ANY:
        return []

    if isinstance(expected, re.Pattern):
        if isinstance(actual, (dict, list)):
            reason = f"expected scalar matching {_describe(expected)}, got {type(actual).__name__}"
            return [Mismatch(path, reason)]
        if not expected.search(_scalar_text(actual)):
            return [Mismatch(path, f"{_describe(actual)} does not match {_describe(expected)}")]
        return []

    if isinstance(expected, type):
        if not isinstance(actual, expected):
            return [Mismatch(path, f"expected {expected.__name__}, got {type(actual).__name__}")]
        return []

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            return [Mismatch(path, f"expected object, got {type(actual).__name__}")]
        mismatches: list[Mismatch] = []
        for key, sub_expected in expected.items():
            if key not in actual:
                mismatches.append(Mismatch(_child(path, key), "missing"))
                continue
            mismatches.extend(_match(actual[key], sub_expected, _child(path, key)))
        return mismatches

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return [Mismatch(path, f"expected array, got {type(actual).__name__}")]
        return _match_unordered(actual, expected, path)

    if callable(expected):
        if not expected(actual):
            name = getattr(expected, "__name__", "predicate")
            return [Mismatch(path, f"{_describe(actual)} rejected by {name}")]
        return []

    if actual != expected:
        return [Mismatch(path, f"expected {_describe(expected)}, got {_describe(actual)}")]
    return []


def _match_unordered(actual: list[Any], expected: list[Any], path: str) -> list[Mismatch]:
    """Assign each expected element to a distinct matching actual element."""
    if len(actual) < len(expected):
        return [Mismatch(path, f"expected at least {len(expected)} elements, got {len(actual)}")]

    candidates = [
        [i for i, item in enumerate(actual) if not _match(item, exp, path)] for exp in expected
    ]

    def assign(index: int, used: frozenset[int]) -> bool:
        if index == len(expected):
            return True
        return any(
            assign(index + 1, used | {i}) for i in candidates[index] if i not in used
        )

    if assign(0, frozenset()):
        return []

    mismatches: list[Mismatch] = []
    for index, exp in enumerate(expected):
        if not candidates[index]:
            mismatches.append(
                Mismatch(_child(path, index), f"no element matches {_describe(exp)}")
            )
    if not mismatches:
        mismatches.append(Mismatch(path, "expected elements cannot all match distinct elements"))
    return mismatches


def match_shape(actual: Any, expected: Any) -> list[Mismatch]:
    """Compare a decoded JSON body against an expected shape.

    Args:
        actual: Decoded response body
        expected: Expected shape (see module docstring)

    Returns:
        List of mismatches, empty when the body matches
    """
    return _match(actual, expected, "$")


def assert_shape(actual: Any, expected: Any) -> None:
    """Raise ShapeMismatchError if the body does not match.

    Raises:
        ShapeMismatchError: Listing every mismatch path
    """
    mismatches = match_shape(actual, expected)
    if mismatches:
        details = "; ".join(str(m) for m in mismatches)
        raise ShapeMismatchError(
            message=f"Response body does not match expected shape: {details}",
            data={"mismatches": [{"path": m.path, "reason": m.reason} for m in mismatches]},
        )
