"""Loose structural comparison of snapshot documents.

Documents are compared key by key, so mapping order never matters, and
scalars are compared with type coercion: ``"5" == 5``, ``None == ""`` and
``"1" == True`` all hold. The diff is one-directional: it lists what ``new``
holds that ``old`` lacks or holds differently; keys only present in ``old``
are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


def loose_diff(new: Mapping[str, Any], old: Mapping[str, Any]) -> dict[str, Any]:
    """Return the parts of ``new`` that differ from ``old``."""

    diff: dict[str, Any] = {}
    for key, value in new.items():
        if key not in old:
            diff[key] = value
            continue
        other = old[key]
        if _is_container(value) and _is_container(other):
            nested = loose_diff(_as_mapping(value), _as_mapping(other))
            if nested:
                diff[key] = nested
        elif _is_container(value) or _is_container(other) or not loose_equal(value, other):
            diff[key] = value
    return diff


def loose_equal(left: object, right: object) -> bool:
    """Compare two scalars with type coercion."""

    if left == right:
        return True
    if left is None or right is None:
        other = right if left is None else left
        return other in ("", 0, False)
    if isinstance(left, bool) or isinstance(right, bool):
        return _truthy(left) == _truthy(right)

    left_number = _as_number(left)
    right_number = _as_number(right)
    if left_number is not None and right_number is not None:
        return left_number == right_number
    return str(left) == str(right)


def _is_container(value: object) -> bool:
    return isinstance(value, Mapping) or (
        isinstance(value, Sequence) and not isinstance(value, str | bytes)
    )


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value
    return {str(index): item for index, item in enumerate(value)}


def _as_number(value: object) -> float | None:
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _truthy(value: object) -> bool:
    if isinstance(value, str):
        return value not in ("", "0")
    return bool(value)
