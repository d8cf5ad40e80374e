"""
Multi-key sort over records.

Criteria come in several shapes, all normalized to SortCriterion:

    "age"                                  -> age asc
    ("age", "desc")                        -> age desc
    {"path": "age", "direction": "desc"}   -> age desc
    {"age": "desc"}                        -> age desc
    {"user": {"age": {"order": "desc"}}}   -> user.age desc

Absent values (None) sort after present ones whatever the direction.
"""

import functools
import locale
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from chocomango.query.paths import flatten_sort_spec, get_path
from chocomango.values import KIND_RANK, kind_of

DIRECTIONS = ('asc', 'desc')


@dataclass(frozen=True)
class SortCriterion:
    path: str
    direction: str = 'asc'

    def __post_init__(self):
        if not isinstance(self.path, str) or not self.path:
            raise ValueError(f"Sort path must be a non-empty string, got {self.path!r}")
        if self.direction not in DIRECTIONS:
            raise ValueError(
                f"Invalid sort direction {self.direction!r} for {self.path!r} (expected 'asc' or 'desc')"
            )


def normalize_criterion(criterion: Any) -> SortCriterion:
    """Normalize one criterion. Raises ValueError for anything unrecognized."""
    if isinstance(criterion, SortCriterion):
        return criterion
    if isinstance(criterion, str):
        return SortCriterion(criterion)
    if isinstance(criterion, (tuple, list)) and len(criterion) == 2:
        return SortCriterion(criterion[0], _direction(criterion[1]))
    if isinstance(criterion, Mapping):
        if 'path' in criterion:
            return SortCriterion(criterion['path'], _direction(criterion.get('direction', 'asc')))
        leaves = list(flatten_sort_spec(criterion))
        if len(leaves) == 1 and leaves[0][0]:
            path, direction = leaves[0]
            return SortCriterion(path, _direction(direction))
    raise ValueError(f"Invalid sort criterion: {criterion!r}")


def _direction(value) -> str:
    return value.lower() if isinstance(value, str) else value


def _sign(n) -> int:
    return (n > 0) - (n < 0)


def compare_values(a, b) -> int:
    """Three-way comparison of two present values."""
    if isinstance(a, datetime) and isinstance(b, datetime):
        try:
            return _sign(a.timestamp() - b.timestamp())
        except (OverflowError, OSError, ValueError):
            pass
    if isinstance(a, str) and isinstance(b, str):
        return _sign(locale.strcoll(a, b))
    try:
        if a < b:
            return -1
        if a > b:
            return 1
        return 0
    except TypeError:
        return _sign(KIND_RANK[kind_of(a)] - KIND_RANK[kind_of(b)])


def sort(records, criteria) -> list:
    """Stable multi-key sort. Returns a new list; the input is untouched."""
    if isinstance(criteria, (str, Mapping, SortCriterion)):
        criteria = [criteria]
    normalized = [normalize_criterion(c) for c in criteria]

    def compare(x, y) -> int:
        for criterion in normalized:
            a = get_path(x, criterion.path)
            b = get_path(y, criterion.path)
            if a is None and b is None:
                continue
            if a is None:
                return 1
            if b is None:
                return -1
            result = compare_values(a, b)
            if criterion.direction == 'desc':
                result = -result
            if result:
                return result
        return 0

    return sorted(records, key=functools.cmp_to_key(compare))
