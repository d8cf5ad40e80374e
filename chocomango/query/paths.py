"""
Path normalization — dotted keys and the safe filter dialect.

Patterns may address nested fields with dotted keys ("a.b.c"). Before
evaluation every top-level dotted key is expanded into a nested chain, so
{"a.b": 1, "a.c": 2} becomes {"a": {"b": 1, "c": 2}}. Operator keys ($-prefixed)
are never split, and operator arguments are never descended into.

normalize_filter_query() translates a caller filter into the subset of
operators a document store is expected to understand; anything else is
dropped without raising.
"""

from collections.abc import Mapping
from typing import Any, Iterator

from chocomango.values import get_field

SIGIL = '$'
SEPARATOR = '.'

LOGICAL_COMBINATORS = ('$or', '$and', '$nor')

SAFE_OPERATORS = frozenset({
    '$lt', '$lte', '$eq', '$ne', '$gte', '$gt',
    '$exists', '$type', '$in', '$nin', '$size', '$mod', '$regex',
    '$or', '$and', '$nor', '$not', '$all', '$elemMatch',
})


def is_operator(key: Any) -> bool:
    return isinstance(key, str) and key.startswith(SIGIL)


def is_combinator(pattern: Any) -> bool:
    """True for {"$or": [...]}, {"$and": [...]}, {"$nor": [...]} and nothing else."""
    return (
        isinstance(pattern, Mapping)
        and len(pattern) == 1
        and next(iter(pattern)) in LOGICAL_COMBINATORS
    )


def expand_dot_path(pattern: Any) -> Any:
    """Split top-level dotted keys into nested mappings.

    Returns a new mapping; the input is never mutated. Chains that share a
    prefix merge. Non-mapping patterns are returned as-is.
    """
    if not isinstance(pattern, Mapping):
        return pattern

    result: dict = {}
    owned: set[int] = set()  # ids of dicts built here, safe to merge into

    for key, value in pattern.items():
        if is_operator(key) or not isinstance(key, str) or SEPARATOR not in key:
            _merge(result, key, value, owned)
            continue
        parts = key.split(SEPARATOR)
        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, Mapping):
                child = {}
                owned.add(id(child))
            elif id(child) not in owned:
                child = dict(child)
                owned.add(id(child))
            node[part] = child
            node = child
        _merge(node, parts[-1], value, owned)

    return result


def _merge(node: dict, key, value, owned: set):
    existing = node.get(key)
    if isinstance(existing, Mapping) and isinstance(value, Mapping):
        if id(existing) not in owned:
            existing = dict(existing)
            owned.add(id(existing))
            node[key] = existing
        for k, v in value.items():
            _merge(existing, k, v, owned)
    else:
        node[key] = value


# =============================================================================
# Safe filter dialect
# =============================================================================

def normalize_filter_query(raw: Any, parent_path: str = '', result: dict | None = None) -> dict:
    """Normalize a filter to the whitelisted operator dialect.

    - single-key $or/$and/$nor: each clause normalized, shape kept
    - $-key: kept if whitelisted, recorded at the current path
    - mapping with $-keys: kept wholesale only if every $-key is whitelisted
    - mapping without $-keys: recursed with the dotted path extended
    - anything else: {"$eq": value} at the dotted path

    Idempotent. Unknown operators are dropped, never raised on.
    """
    if result is None:
        result = {}
    if not isinstance(raw, Mapping):
        return result

    if is_combinator(raw):
        (op, clauses), = raw.items()
        if isinstance(clauses, (list, tuple)):
            normalized = [normalize_filter_query(c) for c in clauses]
        else:
            normalized = clauses
        _record(result, parent_path, {op: normalized})
        return result

    for key, value in raw.items():
        path = f"{parent_path}{SEPARATOR}{key}" if parent_path else str(key)

        if is_operator(key):
            if key in SAFE_OPERATORS:
                _record(result, parent_path, {key: value})
        elif isinstance(value, Mapping) and any(is_operator(k) for k in value):
            if all(k in SAFE_OPERATORS for k in value if is_operator(k)):
                _record(result, path, dict(value))
        elif isinstance(value, Mapping):
            normalize_filter_query(value, path, result)
        else:
            _record(result, path, {'$eq': value})

    return result


def _record(result: dict, path: str, operators: dict):
    if not path:
        result.update(operators)
        return
    slot = result.get(path)
    if isinstance(slot, dict):
        slot.update(operators)
    else:
        result[path] = operators


# =============================================================================
# Lookup
# =============================================================================

def get_path(record: Any, path: str) -> Any:
    """Dotted lookup. None when any segment is absent."""
    if path is None or path == '':
        return record
    value = record
    for part in str(path).split(SEPARATOR):
        value = get_field(value, part)
        if value is None:
            return None
    return value


def flatten_sort_spec(spec: Any, prefix: tuple = ()) -> Iterator[tuple[str, Any]]:
    """Walk a nested sort spec, yielding (dotted path, leaf).

    Leaves are non-mapping values or {"order": ...} mappings.
    """
    if not isinstance(spec, Mapping):
        yield SEPARATOR.join(prefix), spec
        return
    if 'order' in spec and len(spec) == 1 and prefix:
        yield SEPARATOR.join(prefix), spec['order']
        return
    for key, value in spec.items():
        yield from flatten_sort_spec(value, prefix + (str(key),))
