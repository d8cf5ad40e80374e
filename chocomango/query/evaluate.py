"""
Pattern evaluator — match, transform and filter records against a pattern.

    evaluate({"x": 5}, {"x": {"$gt": 3}})          -> {"x": 5}
    evaluate({"x": 5}, {"x": {"$gt": 7}})          -> None
    filter_records(rows, {"tags": {"$all": ["a"]}}) -> matching rows

For each candidate, pattern keys are visited in order:
  1. predicate  — NO_MATCH excludes the candidate
  2. transform  — under a MatchContext the result becomes a pending Edit on
                  the enclosing record (property name or "as" alias); at the
                  root it replaces the value threaded to the next key;
                  KEEP plans nothing
  3. mapping    — recurse into the field with a MatchContext
  4. otherwise  — strict equality against the field

Writes are planned, not performed: each candidate collects its own Edits,
which are dropped when the candidate is excluded. evaluate() applies the
survivors' edits after the full pass; plan() returns them untouched. Later
keys of the same candidate read through pending edits.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional

# Built-in operators register on import
from chocomango.query import predicates, transforms  # noqa: F401
from chocomango.query.paths import expand_dot_path
from chocomango.query.registry import PREDICATES, TRANSFORMS, MatchContext, options_of
from chocomango.values import (
    DELETE,
    KEEP,
    NO_MATCH,
    DeferredAssignment,
    delete_field,
    get_field,
    is_sequence,
    set_field,
    strict_equal,
)


@dataclass
class Edit:
    """Pending write: target[key] = value (DELETE removes, DeferredAssignment runs)."""

    path: tuple
    target: Any
    key: Any
    value: Any

    def apply(self):
        if self.value is DELETE:
            delete_field(self.target, self.key)
        elif isinstance(self.value, DeferredAssignment):
            self.value(self.target, self.key, get_field(self.target, self.key))
        else:
            set_field(self.target, self.key, self.value)


def _read(container, key, edits: list):
    for edit in reversed(edits):
        if edit.target is container and edit.key == key:
            if edit.value is DELETE:
                return None
            if not isinstance(edit.value, DeferredAssignment):
                return edit.value
            break
    return get_field(container, key)


def _candidate(value, pattern: Mapping, ctx: Optional[MatchContext], edits: list):
    local: list[Edit] = []
    path = ctx.path if ctx is not None else ()

    for key, arg in pattern.items():
        pred = PREDICATES.get(key)
        if pred is not None:
            if pred.skips(arg):
                continue
            if pred.evaluate(value, arg, ctx) is NO_MATCH:
                return NO_MATCH
            continue

        trans = TRANSFORMS.get(key)
        if trans is not None:
            result = trans.evaluate(value, arg, ctx)
            if result is NO_MATCH:
                return NO_MATCH
            if result is KEEP:
                continue
            if ctx is None:
                if result is DELETE:
                    return NO_MATCH
                value = result
                continue
            target = options_of(arg).get('as') or ctx.property
            local.append(Edit(path[:-1] + (target,), ctx.record, target, result))
            if target == ctx.property and result is not DELETE and not isinstance(result, DeferredAssignment):
                value = result
            continue

        child = _read(value, key, local)
        if isinstance(arg, Mapping):
            child_ctx = MatchContext(key, value, path + (key,))
            if _query(child, arg, child_ctx, 0, local) is NO_MATCH:
                return NO_MATCH
        elif not strict_equal(child, arg):
            return NO_MATCH

    edits.extend(local)
    return value


def _query(data, pattern, ctx: Optional[MatchContext], depth: int, edits: list):
    if not isinstance(pattern, Mapping):
        return data if strict_equal(data, pattern) else NO_MATCH
    pattern = expand_dot_path(pattern)
    if depth > 0 and is_sequence(data):
        survivors = []
        for item in data:
            result = _candidate(item, pattern, None, edits)
            if result is not NO_MATCH:
                survivors.append(result)
        return survivors
    return _candidate(data, pattern, ctx, edits)


def plan(data, pattern, context: Optional[MatchContext] = None, depth: int = 0) -> tuple[Any, list[Edit]]:
    """Evaluate without writing. Returns (result or NO_MATCH, pending edits)."""
    edits: list[Edit] = []
    result = _query(data, pattern, context, depth, edits)
    if result is NO_MATCH:
        return NO_MATCH, []
    return result, edits


def apply_edits(edits: list[Edit]):
    for edit in edits:
        edit.apply()


def evaluate(data, pattern, context: Optional[MatchContext] = None, depth: int = 0):
    """Match (and transform) data against pattern.

    Returns the surviving value, the filtered list when depth > 0 and data is
    a sequence, or None for no match. Never raises for a type mismatch.
    """
    result, edits = plan(data, pattern, context, depth)
    if result is NO_MATCH:
        return None
    apply_edits(edits)
    return result


def probe(data, pattern, context: Optional[MatchContext] = None) -> bool:
    """Match test with no side effects; planned edits are discarded."""
    result, _ = plan(data, pattern, context)
    return result is not NO_MATCH


def matches(data, pattern) -> bool:
    return probe(data, pattern)


def filter_records(records, pattern) -> list:
    """Records that match pattern, with their transforms applied."""
    return evaluate(list(records), pattern, depth=1)
