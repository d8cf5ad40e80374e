"""
Operator Registry — name → predicate / transform resolution.

Single source of truth for what a `$`-key in a pattern means.
The evaluator and every extension point import from here.

Two process-wide tables:
  PREDICATES   pure tests, return the subject or NO_MATCH
  TRANSFORMS   projections, return a new value, NO_MATCH, DELETE or a
               DeferredAssignment

Built-in operators register themselves on import of
chocomango.query.predicates / chocomango.query.transforms.
"""

import enum
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


class ArgumentKind(enum.Enum):
    FLAG_ONLY = 'flag'   # classifier; argument ignored, always runs
    TYPED = 'typed'      # takes a comparand; None/False argument means no assertion


@dataclass(frozen=True)
class MatchContext:
    """Where the current subject lives: record[property], at path from the root."""

    property: Any
    record: Any
    path: tuple = ()


@dataclass
class Operator:
    name: str
    fn: Callable
    argument_kind: ArgumentKind = ArgumentKind.TYPED
    description: str = field(default='', compare=False)

    def evaluate(self, subject, argument, ctx: Optional[MatchContext] = None):
        return self.fn(subject, argument, ctx)


@dataclass
class Predicate(Operator):

    def skips(self, argument) -> bool:
        """TYPED predicate given None/False asserts nothing."""
        return (
            self.argument_kind is ArgumentKind.TYPED
            and (argument is None or argument is False)
        )


@dataclass
class Transform(Operator):

    def evaluate(self, subject, argument, ctx: Optional[MatchContext] = None):
        return self.fn(subject, options_of(argument), ctx)


def options_of(argument) -> Mapping:
    """Transform options: mappings pass through, None → {}, scalars → {"value": arg}."""
    if isinstance(argument, Mapping):
        return argument
    if argument is None:
        return {}
    return {'value': argument}


PREDICATES: dict[str, Predicate] = {}
TRANSFORMS: dict[str, Transform] = {}


def _check(kind: str, name, fn):
    if not isinstance(name, str) or not name.startswith('$') or not callable(fn):
        raise ValueError(
            f"{kind} must have a string name starting with $ and a callable implementation"
        )


def register_predicate(
    name: str,
    fn: Callable,
    argument_kind: ArgumentKind = ArgumentKind.TYPED,
    description: str = '',
) -> Predicate:
    """Register (or replace) a predicate. fn(subject, argument, ctx) -> subject | NO_MATCH."""
    _check("Predicate", name, fn)
    if name in PREDICATES:
        print(f"[registry] replacing predicate {name}", file=sys.stderr)
    op = Predicate(name, fn, ArgumentKind(argument_kind), description)
    PREDICATES[name] = op
    return op


def register_transform(name: str, fn: Callable, description: str = '') -> Transform:
    """Register (or replace) a transform. fn(subject, options, ctx) -> value."""
    _check("Transform", name, fn)
    if name in TRANSFORMS:
        print(f"[registry] replacing transform {name}", file=sys.stderr)
    op = Transform(name, fn, ArgumentKind.TYPED, description)
    TRANSFORMS[name] = op
    return op


def predicate(name: str, argument_kind: ArgumentKind = ArgumentKind.TYPED):
    """Decorator form of register_predicate."""
    def wrap(fn):
        register_predicate(name, fn, argument_kind, (fn.__doc__ or '').strip())
        return fn
    return wrap


def transform(name: str):
    """Decorator form of register_transform."""
    def wrap(fn):
        register_transform(name, fn, (fn.__doc__ or '').strip())
        return fn
    return wrap


def unregister(name: str) -> bool:
    """Remove an operator from both tables. Returns True if anything was removed."""
    removed = PREDICATES.pop(name, None) is not None
    removed = TRANSFORMS.pop(name, None) is not None or removed
    return removed


def resolve(name: str) -> Optional[Operator]:
    """Look up an operator; predicates shadow transforms of the same name."""
    return PREDICATES.get(name) or TRANSFORMS.get(name)


def list_operators() -> list[dict]:
    """All registered operators as dicts, sorted by family then name."""
    rows = []
    for family, table in (('predicate', PREDICATES), ('transform', TRANSFORMS)):
        for name in sorted(table):
            op = table[name]
            rows.append({
                'name': name,
                'family': family,
                'argument_kind': op.argument_kind.value,
                'description': op.description,
            })
    return rows
