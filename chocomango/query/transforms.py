"""
Built-in transforms.

Every transform has the signature (subject, options, ctx). Options is always a
mapping: a scalar argument arrives as {"value": arg}, a missing one as {}.
The result is a new value, NO_MATCH (the candidate is excluded), DELETE (the
field is removed), KEEP (nothing is written) or a DeferredAssignment (a custom
write run at apply time).

Transforms never mutate their subject. Writing the result back into the
enclosing record (under the property name or the "as" alias) is the
evaluator's job.
"""

import ast
import json
import math
import re
from collections.abc import Mapping
from functools import cmp_to_key

import numpy as np

from chocomango.query.paths import get_path
from chocomango.query.registry import transform
from chocomango.values import (
    DELETE,
    KEEP,
    NO_MATCH,
    DeferredAssignment,
    contains,
    get_field,
    is_number,
    is_sequence,
    kind_of,
    set_field,
    to_datetime,
    unique,
)


def _array_option(options):
    array = options.get('array', options.get('value'))
    return list(array) if is_sequence(array) else None


def _operands(a, options, value_default=None):
    """[*subject, value, *array] when every item is a number, else None."""
    items = list(a) if is_sequence(a) else [a]
    value = options.get('value', value_default)
    if is_sequence(value):
        items.extend(value)
    elif value is not None:
        items.append(value)
    items.extend(options.get('array') or [])
    if not items or not all(is_number(x) for x in items):
        return None
    return items


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _to_text(value) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


# =============================================================================
# Aggregate
# =============================================================================

@transform('$sum')
def sum_(a, options, ctx=None):
    items = _operands(a, options, 0)
    return NO_MATCH if items is None else sum(items)


@transform('$average')
def average(a, options, ctx=None):
    items = _operands(a, options)
    return NO_MATCH if items is None else sum(items) / len(items)


@transform('$min')
def min_(a, options, ctx=None):
    items = _operands(a, options)
    return NO_MATCH if items is None else min(items)


@transform('$max')
def max_(a, options, ctx=None):
    items = _operands(a, options)
    return NO_MATCH if items is None else max(items)


@transform('$hypot')
def hypot(a, options, ctx=None):
    items = _operands(a, options)
    return NO_MATCH if items is None else math.hypot(*items)


@transform('$dot')
def dot(a, options, ctx=None):
    """Sum of squares over [subject, value, *array]."""
    items = _operands(a, options)
    return NO_MATCH if items is None else sum(x * x for x in items)


@transform('$product')
def product(a, options, ctx=None):
    """Each element scaled by value, then the pairwise products with array."""
    if not is_sequence(a):
        return NO_MATCH
    value = options.get('value', 1)
    array = options.get('array') or []
    if not all(is_number(x) for x in [*a, value, *array]):
        return NO_MATCH
    return [x * value for x in a] + [x * y for x in a for y in array]


@transform('$percentile')
def percentile(a, options, ctx=None):
    """Linear interpolation between closest ranks; p defaults to 50."""
    items = _operands(a, {'array': options.get('array')})
    p = options.get('p', options.get('value', 50))
    if items is None or not is_number(p):
        return NO_MATCH
    # p is clamped to 0..100
    p = min(max(p, 0), 100)
    if math.isnan(p):
        return NO_MATCH
    items.sort()
    index = (p / 100) * (len(items) - 1)
    lo, hi = math.floor(index), math.ceil(index)
    if lo == hi:
        return items[lo]
    return items[lo] * (hi - index) + items[hi] * (index - lo)


@transform('$statistics')
def statistics(a, options, ctx=None):
    items = _operands(a, {'array': options.get('array')})
    if items is None:
        return NO_MATCH
    values = sorted(items)
    n = len(values)
    mean = sum(values) / n
    if n % 2 == 0:
        median = (values[n // 2 - 1] + values[n // 2]) / 2
    else:
        median = values[n // 2]
    variance = sum((x - mean) ** 2 for x in values) / n

    counts: dict = {}
    mode, best = values[0], 0
    for x in values:
        counts[x] = counts.get(x, 0) + 1
        if counts[x] > best:
            best, mode = counts[x], x

    return {
        'mean': mean,
        'median': median,
        'mode': mode,
        'variance': variance,
        'stdDev': math.sqrt(variance),
        'min': values[0],
        'max': values[-1],
        'range': values[-1] - values[0],
        'count': n,
    }


# =============================================================================
# Array
# =============================================================================

@transform('$chunk')
def chunk(a, options, ctx=None):
    size = options.get('size', options.get('value', 1))
    if not is_sequence(a) or not isinstance(size, int) or isinstance(size, bool) or size < 1:
        return NO_MATCH
    return [list(a[i:i + size]) for i in range(0, len(a), size)]


@transform('$compact')
def compact(a, options, ctx=None):
    return [x for x in a if x is not None] if is_sequence(a) else NO_MATCH


@transform('$difference')
def difference(a, options, ctx=None):
    array = _array_option(options)
    if not is_sequence(a) or array is None:
        return NO_MATCH
    return [x for x in a if not contains(array, x)]


@transform('$setDifference')
def set_difference(a, options, ctx=None):
    """Distinct elements of the subject that are absent from array."""
    array = _array_option(options)
    if not is_sequence(a) or array is None:
        return NO_MATCH
    return [x for x in unique(a) if not contains(array, x)]


@transform('$intersection')
def intersection(a, options, ctx=None):
    array = _array_option(options)
    if not is_sequence(a) or array is None:
        return NO_MATCH
    return [x for x in a if contains(array, x)]


@transform('$union')
def union(a, options, ctx=None):
    array = _array_option(options)
    if not is_sequence(a) or array is None:
        return NO_MATCH
    return unique([*a, *array])


@transform('$unique')
def unique_(a, options, ctx=None):
    return unique(a) if is_sequence(a) else NO_MATCH


def _flatten(items, depth):
    out = []
    for item in items:
        if is_sequence(item) and depth > 0:
            out.extend(_flatten(item, depth - 1))
        else:
            out.append(item)
    return out


@transform('$flatten')
def flatten(a, options, ctx=None):
    depth = options.get('depth', options.get('value', math.inf))
    if not is_sequence(a) or not is_number(depth):
        return NO_MATCH
    return _flatten(a, depth)


@transform('$groupBy')
def group_by(a, options, ctx=None):
    key = options.get('key', options.get('value'))
    if not is_sequence(a) or key is None:
        return NO_MATCH
    groups: dict = {}
    for item in a:
        group = key(item) if callable(key) else get_field(item, key)
        try:
            hash(group)
        except TypeError:
            group = _to_text(group)
        groups.setdefault(group, []).append(item)
    return groups


@transform('$slice')
def slice_(a, options, ctx=None):
    start, end = options.get('start', 0), options.get('end')
    if not is_sequence(a) or not _is_index(start) or not (end is None or _is_index(end)):
        return NO_MATCH
    return list(a[start:end])


@transform('$splice')
def splice(a, options, ctx=None):
    """Copy of the subject with deleteCount items at start replaced by items."""
    start = options.get('start', 0)
    count = options.get('deleteCount', len(a) if is_sequence(a) else 0)
    if not is_sequence(a) or not _is_index(start) or not _is_index(count):
        return NO_MATCH
    out = list(a)
    if start < 0:
        start = max(len(out) + start, 0)
    out[start:start + max(count, 0)] = list(options.get('items') or [])
    return out


@transform('$sort')
def sort_(a, options, ctx=None):
    """Sorted copy. Options: key (field name or callable), reverse, compare(x, y)."""
    if not is_sequence(a):
        return NO_MATCH
    key = options.get('key')
    compare = options.get('compare', options.get('value'))
    if callable(compare):
        sort_key = cmp_to_key(compare)
    elif callable(key):
        sort_key = key
    elif key is not None:
        sort_key = lambda item: get_field(item, key)  # noqa: E731
    else:
        sort_key = None
    try:
        return sorted(a, key=sort_key, reverse=bool(options.get('reverse', False)))
    except TypeError:
        return NO_MATCH


@transform('$push')
def push(a, options, ctx=None):
    if not is_sequence(a):
        return NO_MATCH
    array = _array_option(options)
    if array is None:
        return [*a, options['value']] if 'value' in options else NO_MATCH
    return [*a, *array]


@transform('$unshift')
def unshift(a, options, ctx=None):
    if not is_sequence(a):
        return NO_MATCH
    array = _array_option(options)
    if array is None:
        return [options['value'], *a] if 'value' in options else NO_MATCH
    return [*array, *a]


@transform('$pop')
def pop(a, options, ctx=None):
    """Last element."""
    return a[-1] if is_sequence(a) and a else NO_MATCH


@transform('$shift')
def shift(a, options, ctx=None):
    """First element."""
    return a[0] if is_sequence(a) and a else NO_MATCH


# =============================================================================
# String and type conversion
# =============================================================================

@transform('$capitalize')
def capitalize(a, options, ctx=None):
    return a[:1].upper() + a[1:] if isinstance(a, str) else NO_MATCH


@transform('$trim')
def trim(a, options, ctx=None):
    return a.strip() if isinstance(a, str) else NO_MATCH


@transform('$split')
def split(a, options, ctx=None):
    if not isinstance(a, str):
        return NO_MATCH
    separator = options.get('separator', options.get('value'))
    if separator is None:
        return [a]
    if not isinstance(separator, str):
        return NO_MATCH
    if separator == '':
        return list(a)
    return a.split(separator)


@transform('$join')
def join(a, options, ctx=None):
    if not is_sequence(a):
        return NO_MATCH
    separator = options.get('separator', options.get('value', ','))
    if not isinstance(separator, str):
        return NO_MATCH
    return separator.join('' if x is None else _to_text(x) for x in a)


@transform('$replace')
def replace(a, options, ctx=None):
    """Replace a plain substring or regex matches; count=0 replaces all."""
    pattern = options.get('pattern')
    replacement = options.get('replacement', '')
    count = options.get('count', 0)
    if not isinstance(a, str) or pattern is None or not _is_index(count):
        return NO_MATCH
    if not isinstance(replacement, str) and not callable(replacement):
        return NO_MATCH
    if isinstance(pattern, re.Pattern):
        try:
            return pattern.sub(replacement, a, count=max(count, 0))
        except (re.error, TypeError):
            return NO_MATCH
    if callable(replacement):
        return NO_MATCH
    return a.replace(str(pattern), replacement, count if count > 0 else -1)


_TRUTHY = ('true', '1', 'yes')
_FALSY = ('false', '0', 'no')


@transform('$toBoolean')
def to_boolean(a, options, ctx=None):
    if isinstance(a, bool):
        return a
    if isinstance(a, str):
        lowered = a.lower()
        if lowered in options.get('truthy', _TRUTHY):
            return True
        if lowered in options.get('falsy', _FALSY):
            return False
    return bool(a)


@transform('$toDate')
def to_date(a, options, ctx=None):
    """datetime from a date, a date string or POSIX seconds."""
    if isinstance(a, bool):
        return NO_MATCH
    parsed = to_datetime(a)
    return NO_MATCH if parsed is None else parsed


@transform('$toNumber')
def to_number(a, options, ctx=None):
    radix = options.get('radix', options.get('value', 10))
    if isinstance(a, bool):
        return int(a)
    if is_number(a):
        return NO_MATCH if math.isnan(a) else a
    if not isinstance(a, str) or not a.strip():
        return NO_MATCH
    text = a.strip()
    try:
        if radix != 10:
            return int(text, radix)
        try:
            return int(text)
        except ValueError:
            number = float(text)
    except (ValueError, TypeError):
        return NO_MATCH
    return NO_MATCH if math.isnan(number) else number


@transform('$toString')
def to_string(a, options, ctx=None):
    if a is None and not options.get('allowNull', options.get('value', False)):
        return NO_MATCH
    return _to_text(a)


_PLACEHOLDER = re.compile(r'\$\{\s*([^}]+?)\s*\}')


@transform('$format')
def format_(a, options, ctx=None):
    """Fill ${name} / ${a.b} placeholders.

    precedence="context" (default) lets the subject override values; any other
    precedence lets values override the subject. Missing names render empty.
    """
    template = options.get('template', options.get('format', options.get('value')))
    if a is None or not isinstance(template, str):
        return NO_MATCH
    subject = dict(a) if isinstance(a, Mapping) else {'value': a}
    values = dict(options.get('values') or {})
    if options.get('precedence', 'context') == 'context':
        merged = {**values, **subject}
    else:
        merged = {**subject, **values}

    def fill(match):
        value = get_path(merged, match.group(1))
        return '' if value is None else _to_text(value)

    return _PLACEHOLDER.sub(fill, template)


# =============================================================================
# Math
# =============================================================================

def _clz32(x):
    return 32 - (int(x) & 0xFFFFFFFF).bit_length()


def _int32(x):
    x = int(x) & 0xFFFFFFFF
    return x - 0x100000000 if x >= 0x80000000 else x


def _sign(x):
    if x > 0:
        return 1
    if x < 0:
        return -1
    return x


_UNARY = {
    '$abs': abs,
    '$acos': math.acos,
    '$acosh': math.acosh,
    '$asin': math.asin,
    '$asinh': math.asinh,
    '$atan': math.atan,
    '$atanh': math.atanh,
    '$cbrt': lambda x: float(np.cbrt(x)),
    '$ceil': math.ceil,
    '$clz32': _clz32,
    '$cos': math.cos,
    '$cosh': math.cosh,
    '$exp': math.exp,
    '$expm1': math.expm1,
    '$floor': math.floor,
    '$fround': lambda x: float(np.float32(x)),
    '$log10': math.log10,
    '$log1p': math.log1p,
    '$log2': math.log2,
    '$round': lambda x: math.floor(x + 0.5),
    '$sign': _sign,
    '$sin': math.sin,
    '$sinh': math.sinh,
    '$sqrt': math.sqrt,
    '$tan': math.tan,
    '$tanh': math.tanh,
    '$trunc': math.trunc,
}


def _unary(name, fn):
    def apply(a, options, ctx=None):
        if not is_number(a):
            return NO_MATCH
        try:
            return fn(a)
        except (ValueError, OverflowError, ZeroDivisionError):
            return NO_MATCH
    apply.__name__ = name.lstrip('$')
    transform(name)(apply)


for _name, _fn in _UNARY.items():
    _unary(_name, _fn)


def _numeric(fn):
    """Guard a multi-operand math transform: domain errors become NO_MATCH."""
    def apply(a, options, ctx=None):
        if not is_number(a):
            return NO_MATCH
        try:
            return fn(a, options)
        except (KeyError, ValueError, TypeError, OverflowError, ZeroDivisionError):
            return NO_MATCH
    apply.__name__ = fn.__name__
    apply.__doc__ = fn.__doc__
    return apply


@transform('$atan2')
@_numeric
def atan2(a, options):
    return math.atan2(a, options.get('b', options.get('value')))


@transform('$pow')
@_numeric
def pow_(a, options):
    return math.pow(a, options['value'])


@transform('$imul')
@_numeric
def imul(a, options):
    """32-bit signed multiply."""
    return _int32(_int32(a) * _int32(options['value']))


@transform('$log')
@_numeric
def log(a, options):
    """Natural log, or log to base `value`."""
    base = options.get('value')
    return math.log(a) if base is None else math.log(a, base)


@transform('$clamp')
@_numeric
def clamp(a, options):
    return min(max(a, options['min']), options['max'])


@transform('$lerp')
@_numeric
def lerp(a, options):
    return a + (options['target'] - a) * options['alpha']


@transform('$normalize')
@_numeric
def normalize(a, options):
    low, high = options['min'], options['max']
    return (a - low) / (high - low)


# =============================================================================
# Calendar
# =============================================================================

_MONTHS = ['January', 'February', 'March', 'April', 'May', 'June', 'July',
           'August', 'September', 'October', 'November', 'December']
_WEEKDAYS = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


def _hour12(d):
    return d.hour % 12 or 12


_DATE_TOKENS = {
    'YYYY': lambda d: str(d.year),
    'YY': lambda d: str(d.year)[-2:],
    'MMMM': lambda d: _MONTHS[d.month - 1],
    'MMM': lambda d: _MONTHS[d.month - 1][:3],
    'MM': lambda d: f"{d.month:02d}",
    'M': lambda d: str(d.month),
    'DD': lambda d: f"{d.day:02d}",
    'D': lambda d: str(d.day),
    # weekday(): Monday=0; tokens count from Sunday=0
    'dddd': lambda d: _WEEKDAYS[(d.weekday() + 1) % 7],
    'ddd': lambda d: _WEEKDAYS[(d.weekday() + 1) % 7][:3],
    'd': lambda d: str((d.weekday() + 1) % 7),
    'HH': lambda d: f"{d.hour:02d}",
    'H': lambda d: str(d.hour),
    'hh': lambda d: f"{_hour12(d):02d}",
    'h': lambda d: str(_hour12(d)),
    'mm': lambda d: f"{d.minute:02d}",
    'm': lambda d: str(d.minute),
    'ss': lambda d: f"{d.second:02d}",
    's': lambda d: str(d.second),
    'SSS': lambda d: f"{d.microsecond // 1000:03d}",
    'A': lambda d: 'AM' if d.hour < 12 else 'PM',
    'a': lambda d: 'am' if d.hour < 12 else 'pm',
}

_DATE_TOKEN_RE = re.compile(
    r'\b(YYYY|YY|MMMM|MMM|MM|M|DD|D|dddd|ddd|d|HH|H|hh|h|mm|m|ss|s|SSS|A|a)\b'
)


@transform('$dateFormat')
def date_format(a, options, ctx=None):
    """Whole-word tokens only: 'YYYY-MM-DD' formats, 'Month' is left alone."""
    fmt = options.get('format', options.get('value', 'YYYY-MM-DD'))
    if isinstance(a, bool) or not isinstance(fmt, str):
        return NO_MATCH
    d = to_datetime(a)
    if d is None:
        return NO_MATCH
    return _DATE_TOKEN_RE.sub(lambda m: _DATE_TOKENS[m.group(1)](d), fmt)


# =============================================================================
# Reflective
# =============================================================================

def _members(a):
    if isinstance(a, Mapping):
        return list(a.items())
    if is_sequence(a):
        return list(enumerate(a))
    if hasattr(a, '__dict__'):
        return [(k, v) for k, v in vars(a).items() if not k.startswith('_')]
    return None


@transform('$keys')
def keys(a, options, ctx=None):
    members = _members(a)
    return NO_MATCH if members is None else [k for k, _ in members]


@transform('$values')
def values(a, options, ctx=None):
    members = _members(a)
    return NO_MATCH if members is None else [v for _, v in members]


@transform('$entries')
def entries(a, options, ctx=None):
    members = _members(a)
    return NO_MATCH if members is None else [[k, v] for k, v in members]


@transform('$typeName')
def type_name(a, options, ctx=None):
    return kind_of(a).value


@transform('$className')
def class_name(a, options, ctx=None):
    return type(a).__name__


@transform('$default')
def default(a, options, ctx=None):
    return options.get('value') if a is None else a


@transform('$parse')
def parse(a, options, ctx=None):
    if not isinstance(a, (str, bytes, bytearray)):
        return NO_MATCH
    try:
        return json.loads(a, object_hook=options.get('object_hook'))
    except ValueError:
        return NO_MATCH


@transform('$stringify')
def stringify(a, options, ctx=None):
    indent = options.get('indent', options.get('space'))
    separators = None if indent else (',', ':')
    try:
        return json.dumps(a, indent=indent, separators=separators, default=str)
    except (TypeError, ValueError, RecursionError):
        return NO_MATCH


@transform('$eval')
def eval_(a, options, ctx=None):
    """Literal expressions only (numbers, strings, lists, dicts...)."""
    if not isinstance(a, str):
        return NO_MATCH
    try:
        return ast.literal_eval(a.strip())
    except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError):
        return NO_MATCH


@transform('$call')
def call(a, options, ctx=None):
    fn = options.get('f', options.get('value'))
    return fn(a) if callable(fn) else NO_MATCH


@transform('$define')
def define(a, options, ctx=None):
    """Deferred write of `value` (or the subject) into the enclosing record."""
    value = options.get('value') or a

    def assign(record, key, previous=None):
        set_field(record, key, value)
        return value

    return DeferredAssignment(assign)


@transform('$drop')
def drop(a, options, ctx=None):
    """Delete the field: always for a truthy flag, or when fn(subject, ctx) is truthy."""
    flag = options.get('value', options.get('f'))
    if callable(flag):
        flag = flag(a, ctx)
    if not flag:
        return KEEP
    return DELETE
