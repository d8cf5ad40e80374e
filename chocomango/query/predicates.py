"""
Built-in predicates.

Every predicate has the signature (subject, argument, ctx) and returns the
subject on success or NO_MATCH otherwise. None of them mutate, and none of
them raise for an ill-typed subject: a string handed to $size is simply not
a match.

Families:
  comparison   $eq $ne $gt $gte $lt $lte $in $nin
  array        $all $size $length $disjoint $intersects $subset $superset
               $includes $excludes $elemMatch
  logical      $and $or $nor $not
  numeric      $isEven $isOdd $isInteger $isFloat $isPrime $isNaN $mod $inRange
  string       $contains $startsWith $endsWith $regex $echoes and the $is*
               format classifiers
  type         $exists $typeof/$type $instanceof $kindof $cname
  temporal     $isAfter $isBefore $isBetween
  escape       $test
"""

import json
import math
import re
from datetime import date

from chocomango.query.registry import ArgumentKind, predicate
from chocomango.values import (
    NO_MATCH,
    ValueKind,
    contains,
    get_field,
    is_integral,
    is_number,
    is_sequence,
    kind_of,
    parse_date,
    strict_equal,
    to_temporal,
)

FLAG = ArgumentKind.FLAG_ONLY

# Kinds with a natural total order
_ORDERED_KINDS = (ValueKind.NUMBER, ValueKind.STRING, ValueKind.DATE, ValueKind.BOOLEAN)


def _ok(subject, test):
    return subject if test else NO_MATCH


def _probe(subject, pattern, ctx=None) -> bool:
    # Logical operators re-enter the evaluator; imported lazily (evaluate imports us)
    from chocomango.query.evaluate import probe
    return probe(subject, pattern, ctx)


def _compare(a, b, op) -> bool:
    kind = kind_of(a)
    if kind not in _ORDERED_KINDS or kind is not kind_of(b):
        return False
    try:
        return bool(op(a, b))
    except TypeError:
        return False


def _ordered(a, b, op) -> bool:
    """Ordering after temporal coercion; incomparable operands never order."""
    try:
        return bool(op(a, b))
    except TypeError:
        return False


# =============================================================================
# Comparison
# =============================================================================

@predicate('$eq')
def eq(a, b, ctx=None):
    return _ok(a, strict_equal(a, b))


@predicate('$ne')
def ne(a, b, ctx=None):
    return _ok(a, not strict_equal(a, b))


@predicate('$gt')
def gt(a, b, ctx=None):
    return _ok(a, _compare(a, b, lambda x, y: x > y))


@predicate('$gte')
def gte(a, b, ctx=None):
    return _ok(a, _compare(a, b, lambda x, y: x >= y))


@predicate('$lt')
def lt(a, b, ctx=None):
    return _ok(a, _compare(a, b, lambda x, y: x < y))


@predicate('$lte')
def lte(a, b, ctx=None):
    return _ok(a, _compare(a, b, lambda x, y: x <= y))


@predicate('$in')
def member_of(a, b, ctx=None):
    return _ok(a, is_sequence(b) and contains(b, a))


@predicate('$nin')
def not_member_of(a, b, ctx=None):
    return _ok(a, is_sequence(b) and not contains(b, a))


# =============================================================================
# Array shape
# =============================================================================

def _both_sequences(a, b) -> bool:
    return is_sequence(a) and is_sequence(b)


@predicate('$all')
def all_of(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and all(contains(a, v) for v in b))


@predicate('$size')
def size_equals(a, b, ctx=None):
    return _ok(a, is_sequence(a) and strict_equal(len(a), b))


@predicate('$length')
def length_equals(a, b, ctx=None):
    return _ok(a, (is_sequence(a) or isinstance(a, str)) and strict_equal(len(a), b))


@predicate('$disjoint')
def disjoint_from(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and not any(contains(b, v) for v in a))


@predicate('$intersects')
def intersects_with(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and any(contains(b, v) for v in a))


@predicate('$subset')
def is_subset_of(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and all(contains(b, v) for v in a))


@predicate('$superset')
def is_superset_of(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and all(contains(a, v) for v in b))


@predicate('$includes')
def includes_all(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and all(contains(a, v) for v in b))


@predicate('$excludes')
def excludes_all(a, b, ctx=None):
    return _ok(a, _both_sequences(a, b) and not any(contains(a, v) for v in b))


@predicate('$elemMatch')
def element_matches(a, pattern, ctx=None):
    """At least one element of the subject matches the sub-pattern."""
    return _ok(a, is_sequence(a) and any(_probe(item, pattern) for item in a))


# =============================================================================
# Logical
# =============================================================================

@predicate('$and')
def all_patterns(a, patterns, ctx=None):
    return _ok(a, is_sequence(patterns) and all(_probe(a, p, ctx) for p in patterns))


@predicate('$or')
def any_pattern(a, patterns, ctx=None):
    return _ok(a, is_sequence(patterns) and any(_probe(a, p, ctx) for p in patterns))


@predicate('$nor')
def no_pattern(a, patterns, ctx=None):
    return _ok(a, is_sequence(patterns) and not any(_probe(a, p, ctx) for p in patterns))


@predicate('$not')
def negate(a, pattern, ctx=None):
    return _ok(a, not _probe(a, pattern, ctx))


# =============================================================================
# Numeric
# =============================================================================

def _is_prime(n: int) -> bool:
    if n <= 1:
        return False
    if n <= 3:
        return True
    if n % 2 == 0 or n % 3 == 0:
        return False
    i = 5
    while i * i <= n:
        if n % i == 0 or n % (i + 2) == 0:
            return False
        i += 6
    return True


@predicate('$isEven', FLAG)
def is_even(a, flag=None, ctx=None):
    return _ok(a, is_integral(a) and a % 2 == 0)


@predicate('$isOdd', FLAG)
def is_odd(a, flag=None, ctx=None):
    return _ok(a, is_integral(a) and a % 2 == 1)


@predicate('$isInteger', FLAG)
def is_integer(a, flag=None, ctx=None):
    return _ok(a, is_integral(a))


@predicate('$isFloat', FLAG)
def is_float(a, flag=None, ctx=None):
    return _ok(a, is_number(a) and not is_integral(a) and math.isfinite(a))


@predicate('$isPrime', FLAG)
def is_prime(a, flag=None, ctx=None):
    return _ok(a, is_integral(a) and _is_prime(int(a)))


@predicate('$isNaN', FLAG)
def is_nan(a, flag=None, ctx=None):
    return _ok(a, is_number(a) and math.isnan(a))


@predicate('$mod')
def mod_equals(a, b, ctx=None):
    """[divisor, remainder]; the remainder keeps the dividend's sign."""
    if not is_number(a) or not is_sequence(b) or len(b) != 2:
        return NO_MATCH
    divisor, remainder = b
    if not is_number(divisor) or divisor == 0 or not is_number(remainder):
        return NO_MATCH
    try:
        return _ok(a, math.fmod(a, divisor) == remainder)
    except OverflowError:
        return NO_MATCH


@predicate('$inRange')
def in_range(a, b, ctx=None):
    """[min, max, inclusive=True]."""
    if not is_sequence(b) or len(b) < 2:
        return NO_MATCH
    low, high = b[0], b[1]
    inclusive = b[2] if len(b) > 2 else True
    if inclusive:
        test = _compare(a, low, lambda x, y: x >= y) and _compare(a, high, lambda x, y: x <= y)
    else:
        test = _compare(a, low, lambda x, y: x > y) and _compare(a, high, lambda x, y: x < y)
    return _ok(a, test)


# =============================================================================
# String and format
# =============================================================================

_EMAIL = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
_URL = re.compile(r'(https?|ftp)://[^\s/$.?#].[^\s]*')
_UUID = re.compile(r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}')
_IP4 = re.compile(r'(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})', re.ASCII)
_IP6 = re.compile(r'([0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}')
_IP6_ABBREV = re.compile(r'([0-9a-fA-F]{1,4}:){1,7}:')
_IP6_MIXED = re.compile(
    r'([0-9a-fA-F]{1,4}:){6}'
    r'(((25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?))'
)
_HEX = re.compile(r'[0-9a-fA-F]*')
_BASE64 = re.compile(r'([a-zA-Z0-9+/]{4})*([a-zA-Z0-9+/]{4}|[a-zA-Z0-9+/]{2}==|[a-zA-Z0-9+/]{3}=)')
_ALPHA = re.compile(r'[a-zA-Z]*')
_ALPHANUM = re.compile(r'[a-zA-Z0-9]*')
_NUMERIC = re.compile(r'\d+', re.ASCII)
_SSN = re.compile(r'\d{3}-\d{2}-\d{4}', re.ASCII)
_US_TEL = re.compile(r'\d{3}-\d{3}-\d{4}', re.ASCII)
_TIME = re.compile(r'\d{1,2}:\d{2}(:\d{2})?', re.ASCII)


def _full(pattern: re.Pattern, a) -> bool:
    return isinstance(a, str) and pattern.fullmatch(a) is not None


def _format_predicate(name: str, pattern: re.Pattern):
    def check(a, flag=None, ctx=None):
        return _ok(a, _full(pattern, a))
    check.__name__ = name.lstrip('$')
    predicate(name, FLAG)(check)
    return check


for _name, _pattern in (
    ('$isEmail', _EMAIL),
    ('$isURL', _URL),
    ('$isUUID', _UUID),
    ('$isHex', _HEX),
    ('$isBase64', _BASE64),
    ('$isAlpha', _ALPHA),
    ('$isSSN', _SSN),
    ('$isUSTel', _US_TEL),
    ('$isTime', _TIME),
):
    _format_predicate(_name, _pattern)


@predicate('$contains')
def contains_text(a, b, ctx=None):
    return _ok(a, isinstance(a, str) and isinstance(b, str) and b in a)


@predicate('$startsWith')
def starts_with(a, b, ctx=None):
    return _ok(a, isinstance(a, str) and isinstance(b, str) and a.startswith(b))


@predicate('$endsWith')
def ends_with(a, b, ctx=None):
    return _ok(a, isinstance(a, str) and isinstance(b, str) and a.endswith(b))


@predicate('$regex')
def regex(a, b, ctx=None):
    """Search (not full match) with a compiled pattern or a pattern string."""
    if not isinstance(a, str):
        return NO_MATCH
    if isinstance(b, str):
        try:
            b = re.compile(b)
        except re.error:
            return NO_MATCH
    if not isinstance(b, re.Pattern):
        return NO_MATCH
    return _ok(a, b.search(a) is not None)


@predicate('$isIP4', FLAG)
def is_ip4(a, flag=None, ctx=None):
    m = _IP4.fullmatch(a) if isinstance(a, str) else None
    return _ok(a, m is not None and all(0 <= int(part) <= 255 for part in m.groups()))


@predicate('$isIP6', FLAG)
def is_ip6(a, flag=None, ctx=None):
    return _ok(a, _full(_IP6, a) or _full(_IP6_ABBREV, a) or _full(_IP6_MIXED, a))


@predicate('$isAlphaNum', FLAG)
def is_alphanum(a, flag=None, ctx=None):
    return _ok(a, is_number(a) or _full(_ALPHANUM, a))


@predicate('$isNumeric', FLAG)
def is_numeric(a, flag=None, ctx=None):
    if isinstance(a, int) and not isinstance(a, bool):
        return _ok(a, a >= 0)
    return _ok(a, _full(_NUMERIC, a))


@predicate('$isDate', FLAG)
def is_date(a, flag=None, ctx=None):
    return _ok(a, isinstance(a, date) or parse_date(a) is not None)


@predicate('$isJSON', FLAG)
def is_json(a, flag=None, ctx=None):
    if not isinstance(a, str):
        return NO_MATCH
    try:
        json.loads(a)
    except ValueError:
        return NO_MATCH
    return a


_SOUNDEX_CODES = {}
for _letters, _code in (
    ('BFPV', '1'), ('CGJKQSXZ', '2'), ('DT', '3'),
    ('L', '4'), ('MN', '5'), ('R', '6'),
):
    for _letter in _letters:
        _SOUNDEX_CODES[_letter] = _code


def soundex(text: str) -> str:
    """Four-character Soundex code.

    First letter kept; vowels, H, W, Y and anything unmapped code to 0 and
    break runs; adjacent repeats collapse.
    """
    text = text.upper()
    result = text[0]
    prev = None
    for ch in text[1:]:
        code = _SOUNDEX_CODES.get(ch, '0')
        if code != '0' and code != prev:
            result += code
        prev = code
    return result.ljust(4, '0')[:4]


@predicate('$echoes')
def sounds_like(a, b, ctx=None):
    if not (isinstance(a, str) and isinstance(b, str) and a and b):
        return NO_MATCH
    return _ok(a, soundex(a) == soundex(b))


# =============================================================================
# Type
# =============================================================================

@predicate('$exists', FLAG)
def exists(a, flag=None, ctx=None):
    """Present and not None. The flag is ignored."""
    return _ok(a, a is not None)


def _kind_tag(b):
    if isinstance(b, ValueKind):
        return b
    try:
        return ValueKind(b)
    except ValueError:
        return None


@predicate('$typeof')
def type_is(a, b, ctx=None):
    tag = _kind_tag(b)
    return _ok(a, tag is not None and kind_of(a) is tag)


predicate('$type')(type_is)


def _instance_test(a, b) -> bool:
    if isinstance(b, type):
        return isinstance(a, b)
    if isinstance(b, str):
        return type(a).__name__ == b
    return False


@predicate('$instanceof')
def instance_of(a, b, ctx=None):
    return _ok(a, a is not None and _instance_test(a, b))


@predicate('$kindof')
def kind_of_test(a, b, ctx=None):
    if a is None:
        return NO_MATCH
    return _ok(a, _instance_test(a, b) or kind_of(a) is _kind_tag(b))


@predicate('$cname')
def class_name_is(a, b, ctx=None):
    """Class name, or the stored class name under a record's ':' metadata."""
    if a is None or not isinstance(b, str):
        return NO_MATCH
    return _ok(a, type(a).__name__ == b or get_field(get_field(a, ':'), 'cname') == b)


# =============================================================================
# Temporal
# =============================================================================

@predicate('$isAfter')
def is_after(a, b, ctx=None):
    if a is None:
        return NO_MATCH
    return _ok(a, _ordered(to_temporal(a), to_temporal(b), lambda x, y: x > y))


@predicate('$isBefore')
def is_before(a, b, ctx=None):
    if a is None:
        return NO_MATCH
    return _ok(a, _ordered(to_temporal(a), to_temporal(b), lambda x, y: x < y))


@predicate('$isBetween')
def is_between(a, b, ctx=None):
    """[start, end, inclusive=False]."""
    if a is None or not is_sequence(b) or len(b) < 2 or b[0] is None or b[1] is None:
        return NO_MATCH
    value, start, end = to_temporal(a), to_temporal(b[0]), to_temporal(b[1])
    inclusive = b[2] if len(b) > 2 else False
    if inclusive:
        test = _ordered(value, start, lambda x, y: x >= y) and _ordered(value, end, lambda x, y: x <= y)
    else:
        test = _ordered(value, start, lambda x, y: x > y) and _ordered(value, end, lambda x, y: x < y)
    return _ok(a, test)


# =============================================================================
# Escape hatch
# =============================================================================

@predicate('$test')
def caller_test(a, fn, ctx=None):
    """Caller-supplied predicate; its exceptions propagate."""
    if not callable(fn):
        return NO_MATCH
    return _ok(a, fn(a))
