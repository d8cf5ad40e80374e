"""
Value model — the closed set of kinds a record value can take.

Records are plain Python trees (mappings, lists, scalars). Rehydrated objects
are read through their attributes. Every operator classifies operands through
kind_of() instead of probing types ad hoc.

Kinds:
  null, boolean, number, string, date, binary, array, object,
  function, instance

Sentinels:
  NO_MATCH   a step failed; the candidate is excluded
  DELETE     a pending edit removes the field
  KEEP       the transform leaves the field as it is; no edit is planned

Field access (get_field/set_field/delete_field) works the same on mappings,
sequences (integer keys) and plain objects (attributes).
"""

import enum
import math
import numbers
from collections.abc import Mapping, MutableMapping
from datetime import date, datetime, time, timezone
from typing import Any, Optional


class ValueKind(str, enum.Enum):
    NULL = 'null'
    BOOLEAN = 'boolean'
    NUMBER = 'number'
    STRING = 'string'
    DATE = 'date'
    BINARY = 'binary'
    SEQUENCE = 'array'
    MAPPING = 'object'
    FUNCTION = 'function'
    OBJECT = 'instance'


# Natural ordering between kinds, used when two values cannot be compared
KIND_RANK = {kind: i for i, kind in enumerate(ValueKind)}


class _Sentinel:
    __slots__ = ('name',)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return self.name

    def __bool__(self):
        return False


NO_MATCH = _Sentinel('NO_MATCH')
DELETE = _Sentinel('DELETE')
KEEP = _Sentinel('KEEP')


class DeferredAssignment:
    """Custom write run when an edit is applied.

    Wraps fn(record, key, previous) -> value. Transforms return one of these
    when a plain item assignment is not enough.
    """

    def __init__(self, fn):
        self.fn = fn

    def __call__(self, record, key, previous=None):
        return self.fn(record, key, previous)

    def __repr__(self):
        return f"DeferredAssignment({getattr(self.fn, '__name__', self.fn)!r})"


def kind_of(value: Any) -> ValueKind:
    """Classify a value. bool is checked before number (bool subclasses int)."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, numbers.Real):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, date):
        return ValueKind.DATE
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BINARY
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQUENCE
    if callable(value):
        return ValueKind.FUNCTION
    return ValueKind.OBJECT


def is_number(value: Any) -> bool:
    return kind_of(value) is ValueKind.NUMBER


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_integral(value: Any) -> bool:
    """Finite number with no fractional part (4.0 counts)."""
    if not is_number(value):
        return False
    if isinstance(value, numbers.Integral):
        return True
    return math.isfinite(value) and float(value).is_integer()


def strict_equal(a: Any, b: Any) -> bool:
    """Equality that never crosses kinds: 1 != True, '1' != 1.

    Sequences and mappings compare element-wise with the same rule.
    """
    kind = kind_of(a)
    if kind is not kind_of(b):
        return False
    if kind is ValueKind.SEQUENCE:
        return len(a) == len(b) and all(strict_equal(x, y) for x, y in zip(a, b))
    if kind is ValueKind.MAPPING:
        return a.keys() == b.keys() and all(strict_equal(a[k], b[k]) for k in a)
    if kind in (ValueKind.FUNCTION, ValueKind.OBJECT):
        return a is b or a == b
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


def contains(sequence, value) -> bool:
    """Membership under strict_equal."""
    return any(strict_equal(item, value) for item in sequence)


def unique(sequence) -> list:
    """Order-preserving de-duplication under strict_equal (values may be unhashable)."""
    seen = []
    for item in sequence:
        if not contains(seen, item):
            seen.append(item)
    return seen


# =============================================================================
# Field access
# =============================================================================

def get_field(container: Any, key: Any) -> Any:
    """Read one field; absent fields read as None."""
    if container is None:
        return None
    if isinstance(container, Mapping):
        return container.get(key)
    if is_sequence(container):
        index = _as_index(key)
        if index is None or not -len(container) <= index < len(container):
            return None
        return container[index]
    if kind_of(container) is ValueKind.OBJECT and isinstance(key, str):
        return getattr(container, key, None)
    return None


def set_field(container: Any, key: Any, value: Any):
    if isinstance(container, MutableMapping):
        container[key] = value
    elif isinstance(container, list):
        index = _as_index(key)
        if index is None:
            raise KeyError(key)
        container[index] = value
    else:
        setattr(container, key, value)


def delete_field(container: Any, key: Any):
    if isinstance(container, MutableMapping):
        container.pop(key, None)
    elif isinstance(container, list):
        index = _as_index(key)
        if index is not None and -len(container) <= index < len(container):
            del container[index]
    elif isinstance(key, str) and hasattr(container, key):
        delattr(container, key)


def _as_index(key: Any) -> Optional[int]:
    if isinstance(key, bool):
        return None
    if isinstance(key, int):
        return key
    if isinstance(key, str) and key.lstrip('-').isdigit():
        return int(key)
    return None


# =============================================================================
# Temporal coercion
# =============================================================================

_DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%a, %d %b %Y %H:%M:%S GMT",
    "%a %b %d %Y",
)


def parse_date(text: str) -> Optional[datetime]:
    """Best-effort parse of a date string. None when unparseable."""
    if not isinstance(text, str):
        return None
    text = text.strip()
    if not text or text.isdigit() and len(text) < 8:
        return None
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        if fmt.endswith("GMT"):
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def to_datetime(value: Any) -> Optional[datetime]:
    """Coerce dates, date strings and POSIX seconds to a datetime."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        return parse_date(value)
    if is_number(value) and math.isfinite(value):
        try:
            return datetime.fromtimestamp(value)
        except (OverflowError, OSError, ValueError):
            return None
    return None


def to_temporal(value: Any) -> Any:
    """Shared coercion for temporal ordering.

    Dates and parseable strings become POSIX timestamps; numbers pass through;
    anything else is returned unchanged (and will not order against numbers).
    """
    if isinstance(value, (date, str)):
        parsed = to_datetime(value)
        if parsed is not None:
            return parsed.timestamp()
    return value
