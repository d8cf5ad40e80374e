"""
Tests for chocomango/query/transforms.py — built-in transforms

Most cases call the registered Transform directly so a NO_MATCH result is
visible; the write-back behaviour ($define, $drop, "as") goes through
evaluate().

Run with: pytest tests/test_transforms.py -v
"""
import math
import re
from datetime import datetime

import numpy as np
import pytest

from chocomango import evaluate, filter_records
from chocomango.query.registry import TRANSFORMS
from chocomango.values import DELETE, KEEP, NO_MATCH, DeferredAssignment

pytestmark = [pytest.mark.unit, pytest.mark.transforms]


def apply(name, subject, arg=None):
    return TRANSFORMS[name].evaluate(subject, arg)


# =============================================================================
# Aggregate
# =============================================================================

class TestAggregate:

    def test_sum(self):
        assert apply("$sum", [1, 2, 3]) == 6
        assert apply("$sum", [1, 2], 4) == 7
        assert apply("$sum", []) == 0
        assert apply("$sum", ["x"]) is NO_MATCH

    def test_average_min_max(self):
        assert apply("$average", [1, 2, 3]) == 2.0
        assert apply("$average", []) is NO_MATCH
        assert apply("$min", [3, 1, 2]) == 1
        assert apply("$max", [3, 1, 2]) == 3

    def test_hypot(self):
        assert apply("$hypot", [3, 4]) == 5.0

    def test_dot_is_sum_of_squares(self):
        assert apply("$dot", 2, {"value": 3, "array": [4]}) == 29

    def test_product(self):
        assert apply("$product", [1, 2], {"value": 2, "array": [3]}) == [2, 4, 3, 6]
        assert apply("$product", 5, {"value": 2}) is NO_MATCH

    def test_percentile(self):
        assert apply("$percentile", [1, 2, 3, 4, 5], {"p": 50}) == 3
        assert apply("$percentile", [5, 1, 4, 2, 3], {"p": 25}) == 2
        np.testing.assert_allclose(apply("$percentile", [1, 2, 3, 4, 5], {"p": 10}), 1.4)

    def test_percentile_clamps_p(self):
        assert apply("$percentile", [1, 2, 3], {"p": 150}) == 3
        assert apply("$percentile", [1, 2, 3], {"p": -10}) == 1
        assert apply("$percentile", [1, 2, 3], {"p": float("nan")}) is NO_MATCH

    def test_statistics(self):
        stats = apply("$statistics", [1, 2, 2, 3, 4])
        assert stats["median"] == 2
        assert stats["mode"] == 2
        assert (stats["min"], stats["max"], stats["range"], stats["count"]) == (1, 4, 3, 5)
        np.testing.assert_allclose(stats["mean"], 2.4)
        np.testing.assert_allclose(stats["variance"], 1.04)
        np.testing.assert_allclose(stats["stdDev"], math.sqrt(1.04))

    def test_statistics_rejects_non_numbers(self):
        assert apply("$statistics", [1, "a"]) is NO_MATCH


# =============================================================================
# Array
# =============================================================================

class TestArray:

    def test_chunk(self):
        assert apply("$chunk", [1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
        assert apply("$chunk", [1, 2], 0) is NO_MATCH

    def test_compact(self):
        assert apply("$compact", [1, None, 2]) == [1, 2]

    def test_set_operations(self):
        assert apply("$difference", [1, 2, 3, 2], {"array": [2]}) == [1, 3]
        assert apply("$setDifference", [1, 1, 2, 3], {"array": [2, 3, 4]}) == [1]
        assert apply("$intersection", [1, 2, 3], {"array": [2, 3, 4]}) == [2, 3]
        assert apply("$union", [1, 2], {"array": [2, 3]}) == [1, 2, 3]
        assert apply("$difference", "abc", {"array": []}) is NO_MATCH

    def test_unique_is_kind_strict(self):
        assert apply("$unique", [1, 1, True, "1"]) == [1, True, "1"]

    def test_flatten(self):
        assert apply("$flatten", [1, [2, [3, [4]]]]) == [1, 2, 3, 4]
        assert apply("$flatten", [1, [2, [3, [4]]]], {"depth": 1}) == [1, 2, [3, [4]]]

    def test_group_by(self):
        rows = [{"t": "a", "v": 1}, {"t": "b"}, {"t": "a", "v": 2}]
        groups = apply("$groupBy", rows, {"key": "t"})
        assert list(groups) == ["a", "b"]
        assert [r.get("v") for r in groups["a"]] == [1, 2]

    def test_group_by_callable(self):
        groups = apply("$groupBy", [1, 2, 3, 4], {"key": lambda x: x % 2})
        assert groups == {1: [1, 3], 0: [2, 4]}

    def test_slice(self):
        assert apply("$slice", [1, 2, 3, 4], {"start": 1, "end": 3}) == [2, 3]
        assert apply("$slice", [1, 2, 3], {"start": "a"}) is NO_MATCH
        assert apply("$slice", [1, 2, 3], {"end": 1.5}) is NO_MATCH

    def test_splice_does_not_mutate(self):
        data = [1, 2, 3, 4]
        out = apply("$splice", data, {"start": 1, "deleteCount": 2, "items": ["x"]})
        assert out == [1, "x", 4]
        assert data == [1, 2, 3, 4]

    def test_splice_rejects_non_integer_positions(self):
        assert apply("$splice", [1, 2], {"start": None}) is NO_MATCH
        assert apply("$splice", [1, 2], {"deleteCount": "all"}) is NO_MATCH

    def test_sort(self):
        assert apply("$sort", [3, 1, 2]) == [1, 2, 3]
        assert apply("$sort", [3, 1, 2], {"reverse": True}) == [3, 2, 1]
        assert apply("$sort", [{"n": 2}, {"n": 1}], {"key": "n"}) == [{"n": 1}, {"n": 2}]
        assert apply("$sort", [1, 3, 2], {"compare": lambda x, y: y - x}) == [3, 2, 1]
        assert apply("$sort", [1, "a"]) is NO_MATCH

    def test_push_unshift(self):
        assert apply("$push", [1], 2) == [1, 2]
        assert apply("$push", [1], {"array": [2, 3]}) == [1, 2, 3]
        assert apply("$unshift", [2], 1) == [1, 2]
        assert apply("$push", "nope", 1) is NO_MATCH

    def test_pop_shift_return_element(self):
        data = [1, 2, 3]
        assert apply("$pop", data) == 3
        assert apply("$shift", data) == 1
        assert data == [1, 2, 3]
        assert apply("$pop", []) is NO_MATCH


# =============================================================================
# String and conversion
# =============================================================================

class TestString:

    def test_capitalize_trim(self):
        assert apply("$capitalize", "hello") == "Hello"
        assert apply("$trim", "  hi  ") == "hi"
        assert apply("$capitalize", 5) is NO_MATCH

    def test_split_join(self):
        assert apply("$split", "a,b", ",") == ["a", "b"]
        assert apply("$split", "ab", "") == ["a", "b"]
        assert apply("$join", [1, None, "a", True], "-") == "1--a-true"
        assert apply("$join", ["a", "b"]) == "a,b"
        assert apply("$split", "a,b", 5) is NO_MATCH
        assert apply("$join", ["a", "b"], 5) is NO_MATCH

    def test_replace(self):
        assert apply("$replace", "a-b-c", {"pattern": "-", "replacement": "+"}) == "a+b+c"
        assert apply("$replace", "a-b-c", {"pattern": "-", "replacement": "+", "count": 1}) == "a+b-c"
        assert apply("$replace", "a1b2", {"pattern": re.compile(r"\d"), "replacement": "#"}) == "a#b#"
        assert apply("$replace", "a-b", {"pattern": "-", "replacement": 1}) is NO_MATCH
        assert apply("$replace", "a-b", {"pattern": "-", "count": "1"}) is NO_MATCH

    def test_to_boolean(self):
        assert apply("$toBoolean", "yes") is True
        assert apply("$toBoolean", "No") is False
        assert apply("$toBoolean", 0) is False
        assert apply("$toBoolean", "other") is True

    def test_to_date(self):
        assert apply("$toDate", "2023-01-01") == datetime(2023, 1, 1)
        assert apply("$toDate", 0) == datetime.fromtimestamp(0)
        assert apply("$toDate", True) is NO_MATCH
        assert apply("$toDate", "junk") is NO_MATCH

    def test_to_number(self):
        assert apply("$toNumber", "42") == 42
        assert apply("$toNumber", "3.5") == 3.5
        assert apply("$toNumber", "ff", {"radix": 16}) == 255
        assert apply("$toNumber", True) == 1
        assert apply("$toNumber", "abc") is NO_MATCH
        assert apply("$toNumber", "nan") is NO_MATCH

    def test_to_string(self):
        assert apply("$toString", 5.0) == "5"
        assert apply("$toString", True) == "true"
        assert apply("$toString", None) is NO_MATCH
        assert apply("$toString", None, {"allowNull": True}) == "null"

    def test_format(self):
        person = {"first": "Ada", "last": "Lovelace", "user": {"name": "ada"}}
        assert apply("$format", person, {"template": "${first} ${last}"}) == "Ada Lovelace"
        assert apply("$format", person, {"template": "@${user.name}"}) == "@ada"
        assert apply("$format", person, {"template": "[${missing}]"}) == "[]"

    def test_format_precedence(self):
        opts = {"template": "${name}", "values": {"name": "B"}}
        assert apply("$format", {"name": "A"}, opts) == "A"
        assert apply("$format", {"name": "A"}, {**opts, "precedence": "values"}) == "B"


# =============================================================================
# Math
# =============================================================================

class TestMath:

    def test_unary(self):
        assert apply("$abs", -3) == 3
        assert apply("$trunc", -2.7) == -2
        assert apply("$round", 2.5) == 3
        assert apply("$round", -2.5) == -2
        assert apply("$sign", -4) == -1
        assert apply("$clz32", 1) == 31
        assert apply("$fround", 5.5) == 5.5
        np.testing.assert_allclose(apply("$cbrt", 27), 3.0)

    def test_domain_errors_are_no_match(self):
        assert apply("$sqrt", -1) is NO_MATCH
        assert apply("$log10", 0) is NO_MATCH
        assert apply("$sqrt", "4") is NO_MATCH

    def test_binary(self):
        assert apply("$pow", 2, 3) == 8.0
        np.testing.assert_allclose(apply("$log", 8, 2), 3.0)
        np.testing.assert_allclose(apply("$log", math.e), 1.0)
        np.testing.assert_allclose(apply("$atan2", 1, {"b": 1}), math.pi / 4)
        assert apply("$imul", 3, 4) == 12
        assert apply("$imul", 0x7FFFFFFF, 2) == -2

    def test_range_helpers(self):
        assert apply("$clamp", 15, {"min": 0, "max": 10}) == 10
        assert apply("$lerp", 0, {"target": 10, "alpha": 0.5}) == 5.0
        assert apply("$normalize", 5, {"min": 0, "max": 10}) == 0.5

    def test_missing_options_are_no_match(self):
        assert apply("$pow", 2) is NO_MATCH
        assert apply("$normalize", 5, {"min": 1, "max": 1}) is NO_MATCH


# =============================================================================
# Calendar
# =============================================================================

class TestDateFormat:

    when = datetime(2023, 1, 1, 12, 30, 45)

    def test_default_format(self):
        assert apply("$dateFormat", self.when) == "2023-01-01"

    def test_tokens(self):
        assert apply("$dateFormat", self.when, "YYYY-MM-DD HH:mm:ss") == "2023-01-01 12:30:45"
        assert apply("$dateFormat", self.when, "dddd, MMMM D") == "Sunday, January 1"
        assert apply("$dateFormat", self.when, "h:mm A") == "12:30 PM"

    def test_words_are_not_tokens(self):
        assert apply("$dateFormat", self.when, "Month YYYY") == "Month 2023"

    def test_strings_are_parsed(self):
        assert apply("$dateFormat", "2024-02-29", "DD/MM/YY") == "29/02/24"
        assert apply("$dateFormat", "junk") is NO_MATCH


# =============================================================================
# Reflective
# =============================================================================

class TestReflective:

    def test_members(self):
        assert apply("$keys", {"a": 1, "b": 2}) == ["a", "b"]
        assert apply("$values", {"a": 1, "b": 2}) == [1, 2]
        assert apply("$entries", {"a": 1}) == [["a", 1]]
        assert apply("$keys", ["x", "y"]) == [0, 1]
        assert apply("$keys", 5) is NO_MATCH

    def test_names(self):
        assert apply("$typeName", True) == "boolean"
        assert apply("$typeName", [1]) == "array"
        assert apply("$className", {}) == "dict"

    def test_default(self):
        assert apply("$default", None, 3) == 3
        assert apply("$default", 5, 3) == 5

    def test_parse_stringify(self):
        assert apply("$parse", '{"a": 1}') == {"a": 1}
        assert apply("$parse", "junk") is NO_MATCH
        assert apply("$stringify", {"a": [1, 2]}) == '{"a":[1,2]}'
        assert "\n" in apply("$stringify", {"a": 1}, {"indent": 2})
        assert apply("$stringify", {(1, 2): "tuple key"}) is NO_MATCH

    def test_eval_literals_only(self):
        assert apply("$eval", "[1, 2]") == [1, 2]
        assert apply("$eval", "__import__('os')") is NO_MATCH

    def test_call(self):
        assert apply("$call", 4, {"f": lambda x: x * 10}) == 40
        assert apply("$call", 4, {"f": "nope"}) is NO_MATCH

    def test_define_is_deferred(self):
        assert isinstance(apply("$define", 1, 5), DeferredAssignment)

    def test_drop_flag(self):
        assert apply("$drop", 1, True) is DELETE
        assert apply("$drop", 1, False) is KEEP
        assert apply("$drop", 1, lambda a, ctx: False) is KEEP


# =============================================================================
# Write-back through evaluate()
# =============================================================================

class TestWriteBack:

    def test_transform_rewrites_field(self):
        assert evaluate({"name": "bob"}, {"name": {"$capitalize": {}}}) == {"name": "Bob"}

    def test_define(self):
        assert evaluate({"a": 1}, {"a": {"$define": 5}}) == {"a": 5}
        assert evaluate({"a": 1}, {"a": {"$define": {"value": 7, "as": "b"}}}) == {"a": 1, "b": 7}

    def test_drop_with_context_function(self):
        rows = [{"name": "a", "age": 18}, {"name": "b", "age": 30}]
        out = filter_records(rows, {"age": {"$drop": lambda a, ctx: ctx.record["age"] < 21}})
        assert out == [{"name": "a"}, {"name": "b", "age": 30}]

    def test_falsy_drop_writes_nothing(self):
        record = {"x": 1}
        assert evaluate(record, {"missing": {"$drop": False}}) == {"x": 1}
        assert record == {"x": 1}
        assert evaluate(record, {"x": {"$drop": lambda a, ctx: False, "as": "y"}}) == {"x": 1}
        assert record == {"x": 1}

    def test_drop_at_root_excludes(self):
        assert evaluate(5, {"$drop": True}) is None
        assert filter_records([1, 2, 3], {"$drop": lambda a, ctx: a > 1}) == [1]

    def test_root_transform_result_returned(self):
        assert evaluate([1, 2, 3], {"$sum": {}}) == 6


# =============================================================================
# No-throw on ill-typed options
# =============================================================================

@pytest.mark.parametrize("subject,pattern", [
    ([1, 2, 3], {"$percentile": {"p": 150}}),
    ([1, 2, 3], {"$percentile": {"p": -5}}),
    ([1, 2, 3], {"$slice": {"start": "a"}}),
    ([1, 2, 3], {"$slice": {"end": [1]}}),
    ([1, 2, 3], {"$splice": {"start": None}}),
    (["a", "b"], {"$join": 5}),
    ("a,b", {"$split": 5}),
    ("a-b", {"$replace": {"pattern": "-", "replacement": 3}}),
    ("a-b", {"$replace": {"pattern": re.compile("-"), "replacement": 3}}),
    ({(1, 2): "x"}, {"$stringify": {}}),
    (10 ** 400, {"$sqrt": {}}),
    (10 ** 400, {"$pow": 2}),
    ("str", {"$chunk": "big"}),
    ({"a": 1}, {"$flatten": {}}),
])
def test_never_raises(subject, pattern):
    evaluate(subject, pattern)
