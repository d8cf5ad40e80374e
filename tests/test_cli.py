"""
Tests for chocomango/cli.py — argparse entry point

Tests: query/sort/embed/search/operators subcommands, JSON from files, inline
text and stdin, exit codes and [cli] diagnostics on stderr.

Run with: pytest tests/test_cli.py -v
"""
import io
import json

import pytest

from chocomango.cli import _parse_criterion, main

pytestmark = [pytest.mark.unit, pytest.mark.cli]


def run(capsys, *argv):
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


# =============================================================================
# query
# =============================================================================

class TestQuery:

    def test_filters_inline_array(self, capsys):
        code, out, _ = run(capsys, "query", '[{"x": 1}, {"x": 5}]', '{"x": {"$gt": 3}}')
        assert code == 0
        assert json.loads(out) == [{"x": 5}]

    def test_whole_array(self, capsys):
        code, out, _ = run(capsys, "query", "--whole", "[1, 2, 3]", '{"$size": 3}')
        assert code == 0
        assert json.loads(out) == [1, 2, 3]

    def test_no_match_prints_null(self, capsys):
        code, out, _ = run(capsys, "query", '{"x": 1}', '{"x": 2}')
        assert code == 0
        assert json.loads(out) is None

    def test_reads_files(self, capsys, tmp_path, people):
        data = tmp_path / "people.json"
        data.write_text(json.dumps(people), encoding="utf-8")
        code, out, _ = run(capsys, "query", str(data), '{"address.city": "Seoul"}')
        assert code == 0
        assert [p["name"] for p in json.loads(out)] == ["alice", "carol"]

    def test_reads_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO('{"name": "bob"}'))
        code, out, _ = run(capsys, "query", "-", '{"name": {"$capitalize": {}}}')
        assert code == 0
        assert json.loads(out) == {"name": "Bob"}

    def test_bad_json_exits_1(self, capsys):
        code, out, err = run(capsys, "query", "{not json", '{"x": 1}')
        assert code == 1
        assert out == ""
        assert err.startswith("[cli] query:")


# =============================================================================
# sort
# =============================================================================

class TestSort:

    def test_criteria(self, capsys, people):
        code, out, _ = run(capsys, "sort", json.dumps(people), "score:desc", "name")
        assert code == 0
        assert [p["name"] for p in json.loads(out)] == ["alice", "carol", "bob", "dave"]

    def test_json_criterion(self, capsys):
        code, out, _ = run(capsys, "sort", '[{"a": {"b": 1}}, {"a": {"b": 2}}]', '{"a": {"b": "desc"}}')
        assert code == 0
        assert json.loads(out) == [{"a": {"b": 2}}, {"a": {"b": 1}}]

    def test_requires_array(self, capsys):
        code, _, err = run(capsys, "sort", '{"a": 1}', "a")
        assert code == 1
        assert "JSON array" in err

    def test_bad_criterion(self, capsys):
        code, _, err = run(capsys, "sort", "[]", '{"a": "sideways"}')
        assert code == 1
        assert "[cli] sort:" in err

    @pytest.mark.parametrize("text,expected", [
        ("age", "age"),
        ("age:desc", {"path": "age", "direction": "desc"}),
        ("user.age:ASC", {"path": "user.age", "direction": "asc"}),
        ("time:12", "time:12"),
    ])
    def test_parse_criterion(self, text, expected):
        assert _parse_criterion(text) == expected


# =============================================================================
# embed / search
# =============================================================================

class TestEmbed:

    def test_vector(self, capsys):
        code, out, _ = run(capsys, "embed", "hello world", "--dim", "64")
        assert code == 0
        vec = json.loads(out)
        assert len(vec) == 64
        assert abs(sum(x * x for x in vec) - 1.0) < 1e-4

    def test_hangul(self, capsys):
        code, out, _ = run(capsys, "embed", "hello", "--hangul")
        assert code == 0
        assert out.strip() == "헬로"

    def test_bad_dimension(self, capsys):
        code, _, err = run(capsys, "embed", "hello", "--dim", "0")
        assert code == 1
        assert "[cli] embed:" in err


class TestSearch:

    def test_ranks_documents(self, capsys):
        code, out, err = run(capsys, "search", "hello world",
                             "goodbye moon", "hello world", "--limit", "1", "--dim", "128")
        assert code == 0
        hits = json.loads(out)
        assert len(hits) == 1
        assert hits[0]["index"] == 1
        assert hits[0]["text"] == "hello world"
        assert "VectorCache: 2 vectors" in err


# =============================================================================
# operators / help
# =============================================================================

class TestOperators:

    def test_json_listing(self, capsys):
        code, out, _ = run(capsys, "operators", "--json", "--family", "transform")
        assert code == 0
        rows = json.loads(out)
        assert {r["family"] for r in rows} == {"transform"}
        assert "$format" in {r["name"] for r in rows}

    def test_table_listing(self, capsys):
        code, out, _ = run(capsys, "operators")
        assert code == 0
        assert any(line.startswith("$elemMatch") for line in out.splitlines())


def test_no_command_prints_help(capsys):
    code, out, _ = run(capsys)
    assert code == 0
    assert "usage: chocomango" in out
