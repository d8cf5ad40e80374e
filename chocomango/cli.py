#!/usr/bin/env python3
"""
chocomango CLI — query, sort and rank JSON records from the shell.

chocomango query rows.json '{"age": {"$gte": 21}}'
chocomango sort rows.json age:desc name
chocomango embed "hello world" --dim 256
chocomango search "hello" "hello world" "goodbye moon" --limit 1
chocomango operators

DATA and PATTERN arguments are a JSON file path, inline JSON, or '-' for stdin.
Results go to stdout as JSON; diagnostics go to stderr.
"""

import argparse
import json
import sys
from pathlib import Path

from chocomango import config


def _load_json(arg: str):
    """JSON from '-' (stdin), a file path, or inline text."""
    if arg == '-':
        return json.load(sys.stdin)
    path = Path(arg)
    if not arg.lstrip().startswith(('{', '[')) and path.is_file():
        return json.loads(path.read_text(encoding='utf-8'))
    return json.loads(arg)


def _emit(value, indent=2):
    print(json.dumps(value, indent=indent, ensure_ascii=False, default=str))


def _parse_criterion(text: str):
    """'path', 'path:desc' or a JSON criterion."""
    if text.lstrip().startswith('{'):
        return json.loads(text)
    path, sep, direction = text.rpartition(':')
    if sep and direction.lower() in ('asc', 'desc'):
        return {'path': path, 'direction': direction.lower()}
    return text


# ============================================================
# chocomango query
# ============================================================

def cmd_query(args):
    """Evaluate a pattern; a top-level list is filtered record by record."""
    from chocomango.query.evaluate import evaluate

    data = _load_json(args.data)
    pattern = _load_json(args.pattern)
    depth = 0 if args.whole or not isinstance(data, list) else 1
    _emit(evaluate(data, pattern, depth=depth))


# ============================================================
# chocomango sort
# ============================================================

def cmd_sort(args):
    from chocomango.query.sort import sort

    data = _load_json(args.data)
    if not isinstance(data, list):
        raise ValueError("sort expects a JSON array of records")
    _emit(sort(data, [_parse_criterion(c) for c in args.criteria]))


# ============================================================
# chocomango embed / search
# ============================================================

def cmd_embed(args):
    from chocomango.embed.encoder import HangulEncoder

    encoder = HangulEncoder(args.dim)
    if args.hangul:
        print(encoder.text_to_hangul(args.text))
        return
    vec = encoder.create_embedding(args.text)
    _emit([round(float(x), 6) for x in vec], indent=None)


def cmd_search(args):
    from chocomango.embed.encoder import HangulEncoder
    from chocomango.retrieve.vec_ops import VectorCache

    cache = VectorCache(HangulEncoder(args.dim))
    cache.load((str(i), doc) for i, doc in enumerate(args.docs))
    hits = cache.search(args.query, limit=args.limit,
                        lower_bound=args.lower, upper_bound=args.upper)
    print(cache._load_msg, file=sys.stderr)
    _emit([
        {'index': int(h['id']), 'score': round(h['score'], 6), 'text': args.docs[int(h['id'])]}
        for h in hits
    ])


# ============================================================
# chocomango operators
# ============================================================

def cmd_operators(args):
    from chocomango.query import evaluate  # noqa: F401 (registers built-ins)
    from chocomango.query.registry import list_operators

    rows = list_operators()
    if args.family:
        rows = [r for r in rows if r['family'] == args.family]
    if args.json:
        _emit(rows)
        return
    for row in rows:
        print(f"{row['name']:<16} {row['family']:<10} {row['argument_kind']}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="chocomango",
        description="Query, transform, sort and rank semi-structured records.",
    )
    sub = parser.add_subparsers(dest="command")

    # chocomango query
    query_p = sub.add_parser("query", help="Match and transform records against a pattern")
    query_p.add_argument("data", help="JSON file, inline JSON, or - for stdin")
    query_p.add_argument("pattern", help="Pattern as JSON file or inline JSON")
    query_p.add_argument("--whole", action="store_true",
                         help="Treat a top-level array as one value instead of filtering it")

    # chocomango sort
    sort_p = sub.add_parser("sort", help="Stable multi-key sort of a JSON array")
    sort_p.add_argument("data", help="JSON file, inline JSON, or - for stdin")
    sort_p.add_argument("criteria", nargs="+", help="path, path:desc, or a JSON criterion")

    # chocomango embed
    embed_p = sub.add_parser("embed", help="Print the embedding vector of a text")
    embed_p.add_argument("text")
    embed_p.add_argument("--dim", type=int, default=config.EMBED_DIM,
                         help=f"Embedding dimension (default: {config.EMBED_DIM})")
    embed_p.add_argument("--hangul", action="store_true", help="Print the Hangul rewrite instead")

    # chocomango search
    search_p = sub.add_parser("search", help="Rank documents against a query text")
    search_p.add_argument("query")
    search_p.add_argument("docs", nargs="+", metavar="DOC")
    search_p.add_argument("--limit", type=int, default=config.SEARCH_LIMIT,
                          help=f"Max results (default: {config.SEARCH_LIMIT})")
    search_p.add_argument("--dim", type=int, default=config.EMBED_DIM)
    search_p.add_argument("--lower", type=float, default=0.0, help="Minimum score (default: 0)")
    search_p.add_argument("--upper", type=float, default=1.0, help="Maximum score (default: 1)")

    # chocomango operators
    ops_p = sub.add_parser("operators", help="List registered predicates and transforms")
    ops_p.add_argument("--family", choices=["predicate", "transform"])
    ops_p.add_argument("--json", action="store_true", help="Output raw JSON")

    args = parser.parse_args(argv)
    commands = {
        "query": cmd_query,
        "sort": cmd_sort,
        "embed": cmd_embed,
        "search": cmd_search,
        "operators": cmd_operators,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    try:
        handler(args)
    except (ValueError, OSError) as e:
        print(f"[cli] {args.command}: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
