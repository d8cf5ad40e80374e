"""
chocomango — in-process query, transform, sort and similarity ranking
for semi-structured records.

Domains:
  query/       pattern language: paths, operator registries, evaluator, sort
  embed/       deterministic Hangul feature-hashing encoder
  retrieve/    length-aware similarity and document ranking (numpy)
  find.py      selector → transform → filter → order pipeline
  values.py    value kinds, sentinels, field access
"""

from chocomango.embed.encoder import HangulEncoder, create_embedding
from chocomango.find import DocumentStore, find
from chocomango.query.evaluate import evaluate, filter_records, matches
from chocomango.query.registry import register_predicate, register_transform
from chocomango.query.sort import sort
from chocomango.retrieve.vec_ops import similarity

__all__ = [
    "evaluate", "matches", "filter_records", "sort",
    "register_predicate", "register_transform",
    "create_embedding", "similarity", "HangulEncoder",
    "find", "DocumentStore",
]
