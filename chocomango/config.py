"""
Runtime configuration — read once from the environment at import.

  CHOCOMANGO_EMBED_DIM        default encoder dimension (512)
  CHOCOMANGO_QUERY_POWER      length penalty exponent, short query vs long doc (0.5)
  CHOCOMANGO_DOCUMENT_POWER   length penalty exponent otherwise (0.333)
  CHOCOMANGO_SEARCH_LIMIT     default result count for `chocomango search` (10)

Callers read these as module attributes at call time, so tests can
monkeypatch them.
"""

import os

EMBED_DIM = int(os.environ.get("CHOCOMANGO_EMBED_DIM", "512"))

# Encoders at or above this size use the richer jamo tables and the
# five-position spread.
EXTENDED_DIM = 512

QUERY_POWER = float(os.environ.get("CHOCOMANGO_QUERY_POWER", "0.5"))
DOCUMENT_POWER = float(os.environ.get("CHOCOMANGO_DOCUMENT_POWER", "0.333"))

SEARCH_LIMIT = int(os.environ.get("CHOCOMANGO_SEARCH_LIMIT", "10"))
