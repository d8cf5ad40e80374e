"""
Similarity scoring and document ranking over encoder vectors.

Vectors from HangulEncoder are L2-normalized, so the dot product is the cosine.
The score is then scaled by a length penalty that depends on direction:

    score = dot(a, b) * (min(len_a, len_b) / max(len_a, len_b)) ** power

    power = QUERY_POWER    (0.5)    when a is shorter than b and the
                                    comparison is query → document
          = DOCUMENT_POWER (0.333)  otherwise

A short query against a long document is penalized harder than the reverse.
Equal lengths are symmetric. Both exponents come from chocomango.config.

Ranking layers:
  similarity()        one pair, with the length penalty
  search_documents()  one query against a stacked matrix, BLAS matmul
  VectorCache         texts embedded once, queried by text
"""

import sys
import time
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from chocomango import config


def _penalty(len_a, len_b, query_direction: bool, query_power: float, document_power: float) -> float:
    ratio = min(len_a, len_b) / max(len_a, len_b)
    power = query_power if (len_a < len_b and query_direction) else document_power
    return ratio ** power


def similarity(a: Optional[np.ndarray], b: Optional[np.ndarray],
               len_a: Optional[int] = None, len_b: Optional[int] = None,
               query_direction: bool = True, *,
               query_power: float = None, document_power: float = None) -> float:
    """Length-aware similarity of two embedding vectors.

    A vector missing on exactly one side scores 0.0. Missing on both sides,
    or vectors of different length, raise ValueError.
    """
    if a is None and b is None:
        raise ValueError("Invalid embeddings: both vectors are missing")
    if a is None or b is None:
        return 0.0
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise ValueError(
            f"Invalid embeddings: vector shapes {a.shape} and {b.shape} must be equal length"
        )

    score = float(np.dot(a, b))
    if len_a and len_b:
        qp = config.QUERY_POWER if query_power is None else query_power
        dp = config.DOCUMENT_POWER if document_power is None else document_power
        score *= _penalty(len_a, len_b, query_direction, qp, dp)
    return score


def search_documents(query_vec: np.ndarray, doc_vecs, *,
                     query_length: Optional[int] = None,
                     doc_lengths: Optional[Sequence[int]] = None,
                     lower_bound: float = 0.0, upper_bound: float = 1.0,
                     limit: Optional[int] = None,
                     query_direction: bool = True) -> List[Dict[str, Any]]:
    """Rank documents against one query.

    Keeps scores with lower_bound <= score and min(1, score) <= upper_bound.

    Returns:
        List of {index, score} sorted by score desc (ties keep input order)
    """
    matrix = np.asarray(doc_vecs, dtype=np.float32)
    if matrix.size == 0:
        return []
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    query_vec = np.asarray(query_vec, dtype=np.float32)
    if query_vec.shape != (matrix.shape[1],):
        raise ValueError(
            f"Query vector dimension {query_vec.shape} doesn't match "
            f"document dimension ({matrix.shape[1]},)"
        )

    scores = (matrix @ query_vec).astype(np.float64)
    if query_length and doc_lengths is not None:
        for i, doc_len in enumerate(doc_lengths):
            if doc_len:
                scores[i] *= _penalty(query_length, doc_len, query_direction,
                                      config.QUERY_POWER, config.DOCUMENT_POWER)

    keep = (scores >= lower_bound) & (np.minimum(1.0, scores) <= upper_bound)
    indices = np.flatnonzero(keep)
    order = indices[np.argsort(-scores[indices], kind='stable')]
    if limit is not None:
        order = order[:limit]
    return [{'index': int(i), 'score': float(scores[i])} for i in order]


class VectorCache:
    """
    In-memory text → vector cache for ranking by query text.

    Usage:
        cache = VectorCache(HangulEncoder())
        cache.load([("doc1", "first text"), ("doc2", "second text")])
        results = cache.search("query text", limit=5)
    """

    def __init__(self, encoder):
        self.encoder = encoder
        self.ids: List[str] = []
        self.lengths: List[int] = []
        self.matrix: Optional[np.ndarray] = None  # (n, dims), normalized
        self._id_to_idx: Dict[str, int] = {}
        self.loaded_at: Optional[float] = None
        self.dims: int = 0
        self._load_msg = ''

    def __len__(self):
        return len(self.ids)

    def load(self, items) -> 'VectorCache':
        """Embed (id, text) pairs into the matrix. Replaces previous contents."""
        start = time.time()
        items = list(items)
        if not items:
            return self

        self.ids = [str(id_) for id_, _ in items]
        texts = [text for _, text in items]
        self.lengths = [self.encoder.effective_length(t) for t in texts]
        self.matrix = self.encoder.encode(texts)
        self.dims = self.matrix.shape[1]
        if len(set(self.ids)) != len(self.ids):
            print(f"VectorCache: duplicate ids in {len(self.ids)} items, last one wins",
                  file=sys.stderr)
        self._id_to_idx = {id_: i for i, id_ in enumerate(self.ids)}

        self.loaded_at = time.time()
        elapsed = (self.loaded_at - start) * 1000
        self._load_msg = f"VectorCache: {len(self.ids)} vectors ({self.dims}d) in {elapsed:.1f}ms"
        return self

    def get(self, id_: str) -> Optional[np.ndarray]:
        idx = self._id_to_idx.get(id_)
        return None if idx is None else self.matrix[idx]

    def search(self, query: str, *, limit: int = 10,
               lower_bound: float = 0.0, upper_bound: float = 1.0) -> List[Dict[str, Any]]:
        """
        Rank cached texts against a query text.

        Returns:
            List of {id, score} sorted by score desc
        """
        if self.matrix is None or not self.ids:
            return []
        hits = search_documents(
            self.encoder.create_embedding(query), self.matrix,
            query_length=self.encoder.effective_length(query),
            doc_lengths=self.lengths,
            lower_bound=lower_bound, upper_bound=upper_bound, limit=limit,
        )
        return [{'id': self.ids[h['index']], 'score': h['score']} for h in hits]
