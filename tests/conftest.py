"""
chocomango Test Fixtures

Sample records, registry isolation, and a small in-memory document store
for the find pipeline.

Run with: pytest tests/ -v
"""
import copy

import pytest


# =============================================================================
# RECORDS
# =============================================================================

PEOPLE = [
    {"name": "alice", "age": 30, "score": 100, "tags": ["admin", "dev"],
     "address": {"city": "Seoul", "zip": "04524"}, "email": "alice@example.com"},
    {"name": "bob", "age": 30, "score": 95, "tags": ["dev"],
     "address": {"city": "Busan", "zip": "48058"}, "email": "bob-at-example"},
    {"name": "carol", "age": 25, "score": 100, "tags": ["ops", "dev"],
     "address": {"city": "Seoul", "zip": "03187"}, "email": "carol@example.org"},
    {"name": "dave", "score": 80, "tags": [],
     "address": {"city": "Incheon"}, "email": None},
]


@pytest.fixture
def people():
    """Deep copy of PEOPLE; tests may mutate it freely."""
    return copy.deepcopy(PEOPLE)


# =============================================================================
# REGISTRY ISOLATION
# =============================================================================

@pytest.fixture
def clean_registry():
    """Snapshot the operator tables and restore them after the test."""
    from chocomango.query import evaluate  # noqa: F401 (registers built-ins)
    from chocomango.query.registry import PREDICATES, TRANSFORMS

    saved_predicates = dict(PREDICATES)
    saved_transforms = dict(TRANSFORMS)
    yield
    PREDICATES.clear()
    PREDICATES.update(saved_predicates)
    TRANSFORMS.clear()
    TRANSFORMS.update(saved_transforms)


# =============================================================================
# DOCUMENT STORE
# =============================================================================

class MemoryStore:
    """Minimal DocumentStore: exact-match selector on top-level $eq only.

    Records every selector it receives so tests can assert on it.
    """

    def __init__(self, docs):
        self.docs = {d["_id"]: d for d in docs}
        self.selectors = []
        self.listeners = []

    def find(self, selector):
        self.selectors.append(selector)
        out = []
        for doc in self.docs.values():
            ok = True
            for key, ops in selector.items():
                if isinstance(ops, dict) and "$eq" in ops and doc.get(key) != ops["$eq"]:
                    ok = False
            if ok:
                out.append(doc)
        return out

    def get(self, id):
        return self.docs.get(id)

    def put(self, doc):
        self.docs[doc["_id"]] = doc
        for cb in self.listeners:
            cb(doc)
        return doc

    def remove(self, id):
        return self.docs.pop(id, None)

    def on_change(self, callback):
        self.listeners.append(callback)


@pytest.fixture
def store(people):
    docs = []
    for i, p in enumerate(people):
        doc = dict(p, _id=f"p{i}", type="person")
        docs.append(doc)
    docs.append({"_id": "x1", "type": "robot", "name": "r2", "age": 40})
    return MemoryStore(docs)
