"""
find — selector → transform → filter → order over records or a document store.

    find(rows, {"age": {"$gte": 21}}, order=[{"age": "desc"}])

    find(store, {"type": "user"},
         transform={"name": {"$capitalize": {}}},
         filter={"email": {"$isEmail": True}},
         order=["name"])

The selector is normalized to the safe filter dialect first. A DocumentStore
receives that normalized selector and does its own matching; a plain list is
matched in-process. Transform and filter are evaluated in-process either way,
and ordering is a stable multi-key sort.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from chocomango.chain import Chain, PipelineContext
from chocomango.query.evaluate import filter_records
from chocomango.query.paths import normalize_filter_query
from chocomango.query.sort import sort


@runtime_checkable
class DocumentStore(Protocol):
    """Storage collaborator. Only find() is used by the pipeline."""

    def find(self, selector: dict) -> list:
        ...

    def get(self, id: str) -> Any:
        ...

    def put(self, doc: dict) -> Any:
        ...

    def remove(self, id: str) -> Any:
        ...

    def on_change(self, callback: Callable) -> Any:
        ...


@dataclass
class FindContext(PipelineContext):
    source: Any = None
    selector: Optional[dict] = None
    transform: Optional[dict] = None
    filter: Optional[dict] = None
    order: Optional[list] = None


class SelectProcessor:
    """Normalize the selector and fetch candidates from the source."""

    def process(self, ctx: FindContext) -> FindContext:
        start = time.time()
        selector = normalize_filter_query(ctx.selector) if ctx.selector else {}
        ctx.metadata['selector'] = selector
        if isinstance(ctx.source, DocumentStore):
            ctx.results = list(ctx.source.find(selector))
        elif selector:
            ctx.results = filter_records(ctx.source, selector)
        else:
            ctx.results = list(ctx.source)
        ctx.metadata['select_ms'] = (time.time() - start) * 1000
        return ctx


class TransformProcessor:
    def process(self, ctx: FindContext) -> FindContext:
        ctx.results = filter_records(ctx.results, ctx.transform)
        return ctx


class FilterProcessor:
    def process(self, ctx: FindContext) -> FindContext:
        ctx.results = filter_records(ctx.results, ctx.filter)
        return ctx


class OrderProcessor:
    def process(self, ctx: FindContext) -> FindContext:
        ctx.results = sort(ctx.results, ctx.order)
        return ctx


def build_chain(transform=None, filter=None, order=None, fail_fast: bool = True) -> Chain:
    return Chain([
        SelectProcessor(),
        TransformProcessor() if transform else None,
        FilterProcessor() if filter else None,
        OrderProcessor() if order else None,
    ], fail_fast=fail_fast)


def find(source, selector: dict = None, *, transform: dict = None, filter: dict = None,
         order: list = None, fail_fast: bool = True) -> list:
    """Run the find pipeline and return the resulting records."""
    ctx = FindContext(source=source, selector=selector, transform=transform,
                      filter=filter, order=order)
    ctx = build_chain(transform, filter, order, fail_fast).execute(ctx)
    return ctx.results
