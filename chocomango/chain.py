"""
Processor chain — sequential, composable pipeline stages.

Usage:
    chain = Chain([
        SelectProcessor(),
        TransformProcessor() if transform else None,  # conditional
        OrderProcessor(),
    ])

    ctx = chain.execute(FindContext(source=rows, selector={...}))

Processors implement the Processor protocol:
    def process(self, ctx: T) -> T: ...

Chain drops None processors (conditional stages). By default the first stage
error propagates; with fail_fast=False the error is recorded in
ctx.metadata['errors'] and the remaining stages still run.
"""

import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol, TypeVar, runtime_checkable


T = TypeVar('T')


@runtime_checkable
class Processor(Protocol):
    """Single pipeline stage. Receives context, returns updated context."""

    def process(self, ctx: Any) -> Any:
        ...


@dataclass
class PipelineContext:
    """Base context passed through processor chain.

    Subclass for domain-specific contexts (FindContext).
    """

    results: List[Any] = field(default_factory=list)
    """Records produced so far."""

    metadata: Dict[str, Any] = field(default_factory=dict)
    """Pipeline metadata (timing, errors, stage info)."""


class Chain:
    """Sequential processor chain executor.

    - Filters None processors (conditional stages)
    - fail_fast: re-raise the first stage error, else record it and continue
    - Returns final context after all stages
    """

    def __init__(self, processors: list, fail_fast: bool = True):
        self.processors = [p for p in processors if p is not None]
        self.fail_fast = fail_fast

    def execute(self, ctx):
        """Execute all processors in sequence."""
        for processor in self.processors:
            try:
                ctx = processor.process(ctx)
            except Exception as e:
                if self.fail_fast:
                    raise
                name = processor.__class__.__name__
                print(f"[find] {name} failed: {e}", file=sys.stderr)
                errors = ctx.metadata.setdefault('errors', [])
                errors.append({
                    'processor': name,
                    'error': str(e),
                })
        return ctx

    def __repr__(self):
        names = [p.__class__.__name__ for p in self.processors]
        return f"Chain({' -> '.join(names)})"
