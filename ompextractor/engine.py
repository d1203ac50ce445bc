"""
Association engine: matches OpenMP directives to the loops they govern and
emits one report entry per loop (plus auxiliary entries for ordered/atomic
regions found inside them).

One RunContext lives for a whole run. It owns the object-id counter, so ids
keep increasing across files and translation units, and the stack of source
units currently collecting entries. PragmaExtractor drives the traversal of a
translation unit against that context.

The clause accumulator handed to associate() is shared by every recursive call
made for the originating directive and mutated in place. State set while one
nested directive is processed is therefore still present when a sibling
directive is visited later in the same walk.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from .clauses import PRAGMA_TYPE, ClauseBucket, resolve_all
from .config import Options
from .directives import (
    NULL_PRAGMA,
    classify,
    is_atomic,
    is_data_environment,
    is_loop_directive,
    is_offload,
    is_ordered,
    is_parallel_region,
    is_target_data,
    is_target_region,
)
from .indexer import UNMAPPED, StatementRef, index_function, induction_variable
from .log import debug, log
from .nodes import ClauseKind, Node, SourceSpan, TranslationUnit, flatten, loop_body
from .report import (
    entry_key,
    loop_fields,
    snippet_lines,
    source_snippet,
    statement_fields,
    write_report,
)
from .stats import Statistics

_ATOMIC_LABELS = {
    ClauseKind.CAPTURE: "atomic capture",
    ClauseKind.WRITE: "atomic write",
    ClauseKind.READ: "atomic read",
    ClauseKind.UPDATE: "atomic update",
}


@dataclass(eq=False)
class SourceUnit:
    """Everything collected for one source file of a translation unit."""

    filename: str
    visited: set = field(default_factory=set)
    function_of: dict = field(default_factory=dict)
    loop_ids: dict = field(default_factory=dict)
    statement_refs: dict = field(default_factory=dict)
    stats: Statistics = field(default_factory=Statistics)
    counted: set = field(default_factory=set)
    entries: dict = field(default_factory=dict)

    def loop_id(self, loop: Node) -> int:
        return self.loop_ids.get(self.function_of.get(loop, ""), {}).get(loop, 0)

    def statement_ref(self, node: Node) -> StatementRef:
        return self.statement_refs.get(node, UNMAPPED)


class RunContext:
    def __init__(self, options: Optional[Options] = None):
        self.options = options or Options()
        self._counter = 0
        self.stack: list[SourceUnit] = []

    def next_object_id(self) -> int:
        oid = self._counter
        self._counter += 1
        return oid

    @property
    def current(self) -> Optional[SourceUnit]:
        return self.stack[-1] if self.stack else None

    def open_unit(self, filename: str) -> SourceUnit:
        """Make `filename`'s unit current, creating it on first sight."""
        top = self.current
        if top is not None and top.filename == filename:
            return top
        for i, unit in enumerate(self.stack):
            if unit.filename == filename:
                self.stack.append(self.stack.pop(i))
                return unit
        # each new file takes one id for its root, as the report ids always have
        self._counter += 1
        unit = SourceUnit(filename)
        self.stack.append(unit)
        debug(f"opened source unit {filename}")
        return unit

    def finalize(self, write: bool = True) -> list[SourceUnit]:
        """Pop every open unit (most recent first) and flush its report."""
        done: list[SourceUnit] = []
        while self.stack:
            unit = self.stack.pop()
            if write:
                write_report(unit.filename, unit.entries)
            done.append(unit)
        return done


def atomic_label(node: Node) -> str:
    if node.clauses:
        return _ATOMIC_LABELS.get(node.clauses[0].kind, "atomic")
    return "atomic"


def _collapse_count(clauses: ClauseBucket) -> Optional[int]:
    if "collapse" not in clauses:
        return None
    try:
        return int(clauses["collapse"])
    except (TypeError, ValueError):
        log(f"[WARN] Unusable collapse count: {clauses.get('collapse')!r}")
        return None


class PragmaExtractor:
    """Walks the functions of a translation unit and fills the source units."""

    def __init__(self, ctx: RunContext, tu: TranslationUnit):
        self.ctx = ctx
        self.tu = tu

    @property
    def unit(self) -> SourceUnit:
        return self.ctx.current

    def _snippet(self, span: Optional[SourceSpan]) -> Optional[list[str]]:
        if not self.ctx.options.code_snippets:
            return None
        return snippet_lines(source_snippet(self.tu.buffer_for(span), span, extend=True))

    def run(self, write: bool = True) -> list[SourceUnit]:
        t0 = time.perf_counter()
        for fn in self.tu.functions:
            self.process_function(fn)
        units = self.ctx.finalize(write=write)
        log(f"[TIME] {self.tu.filename} processed in {time.perf_counter() - t0:.3f}s")
        return units

    def process_function(self, fn: Node):
        if fn.in_system_header or fn.body is None or not fn.has_valid_span():
            return
        unit = self.ctx.open_unit(fn.span.file)
        loops = index_function(
            fn, unit.filename, unit.function_of, unit.loop_ids, unit.statement_refs, self.tu.buffer_for
        )
        debug(f"function {fn.name}: {len(loops)} loops")

        for node in flatten(fn.body):
            if not node.has_valid_span():
                continue
            if node.is_directive():
                self.associate(node, ClauseBucket())
            elif node.is_loop() and node not in self.unit.visited:
                self.emit_plain_loop(node)

    # ------------------------------------------------------------------ core

    def associate(self, node: Node, clauses: ClauseBucket):
        unit = self.unit
        nodes = flatten(node)
        unit.stats.collect(nodes)
        unit.counted.update(nodes)
        debug(f"associate {node!r}: {len(nodes)} nodes")

        if node in unit.visited:
            return
        unit.visited.add(node)

        if is_offload(node):
            clauses["offload"] = True
        if is_parallel_region(node):
            clauses["parallel"] = True

        if is_ordered(node):
            self.emit_statement_directive(node, "ordered", clauses)
        if is_atomic(node):
            self.emit_statement_directive(node, atomic_label(node), clauses)

        clauses[PRAGMA_TYPE] = classify(node.directive, clauses.flag("parallel"))

        # data movement regions do not offload compute
        if is_data_environment(node):
            clauses["offload"] = False

        resolve_all(node.clauses, clauses)

        for n in nodes:
            if n is not node and (is_ordered(n) or is_atomic(n)):
                self.associate(n, clauses)

        propagate = (
            "collapse" in clauses
            or "offload" in clauses
            or "parallel" in clauses
            or is_data_environment(node)
        )
        if propagate:
            self._propagate(node, nodes, clauses)

        if is_loop_directive(node):
            self.emit_loop(node, clauses)

    def _propagate(self, node: Node, nodes: list[Node], clauses: ClauseBucket):
        unit = self.unit
        count = None
        if "collapse" in clauses:
            self.emit_loop(node, clauses)
            count = _collapse_count(clauses)

        for n in nodes:
            if n in unit.visited:
                continue

            if count is not None and count > 1 and n.is_loop():
                count -= 1
                clauses["collapse"] = str(count)
                self.emit_loop(n, clauses)
                if count == 1:
                    break

            if not n.is_directive():
                continue
            if is_loop_directive(n):
                self.associate(n, clauses)
            elif is_target_data(n):
                # stays in the enclosing context
                self.associate(node, clauses)
            elif is_parallel_region(n) or is_target_region(n):
                self.associate(n, clauses)

    # -------------------------------------------------------------- emission

    def emit_loop(self, node: Node, clauses: ClauseBucket) -> Optional[int]:
        """
        Terminal "loop" entry for a loop, or for the loop a directive governs.
        Returns the object id, or None when nothing was emitted (not a loop,
        no usable position, or already reported).
        """
        unit = self.unit
        loop = node.associated_statement() if node.is_directive() else node
        if loop is None or not loop.is_loop():
            return None
        if not loop.has_valid_span() or loop in unit.visited:
            return None
        unit.visited.add(loop)

        snap = clauses.snapshot()
        if node.is_directive():
            snap[PRAGMA_TYPE] = classify(node.directive, snap.flag("parallel"))
        iv = induction_variable(loop)
        if iv:
            debug(f"induction variable {iv}")

        body = loop_body(loop)
        oid = self.ctx.next_object_id()
        unit.entries[entry_key("loop", oid)] = loop_fields(
            unit.filename,
            unit.function_of.get(loop, ""),
            unit.loop_id(loop),
            loop.span.start_line,
            loop.span.start_column,
            snap.get(PRAGMA_TYPE, ""),
            unit.stats.as_fields(),
            snap,
            induction_variable=iv,
            snippet=self._snippet(body.span if body is not None else None),
        )
        return oid

    def emit_plain_loop(self, loop: Node) -> Optional[int]:
        """Entry for a loop no directive claimed."""
        unit = self.unit
        # a body an enclosing loop already folded in is not counted twice
        fresh = [n for n in flatten(loop_body(loop)) if n not in unit.counted]
        unit.stats.collect(fresh)
        unit.counted.update(fresh)
        return self.emit_loop(loop, ClauseBucket({PRAGMA_TYPE: NULL_PRAGMA}))

    def emit_statement_directive(self, node: Node, label: str, clauses: ClauseBucket) -> Optional[int]:
        """
        Auxiliary entry for an ordered/atomic region. Its key is appended to the
        accumulator's dependence list so the enclosing loop entry references it.
        """
        if not node.has_valid_span():
            return None
        unit = self.unit
        ref = unit.statement_ref(node)
        stmt = node.associated_statement()
        oid = self.ctx.next_object_id()
        key = entry_key(label, oid)
        mapped = ref is not UNMAPPED
        unit.entries[key] = statement_fields(
            label,
            ref.filename or unit.filename,
            ref.function or unit.function_of.get(node, ""),
            ref.loop_id if mapped else None,
            ref.statement_id if mapped else None,
            node.span.start_line,
            node.span.start_column,
            snippet=self._snippet(stmt.span if stmt is not None else None),
        )
        clauses.append_dependence(key)
        return oid


def extract(tu: TranslationUnit, ctx: Optional[RunContext] = None, write: bool = True) -> list[SourceUnit]:
    """Process one translation unit and flush its reports."""
    ctx = ctx or RunContext()
    return PragmaExtractor(ctx, tu).run(write=write)
