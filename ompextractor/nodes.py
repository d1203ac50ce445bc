"""
Typed syntax-tree model consumed by the extractor.

The libclang front-end (frontend.py) builds these nodes from cursors; tests and
other front-ends can build them by hand. Only the node kinds the extractor
inspects are distinguished, everything else is OTHER.
"""

from __future__ import annotations

import bisect
import enum
from dataclasses import dataclass, field
from typing import Optional


class NodeKind(enum.Enum):
    FUNCTION = "function"
    COMPOUND = "compound"
    FOR = "for"
    WHILE = "while"
    DO = "do"
    DIRECTIVE = "directive"
    CAPTURED = "captured"
    DECL_REF = "decl_ref"
    INTEGER_LITERAL = "integer_literal"
    FLOATING_LITERAL = "floating_literal"
    BINARY_OPERATOR = "binary_operator"
    UNARY_OPERATOR = "unary_operator"
    ARRAY_SUBSCRIPT = "array_subscript"
    ARRAY_SECTION = "array_section"
    IMPLICIT_CAST = "implicit_cast"
    OTHER = "other"


LOOP_KINDS = (NodeKind.FOR, NodeKind.WHILE, NodeKind.DO)


class DirectiveKind(enum.Enum):
    # Loop-associated and data directives with a report label.
    DISTRIBUTE = "distribute"
    DISTRIBUTE_PARALLEL_FOR = "distribute parallel for"
    DISTRIBUTE_PARALLEL_FOR_SIMD = "distribute parallel for simd"
    DISTRIBUTE_SIMD = "distribute simd"
    FOR = "for"
    FOR_SIMD = "for simd"
    PARALLEL_FOR = "parallel for"
    PARALLEL_FOR_SIMD = "parallel for simd"
    SIMD = "simd"
    TARGET_PARALLEL_FOR = "target parallel for"
    TARGET_PARALLEL_FOR_SIMD = "target parallel for simd"
    TARGET_SIMD = "target simd"
    TARGET_TEAMS_DISTRIBUTE = "target teams distribute"
    TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR = "target teams distribute parallel for"
    TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD = "target teams distribute parallel for simd"
    TARGET_TEAMS_DISTRIBUTE_SIMD = "target teams distribute simd"
    TASKLOOP = "taskloop"
    TASKLOOP_SIMD = "taskloop simd"
    TEAMS_DISTRIBUTE = "teams distribute"
    TEAMS_DISTRIBUTE_PARALLEL_FOR = "teams distribute parallel for"
    TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD = "teams distribute parallel for simd"
    TEAMS_DISTRIBUTE_SIMD = "teams distribute simd"
    TARGET_DATA = "target data"
    # Regions without a loop label.
    PARALLEL = "parallel"
    TARGET = "target"
    TARGET_PARALLEL = "target parallel"
    TARGET_TEAMS = "target teams"
    TARGET_UPDATE = "target update"
    TARGET_ENTER_DATA = "target enter data"
    TARGET_EXIT_DATA = "target exit data"
    TEAMS = "teams"
    ORDERED = "ordered"
    ATOMIC = "atomic"
    OTHER = "other"


class ClauseKind(enum.Enum):
    IF = "if"
    FINAL = "final"
    COLLAPSE = "collapse"
    ORDERED = "ordered"
    PRIVATE = "private"
    SHARED = "shared"
    FIRSTPRIVATE = "firstprivate"
    LASTPRIVATE = "lastprivate"
    LINEAR = "linear"
    REDUCTION = "reduction"
    MAP = "map"
    CAPTURE = "capture"
    READ = "read"
    WRITE = "write"
    UPDATE = "update"
    OTHER = "other"


class MapType(enum.IntEnum):
    ALLOC = 0
    TO = 1
    FROM = 2
    TOFROM = 3
    DELETE = 4
    RELEASE = 5


@dataclass(frozen=True)
class SourceSpan:
    """1-based lines/columns; the end position is exclusive (libclang extents)."""

    file: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    def is_valid(self) -> bool:
        return bool(self.file) and self.start_line > 0 and self.end_line > 0


class SourceBuffer:
    """Raw text of one source file with line/column to offset conversion."""

    def __init__(self, text: str):
        self.text = text or ""
        self._line_starts = [0]
        for i, ch in enumerate(self.text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def offset(self, line: int, column: int) -> int:
        line = max(1, min(line, len(self._line_starts)))
        return min(len(self.text), self._line_starts[line - 1] + max(0, column - 1))

    def position(self, offset: int) -> tuple[int, int]:
        """Inverse of offset(): (line, column) of a character offset."""
        idx = bisect.bisect_right(self._line_starts, offset) - 1
        return idx + 1, offset - self._line_starts[idx] + 1

    def slice(self, start: int, end: int) -> str:
        return self.text[max(0, start) : max(0, end)]

    def __len__(self) -> int:
        return len(self.text)


@dataclass(eq=False)
class Clause:
    kind: ClauseKind
    operands: list["Node"] = field(default_factory=list)
    implicit: bool = False
    reduction_op: str = ""
    map_type: Optional[MapType] = None
    count: Optional["Node"] = None
    spelling: str = ""


@dataclass(eq=False)
class Node:
    """
    One syntax-tree node. Identity-hashed: two structurally equal nodes are
    still different nodes, which is what the dedup and position maps key on.

    `body` is the loop body, the function body, or a directive's associated
    statement; it is also present in `children`. `inc` is a for loop's
    increment expression (also in `children`).
    """

    kind: NodeKind
    span: Optional[SourceSpan] = None
    children: list["Node"] = field(default_factory=list)
    name: str = ""
    value: str = ""
    op: str = ""
    directive: Optional[DirectiveKind] = None
    clauses: list[Clause] = field(default_factory=list)
    body: Optional["Node"] = None
    inc: Optional["Node"] = None
    in_system_header: bool = False

    def is_loop(self) -> bool:
        return self.kind in LOOP_KINDS

    def is_directive(self) -> bool:
        return self.kind == NodeKind.DIRECTIVE

    def has_valid_span(self) -> bool:
        return self.span is not None and self.span.is_valid()

    def associated_statement(self) -> Optional["Node"]:
        """Innermost captured statement of a directive (wrappers stripped)."""
        st = self.body
        while st is not None and st.kind == NodeKind.CAPTURED:
            st = st.body if st.body is not None else (st.children[0] if st.children else None)
        return st

    def __repr__(self) -> str:
        label = self.directive.value if self.directive else (self.name or self.op or self.value)
        line = self.span.start_line if self.span else "?"
        return f"<Node {self.kind.value} {label!r} @{line}>"


@dataclass
class TranslationUnit:
    filename: str
    functions: list[Node] = field(default_factory=list)
    buffers: dict[str, SourceBuffer] = field(default_factory=dict)

    def buffer_for(self, span: Optional[SourceSpan]) -> Optional[SourceBuffer]:
        if span is None:
            return None
        return self.buffers.get(span.file)


def flatten(node: Optional[Node], out: Optional[list[Node]] = None) -> list[Node]:
    """
    Pre-order list of `node` and its descendants. A CAPTURED wrapper is listed
    and then only its captured statement is descended into.
    """
    if out is None:
        out = []
    if node is None:
        return out
    out.append(node)
    if node.kind == NodeKind.CAPTURED:
        inner = node.body if node.body is not None else (node.children[0] if node.children else None)
        flatten(inner, out)
        return out
    for ch in node.children:
        flatten(ch, out)
    return out


def loop_body(loop: Node) -> Optional[Node]:
    if loop.body is not None:
        return loop.body
    if not loop.children:
        return None
    # do { body } while (cond);
    return loop.children[0] if loop.kind == NodeKind.DO else loop.children[-1]
