"""
Loop identities and relative statement positions inside loop bodies.

Loops of a function are numbered 1..K by ascending start line. Two loops that
start on the same line share one slot and the later one in pre-order keeps it;
the other gets no id.

Statement positions are ranked against checkpoints taken at every ';' of the
loop body's raw text (plus one after the last character when the body does
not end in ';'). A statement's id is the 1-based rank of the first checkpoint
at or after its end; statements past the last checkpoint get the count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from .nodes import Node, NodeKind, SourceBuffer, SourceSpan, flatten, loop_body
from .printer import expr_text
from .report import source_snippet


@dataclass(frozen=True)
class StatementRef:
    filename: str = ""
    function: str = ""
    loop_id: int = 0
    statement_id: int = 0


UNMAPPED = StatementRef()


def induction_variable(loop: Node) -> str:
    """Variable stepped by a for loop's increment (`i++`, `--i`, `i += 2`)."""
    if loop.kind != NodeKind.FOR or loop.inc is None:
        return ""
    inc = loop.inc
    if inc.kind == NodeKind.UNARY_OPERATOR:
        return expr_text(inc)
    if inc.kind == NodeKind.BINARY_OPERATOR and inc.children:
        return expr_text(inc.children[0])
    return ""


def checkpoints(text: str, start_line: int, start_column: int) -> list[tuple[int, int]]:
    out: list[tuple[int, int]] = []
    line, column = start_line, start_column
    for ch in text:
        if ch == ";":
            out.append((line, column))
        column += 1
        if ch == "\n":
            line += 1
            column = 1
    if text and not text.rstrip().endswith(";"):
        out.append((line, column))
    return out


def statement_rank(marks: list[tuple[int, int]], span: SourceSpan) -> int:
    for j, (line, column) in enumerate(marks, start=1):
        if line > span.end_line:
            return j
        if line == span.end_line and column >= span.end_column:
            return j
    return len(marks)


def number_loops(fn_body: Optional[Node]) -> list[Node]:
    """Loops of a function body in id order (index 0 has id 1)."""
    by_line: dict[int, Node] = {}
    for n in flatten(fn_body):
        if n.is_loop() and n.has_valid_span():
            by_line[n.span.start_line] = n
    return [by_line[line] for line in sorted(by_line)]


def map_loop_statements(
    loop: Node,
    buffer: Optional[SourceBuffer],
) -> dict[Node, int]:
    """Relative statement id of every descendant of the loop's body."""
    body = loop_body(loop)
    if body is None or not body.has_valid_span():
        return {}
    text = source_snippet(buffer, body.span, extend=True)
    marks = checkpoints(text, body.span.start_line, body.span.start_column)
    out: dict[Node, int] = {}
    for n in flatten(body):
        if not n.has_valid_span():
            continue
        out[n] = statement_rank(marks, n.span)
    return out


def index_function(
    fn: Node,
    filename: str,
    function_of: dict[Node, str],
    loop_ids: dict[str, dict[Node, int]],
    statement_refs: dict[Node, StatementRef],
    buffer_for: Callable[[Optional[SourceSpan]], Optional[SourceBuffer]],
) -> list[Node]:
    """
    Fill the unit maps for one function: node -> function name, loop -> id,
    statement -> StatementRef. Loops are processed in id order, so a statement
    nested in several loops ends up referring to the innermost one.
    """
    name = fn.name
    body = fn.body
    for n in flatten(body):
        function_of[n] = name

    ordered = number_loops(body)
    ids = loop_ids.setdefault(name, {})
    for loop_id, loop in enumerate(ordered, start=1):
        ids[loop] = loop_id
        body_node = loop_body(loop)
        positions = map_loop_statements(loop, buffer_for(body_node.span if body_node else None))
        for n, stmt_id in positions.items():
            statement_refs[n] = StatementRef(filename, function_of.get(n, ""), loop_id, stmt_id)
    return ordered
