"""
OpenMP pragma text parsing.

libclang exposes directive cursors but none of their clauses, so the
front-end reads the pragma line from the source buffer and parses it here into
a DirectiveKind plus Clause objects whose operands are expression nodes.
Every clause parsed from source text is user-written, so none is implicit.
"""

from __future__ import annotations

import re
from typing import Optional

from .nodes import Clause, ClauseKind, DirectiveKind, MapType, Node, NodeKind

_DIRECTIVE_NAMES = {k.value: k for k in DirectiveKind if k is not DirectiveKind.OTHER}
_MAX_DIRECTIVE_WORDS = max(len(name.split()) for name in _DIRECTIVE_NAMES)

_CLAUSE_KINDS = {k.value: k for k in ClauseKind if k is not ClauseKind.OTHER}

_MAP_TYPES = {
    "alloc": MapType.ALLOC,
    "to": MapType.TO,
    "from": MapType.FROM,
    "tofrom": MapType.TOFROM,
    "delete": MapType.DELETE,
    "release": MapType.RELEASE,
}

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_RE = re.compile(r"^(0[xX][0-9a-fA-F]+|\d+)[uUlL]*$")
_FLOAT_RE = re.compile(r"^(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?[fFlL]?$")


def normalize_pragma(text: str) -> str:
    """Join continuation lines, drop `#pragma omp` and squeeze whitespace."""
    s = (text or "").replace("\\\r\n", " ").replace("\\\n", " ")
    s = re.sub(r"\s+", " ", s).strip()
    s = re.sub(r"^#\s*pragma\s+", "", s)
    s = re.sub(r"^omp\b\s*", "", s)
    return s


def _read_group(s: str, i: int) -> tuple[str, int]:
    """Contents of the balanced (...) group opening at s[i]."""
    depth = 0
    start = i + 1
    n = len(s)
    while i < n:
        ch = s[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return s[start:i], i + 1
        i += 1
    return s[start:], n


def tokenize(s: str) -> list[tuple[str, Optional[str]]]:
    """`a b(c) d` -> [("a", None), ("b", "c"), ("d", None)]."""
    out: list[tuple[str, Optional[str]]] = []
    i = 0
    n = len(s)
    while i < n:
        if s[i].isspace() or s[i] == ",":
            i += 1
            continue
        m = _IDENT_RE.match(s, i)
        if not m:
            i += 1
            continue
        word = m.group(0)
        i = m.end()
        while i < n and s[i].isspace():
            i += 1
        arg = None
        if i < n and s[i] == "(":
            arg, i = _read_group(s, i)
        out.append((word, arg))
    return out


def split_top_level(s: str, sep: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    curr: list[str] = []
    for ch in s or "":
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        if ch == sep and depth == 0:
            parts.append("".join(curr).strip())
            curr = []
            continue
        curr.append(ch)
    tail = "".join(curr).strip()
    if tail or parts:
        parts.append(tail)
    return parts


def _empty() -> Node:
    return Node(NodeKind.OTHER)


def parse_expr(text: str) -> Node:
    """
    Expression node for a clause operand: identifiers, integer literals,
    subscripts, array sections and prefix unary operators. Anything else is an
    OTHER node (printed as an empty string).
    """
    s = (text or "").strip()
    if not s:
        return _empty()
    if s[0] in "-+*&!~" and not s.startswith(("++", "--")):
        return Node(NodeKind.UNARY_OPERATOR, op=s[0], children=[parse_expr(s[1:])])
    if _INT_RE.match(s):
        return Node(NodeKind.INTEGER_LITERAL, value=s)
    if _FLOAT_RE.match(s):
        return Node(NodeKind.FLOATING_LITERAL, value=s)
    if s[0] == "(":
        inner, end = _read_group(s, 0)
        if end == len(s):
            return Node(NodeKind.OTHER, children=[parse_expr(inner)])
        return _empty()

    m = _IDENT_RE.match(s)
    if not m:
        return _empty()
    node = Node(NodeKind.DECL_REF, name=m.group(0))
    i = m.end()
    n = len(s)
    while i < n:
        while i < n and s[i].isspace():
            i += 1
        if i >= n:
            break
        if s[i] != "[":
            return _empty()
        inner, i = _read_bracket(s, i)
        parts = split_top_level(inner, ":")
        if len(parts) >= 2:
            node = Node(
                NodeKind.ARRAY_SECTION,
                children=[node, parse_expr(parts[0]), parse_expr(parts[1])],
            )
        else:
            node = Node(NodeKind.ARRAY_SUBSCRIPT, children=[node, parse_expr(inner)])
    return node


def _read_bracket(s: str, i: int) -> tuple[str, int]:
    depth = 0
    start = i + 1
    n = len(s)
    while i < n:
        if s[i] == "[":
            depth += 1
        elif s[i] == "]":
            depth -= 1
            if depth == 0:
                return s[start:i], i + 1
        i += 1
    return s[start:], n


def _operands(text: str) -> list[Node]:
    return [parse_expr(p) for p in split_top_level(text or "", ",") if p]


def _strip_modifier(arg: str, modifiers: tuple[str, ...]) -> tuple[str, str]:
    """`conditional: a, b` -> ("conditional", "a, b") when the prefix is a known modifier."""
    parts = split_top_level(arg, ":")
    if len(parts) >= 2 and parts[0].strip() in modifiers:
        return parts[0].strip(), ":".join(parts[1:])
    return "", arg


def parse_clause(word: str, arg: Optional[str]) -> Clause:
    kind = _CLAUSE_KINDS.get(word, ClauseKind.OTHER)
    spelling = word if arg is None else f"{word}({arg})"
    clause = Clause(kind, spelling=spelling)

    if kind == ClauseKind.COLLAPSE:
        clause.count = parse_expr(arg or "")
    elif kind in (ClauseKind.PRIVATE, ClauseKind.SHARED, ClauseKind.FIRSTPRIVATE):
        clause.operands = _operands(arg)
    elif kind == ClauseKind.LASTPRIVATE:
        _, rest = _strip_modifier(arg or "", ("conditional",))
        clause.operands = _operands(rest)
    elif kind == ClauseKind.LINEAR:
        # linear(list[:step]) or linear(val(list)[:step])
        head = split_top_level(arg or "", ":")[0] if arg else ""
        m = re.match(r"^\s*(val|ref|uval)\s*\((.*)\)\s*$", head)
        clause.operands = _operands(m.group(2) if m else head)
    elif kind == ClauseKind.REDUCTION:
        parts = split_top_level(arg or "", ":")
        if len(parts) >= 2:
            # reduction([modifier,] identifier : list)
            clause.reduction_op = split_top_level(parts[0], ",")[-1].strip()
            clause.operands = _operands(":".join(parts[1:]))
        else:
            clause.operands = _operands(arg)
    elif kind == ClauseKind.MAP:
        parts = split_top_level(arg or "", ":")
        if len(parts) >= 2:
            words = re.findall(r"[A-Za-z_]+", parts[0])
            types = [w for w in words if w in _MAP_TYPES]
            clause.map_type = _MAP_TYPES[types[-1]] if types else None
            clause.operands = _operands(":".join(parts[1:]))
        else:
            clause.operands = _operands(arg)
    return clause


def parse_directive_name(tokens: list[tuple[str, Optional[str]]]) -> tuple[DirectiveKind, int]:
    """Longest leading run of bare words that names a directive."""
    words: list[str] = []
    for word, arg in tokens[:_MAX_DIRECTIVE_WORDS]:
        words.append(word)
        if arg is not None:
            break
    for n in range(len(words), 0, -1):
        name = " ".join(words[:n])
        if name in _DIRECTIVE_NAMES:
            # the last word may carry an argument only for clause-like names
            if tokens[n - 1][1] is not None:
                continue
            return _DIRECTIVE_NAMES[name], n
    return DirectiveKind.OTHER, 1 if tokens else 0


def parse_pragma(text: str) -> tuple[DirectiveKind, list[Clause]]:
    """`#pragma omp parallel for private(i) reduction(+:s)` -> (PARALLEL_FOR, [...])."""
    tokens = tokenize(normalize_pragma(text))
    if not tokens:
        return DirectiveKind.OTHER, []
    kind, used = parse_directive_name(tokens)
    return kind, [parse_clause(word, arg) for word, arg in tokens[used:]]


def parse_clauses(text: str) -> list[Clause]:
    return parse_pragma(text)[1]
