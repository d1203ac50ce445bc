"""
libclang front-end: parses a C/C++ file and converts the cursors the extractor
cares about into nodes.Node trees.

With -fopenmp, libclang hides the statement an OpenMP directive governs inside
a CapturedStmt whose visible children are only the captured variables. The
file is therefore parsed without OpenMP, so every loop is an ordinary cursor,
and the directives are read from the `#pragma omp` lines of the source text
and spliced into the tree in front of the statement each one governs.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from clang import cindex

from .config import Options
from .log import debug, log
from .nodes import Clause, Node, NodeKind, SourceBuffer, SourceSpan, TranslationUnit
from .nodes import DirectiveKind as DK
from .pragma import normalize_pragma, parse_pragma


class FrontendError(RuntimeError):
    pass


def _ck(name: str):
    """CursorKind compatibility across clang bindings."""
    return getattr(cindex.CursorKind, name, None)


def _kind_map(pairs) -> dict:
    out = {}
    for names, value in pairs:
        for name in names:
            k = _ck(name)
            if k is not None:
                out[k] = value
    return out


_NODE_CURSORS = _kind_map(
    [
        (("COMPOUND_STMT",), NodeKind.COMPOUND),
        (("FOR_STMT",), NodeKind.FOR),
        (("WHILE_STMT",), NodeKind.WHILE),
        (("DO_STMT",), NodeKind.DO),
        (("DECL_REF_EXPR",), NodeKind.DECL_REF),
        (("INTEGER_LITERAL",), NodeKind.INTEGER_LITERAL),
        (("FLOATING_LITERAL",), NodeKind.FLOATING_LITERAL),
        (("BINARY_OPERATOR", "COMPOUND_ASSIGNMENT_OPERATOR"), NodeKind.BINARY_OPERATOR),
        (("UNARY_OPERATOR",), NodeKind.UNARY_OPERATOR),
        (("ARRAY_SUBSCRIPT_EXPR",), NodeKind.ARRAY_SUBSCRIPT),
        (("UNEXPOSED_EXPR",), NodeKind.IMPLICIT_CAST),
    ]
)

_FUNCTION_CURSORS = {
    k
    for k in (
        _ck("FUNCTION_DECL"),
        _ck("CXX_METHOD"),
        _ck("CONSTRUCTOR"),
        _ck("DESTRUCTOR"),
        _ck("CONVERSION_FUNCTION"),
        _ck("FUNCTION_TEMPLATE"),
    )
    if k is not None
}

# cindex.BinaryOperator member names -> spelling (libclang >= 17)
_BINOP_SPELLING = {
    "Mul": "*", "Div": "/", "Rem": "%", "Add": "+", "Sub": "-", "Shl": "<<", "Shr": ">>",
    "Cmp": "<=>", "LT": "<", "GT": ">", "LE": "<=", "GE": ">=", "EQ": "==", "NE": "!=",
    "And": "&", "Xor": "^", "Or": "|", "LAnd": "&&", "LOr": "||", "Assign": "=",
    "MulAssign": "*=", "DivAssign": "/=", "RemAssign": "%=", "AddAssign": "+=", "SubAssign": "-=",
    "ShlAssign": "<<=", "ShrAssign": ">>=", "AndAssign": "&=", "XorAssign": "^=", "OrAssign": "|=",
    "Comma": ",",
}

_PRAGMA_RE = re.compile(r"^[ \t]*#[ \t]*pragma[ \t]+omp\b", re.MULTILINE)
_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.DOTALL)

# Directives that never govern a statement.
_STANDALONE_KINDS = {DK.TARGET_UPDATE, DK.TARGET_ENTER_DATA, DK.TARGET_EXIT_DATA}
_STANDALONE_NAMES = {
    "barrier",
    "flush",
    "taskwait",
    "taskyield",
    "cancel",
    "cancellation",
    "depobj",
    "scan",
    "threadprivate",
    "declare",
    "requires",
    "allocate",
    "error",
    "nothing",
}


def configure_libclang(path: Optional[str]):
    """Point the bindings at a specific libclang shared library."""
    if not path or cindex.Config.loaded:
        return
    try:
        cindex.Config.set_library_file(path)
    except Exception as e:
        raise FrontendError(f"Failed to configure libclang at {path}: {e}") from e


def _cursor_kind(cursor):
    try:
        return cursor.kind
    except ValueError:
        # cursor kind newer than the Python bindings
        return None


def _span(cursor) -> Optional[SourceSpan]:
    try:
        start, end = cursor.extent.start, cursor.extent.end
    except (AttributeError, ValueError):
        return None
    if start.file is None:
        return None
    return SourceSpan(start.file.name, start.line, start.column, end.line, end.column)


def _offset(cursor, which: str = "start") -> int:
    loc = getattr(cursor.extent, which)
    return loc.offset


def mask_comments(text: str) -> str:
    """Blank out comments, keeping every offset and line break in place."""
    return _COMMENT_RE.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def logical_line_end(text: str, start: int) -> int:
    """End offset of the line holding `start`, following backslash continuations."""
    end = start
    n = len(text)
    while end < n:
        nl = text.find("\n", end)
        if nl < 0:
            return n
        if text[start:nl].rstrip("\r").endswith("\\"):
            end = nl + 1
            continue
        return nl
    return n


def is_standalone(kind: DK, clauses: list[Clause], text: str) -> bool:
    if kind in _STANDALONE_KINDS:
        return True
    if kind == DK.ORDERED:
        # ordered depend(...) / doacross(...) marks a point, not a region
        return any(c.spelling.startswith(("depend", "doacross")) for c in clauses)
    if kind == DK.OTHER:
        words = normalize_pragma(text).split()
        return bool(words) and words[0] in _STANDALONE_NAMES
    return False


def pragma_sites(buffer: SourceBuffer, span: SourceSpan, masked: Optional[str] = None) -> list[tuple[int, int, Node, bool]]:
    """
    `(start, end, directive node, standalone)` for every `#pragma omp` line
    inside `span`. Offsets index the buffer; the node spans the pragma line(s)
    and has no statement attached yet.
    """
    text = mask_comments(buffer.text) if masked is None else masked
    lo = buffer.offset(span.start_line, span.start_column)
    hi = buffer.offset(span.end_line, span.end_column)
    out = []
    for m in _PRAGMA_RE.finditer(text, lo, hi):
        start = text.index("#", m.start())
        end = logical_line_end(text, start)
        raw = text[start:end]
        kind, clauses = parse_pragma(raw)
        sl, sc = buffer.position(start)
        el, ec = buffer.position(end)
        node = Node(
            NodeKind.DIRECTIVE,
            span=SourceSpan(span.file, sl, sc, el, ec),
            directive=kind,
            clauses=clauses,
        )
        debug(f"pragma {kind.value} @{sl}: {normalize_pragma(raw)}")
        out.append((start, end, node, is_standalone(kind, clauses, raw)))
    return out


def _range_of(buffer: SourceBuffer, filename: str) -> Callable[[Node], Optional[tuple[int, int]]]:
    def _range(n: Node) -> Optional[tuple[int, int]]:
        if not n.has_valid_span() or n.span.file != filename:
            return None
        return (
            buffer.offset(n.span.start_line, n.span.start_column),
            buffer.offset(n.span.end_line, n.span.end_column),
        )

    return _range


def attach_directives(body: Node, sites, buffer: SourceBuffer, filename: str) -> None:
    """
    Splice directive nodes into `body`. Inside the innermost node enclosing
    the pragma, a directive takes the place of the first child that starts
    after the pragma line and governs it through a CAPTURED wrapper; a
    standalone directive is inserted before that child instead. Later pragmas
    are placed first, so stacked pragmas nest with the first one outermost.
    """
    _range = _range_of(buffer, filename)
    for start, end, directive, standalone in sorted(sites, key=lambda s: s[0], reverse=True):
        parent = body
        descended = True
        while descended:
            descended = False
            for ch in parent.children:
                r = _range(ch)
                if r is not None and r[0] <= start and end <= r[1]:
                    parent = ch
                    descended = True
                    break

        idx = len(parent.children)
        for i, ch in enumerate(parent.children):
            r = _range(ch)
            if r is not None and r[0] >= end:
                idx = i
                break

        if standalone or idx == len(parent.children):
            parent.children.insert(idx, directive)
            continue

        stmt = parent.children[idx]
        captured = Node(NodeKind.CAPTURED, span=stmt.span, body=stmt, children=[stmt])
        directive.body = captured
        directive.children = [captured]
        parent.children[idx] = directive
        if parent.body is stmt:
            parent.body = directive


class CursorConverter:
    """Converts libclang cursors to Node trees, one translation unit at a time."""

    def __init__(self, tu: TranslationUnit):
        self.tu = tu
        self._masked: dict[str, str] = {}

    def buffer(self, filename: str) -> Optional[SourceBuffer]:
        if not filename:
            return None
        buf = self.tu.buffers.get(filename)
        if buf is None:
            try:
                with open(filename, "r", encoding="utf-8", errors="ignore") as f:
                    buf = SourceBuffer(f.read())
            except OSError as e:
                log(f"[WARN] Cannot read source {filename}: {e}")
                buf = SourceBuffer("")
            self.tu.buffers[filename] = buf
        return buf

    def masked(self, filename: str) -> str:
        text = self._masked.get(filename)
        if text is None:
            buf = self.buffer(filename)
            text = mask_comments(buf.text if buf is not None else "")
            self._masked[filename] = text
        return text

    def pragma_text(self, span: Optional[SourceSpan]) -> str:
        """The directive's logical source line (continuation lines joined)."""
        buf = self.buffer(span.file) if span else None
        if buf is None:
            return ""
        start = buf.offset(span.start_line, span.start_column)
        return buf.slice(start, logical_line_end(buf.text, start))

    def function(self, cursor) -> Optional[Node]:
        body = None
        for ch in cursor.get_children():
            if _cursor_kind(ch) == cindex.CursorKind.COMPOUND_STMT:
                body = ch
                break
        if body is None:
            return None
        span = _span(cursor)
        loc = cursor.location
        in_system = bool(getattr(loc, "is_in_system_header", False))
        body_node = self.convert(body)
        if body_node.has_valid_span():
            file = body_node.span.file
            buf = self.buffer(file)
            sites = pragma_sites(buf, body_node.span, self.masked(file))
            attach_directives(body_node, sites, buf, file)
        return Node(
            NodeKind.FUNCTION,
            span=span,
            name=cursor.spelling,
            body=body_node,
            children=[body_node],
            in_system_header=in_system,
        )

    def convert(self, cursor) -> Node:
        kind = _NODE_CURSORS.get(_cursor_kind(cursor), NodeKind.OTHER)
        children = [self.convert(ch) for ch in cursor.get_children()]
        node = Node(kind, span=_span(cursor), children=children)

        if kind == NodeKind.DECL_REF:
            node.name = cursor.spelling
        elif kind in (NodeKind.INTEGER_LITERAL, NodeKind.FLOATING_LITERAL):
            node.value = _first_token(cursor)
        elif kind == NodeKind.BINARY_OPERATOR:
            node.op = _binary_operator(cursor)
        elif kind == NodeKind.UNARY_OPERATOR:
            node.op = _unary_operator(cursor)
        elif kind == NodeKind.FOR:
            self._for_parts(cursor, node)
        elif kind == NodeKind.WHILE and children:
            node.body = children[-1]
        elif kind == NodeKind.DO and children:
            node.body = children[0]
        return node

    def _for_parts(self, cursor, node: Node):
        """Find the increment and body among a for loop's (possibly sparse) children."""
        semis: list[int] = []
        rparen = None
        depth = 0
        for tok in cursor.get_tokens():
            sp = tok.spelling
            if sp == "(":
                depth += 1
            elif sp == ")":
                depth -= 1
                if depth == 0:
                    rparen = tok.extent.start.offset
                    break
            elif sp == ";" and depth == 1:
                semis.append(tok.extent.start.offset)
        kids = list(cursor.get_children())
        if not kids:
            return
        if rparen is None or len(semis) < 2:
            node.body = node.children[-1]
            return
        for ch, n in zip(kids, node.children):
            off = _offset(ch)
            if semis[1] < off < rparen:
                node.inc = n
            elif off > rparen:
                node.body = n
        if node.body is None:
            node.body = node.children[-1]


def _first_token(cursor) -> str:
    for tok in cursor.get_tokens():
        return tok.spelling
    return ""


def _unary_operator(cursor) -> str:
    # prefix or postfix: the operator is the only punctuation of a simple operand
    for tok in cursor.get_tokens():
        if tok.kind == cindex.TokenKind.PUNCTUATION:
            return tok.spelling
    return _first_token(cursor)


def _binary_operator(cursor) -> str:
    op = getattr(cursor, "binary_operator", None)
    name = getattr(op, "name", None)
    if name in _BINOP_SPELLING:
        return _BINOP_SPELLING[name]
    # Older bindings: the operator is the first token after the left operand.
    kids = list(cursor.get_children())
    if not kids:
        return ""
    lhs_end = _offset(kids[0], "end")
    for tok in cursor.get_tokens():
        if tok.extent.start.offset >= lhs_end and tok.kind == cindex.TokenKind.PUNCTUATION:
            return tok.spelling
    return ""


def collect_functions(root, converter: CursorConverter) -> list[Node]:
    """Every function definition with a body, in source order."""
    out: list[Node] = []

    def _walk(cur):
        k = _cursor_kind(cur)
        if k in _FUNCTION_CURSORS and cur.is_definition():
            fn = converter.function(cur)
            if fn is not None:
                out.append(fn)
            return
        for ch in cur.get_children():
            _walk(ch)

    _walk(root)
    return out


def load_translation_unit(path: str, options: Optional[Options] = None, index=None) -> TranslationUnit:
    """Parse `path` with libclang and return its functions as Node trees."""
    options = options or Options()
    configure_libclang(options.libclang_path)
    try:
        index = index or cindex.Index.create()
        ctu = index.parse(
            path,
            args=options.parse_args(),
            options=cindex.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD,
        )
    except (cindex.TranslationUnitLoadError, cindex.LibclangError) as e:
        raise FrontendError(f"Failed to parse {path}: {e}") from e

    for diag in ctu.diagnostics:
        if diag.severity >= cindex.Diagnostic.Error:
            log(f"[WARN] {diag.location.file}:{diag.location.line}: {diag.spelling}")

    tu = TranslationUnit(filename=ctu.spelling or path)
    converter = CursorConverter(tu)
    tu.functions = collect_functions(ctu.cursor, converter)
    debug(f"{tu.filename}: {len(tu.functions)} function definitions")
    return tu
