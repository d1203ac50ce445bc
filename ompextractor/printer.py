"""Render the narrow set of clause operand expressions back to display strings."""

from __future__ import annotations

from typing import Optional

from .nodes import Node, NodeKind

_PASSTHROUGH = (NodeKind.UNARY_OPERATOR, NodeKind.IMPLICIT_CAST)


def expr_text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    k = node.kind
    if k == NodeKind.DECL_REF:
        return node.name
    if k == NodeKind.INTEGER_LITERAL:
        return _integer_text(node.value)
    if k == NodeKind.ARRAY_SECTION:
        # base[lower:length]; missing parts print empty
        base, lower, length = (node.children + [None, None, None])[:3]
        return f"{expr_text(base)}[{expr_text(lower)}:{expr_text(length)}]"
    if k == NodeKind.ARRAY_SUBSCRIPT:
        base, idx = (node.children + [None, None])[:2]
        return f"{expr_text(base)}[{expr_text(idx)}]"
    if k in _PASSTHROUGH:
        return expr_text(node.children[0]) if node.children else ""
    return ""


def _integer_text(value: str) -> str:
    """Integer literal spelling as a decimal value (0x10 -> 16, 10u -> 10)."""
    s = (value or "").strip().lower().rstrip("ul")
    try:
        return str(int(s, 0))
    except ValueError:
        pass
    try:
        # 010 style octal
        return str(int(s, 8))
    except ValueError:
        return value or ""
