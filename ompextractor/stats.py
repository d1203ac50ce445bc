"""
Per-file operator/literal/reference counters.

Counters are running totals for the whole translation unit: each loop entry
samples them at emission time, nothing is reset per loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .nodes import Node, NodeKind

_OP_COUNTER = {
    "+": "add",
    "-": "sub",
    "*": "mul",
    "/": "div",
    "<": "cmp",
    ">": "cmp",
    "<=": "cmp",
    ">=": "cmp",
    "==": "cmp",
    "!=": "cmp",
    "<=>": "cmp",
    "&": "bit",
    "|": "bit",
    "^": "bit",
    "&&": "log",
    "||": "log",
    "=": "assign",
    "*=": "comb",
    "/=": "comb",
    "%=": "comb",
    "+=": "comb",
    "-=": "comb",
    "<<=": "comb",
    ">>=": "comb",
    "&=": "comb",
    "^=": "comb",
    "|=": "comb",
}

# (report field, attribute) in report order
COUNTER_FIELDS = (
    ("Addcount", "add"),
    ("Subcount", "sub"),
    ("Mulcount", "mul"),
    ("Divcount", "div"),
    ("Cmpcount", "cmp"),
    ("Bitcount", "bit"),
    ("Logcount", "log"),
    ("Assigncount", "assign"),
    ("Combcount", "comb"),
    ("Constcount", "const"),
    ("DediDeclRefcount", "distinct_refs"),
    ("TotalDeclRefcount", "total_refs"),
)


@dataclass
class Statistics:
    add: int = 0
    sub: int = 0
    mul: int = 0
    div: int = 0
    cmp: int = 0
    bit: int = 0
    log: int = 0
    assign: int = 0
    comb: int = 0
    const: int = 0
    distinct_refs: int = 0
    total_refs: int = 0
    seen_names: set[str] = field(default_factory=set)

    def collect(self, nodes: list[Node]) -> None:
        for n in nodes:
            k = n.kind
            if k in (NodeKind.INTEGER_LITERAL, NodeKind.FLOATING_LITERAL):
                self.const += 1
            elif k == NodeKind.BINARY_OPERATOR:
                attr = _OP_COUNTER.get(n.op)
                if attr:
                    setattr(self, attr, getattr(self, attr) + 1)
            elif k == NodeKind.DECL_REF:
                self.total_refs += 1
                if n.name not in self.seen_names:
                    self.seen_names.add(n.name)
                    self.distinct_refs += 1

    def as_fields(self) -> dict[str, str]:
        return {name: str(getattr(self, attr)) for name, attr in COUNTER_FIELDS}
