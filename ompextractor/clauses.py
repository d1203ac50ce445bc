"""
Clause resolution into the shared accumulator threaded through the engine.

Bucket values are True (flags), str (collapse count, pragma type) or
list[str] (operand lists). A list bucket resolved twice is replaced, not
extended; only "dependence list" is appended to, by the engine.
"""

from __future__ import annotations

from typing import Optional

from .nodes import Clause, ClauseKind, MapType
from .printer import expr_text

DEPENDENCE_LIST = "dependence list"
PRAGMA_TYPE = "pragma type"

_LIST_CLAUSES = {
    ClauseKind.PRIVATE: "private",
    ClauseKind.SHARED: "shared",
    ClauseKind.FIRSTPRIVATE: "firstprivate",
    ClauseKind.LASTPRIVATE: "lastprivate",
    ClauseKind.LINEAR: "linear",
    ClauseKind.REDUCTION: "reduction",
}

# map buckets are keyed by the numeric map type: map1 = to, map2 = from, map3 = tofrom
MAP_BUCKETS = {
    f"map{int(MapType.TO)}": "map to",
    f"map{int(MapType.FROM)}": "map from",
    f"map{int(MapType.TOFROM)}": "map tofrom",
}


class ClauseBucket(dict):
    """Clause accumulator: bucket name -> flag, scalar string or operand list."""

    def flag(self, name: str) -> bool:
        return self.get(name) is True

    def append_dependence(self, ref: str) -> None:
        self.setdefault(DEPENDENCE_LIST, []).append(ref)

    def snapshot(self) -> "ClauseBucket":
        out = ClauseBucket()
        for k, v in self.items():
            out[k] = list(v) if isinstance(v, list) else v
        return out


def reduction_prefix(op: str) -> str:
    """`operator+` -> `+:`; named reductions (max, min, user ids) are kept as is."""
    op = op or ""
    if op.startswith("operator") and len(op) > 8:
        op = op[8:]
    return f"{op}:"


def _operand_list(clause: Clause, prefix: str = "") -> list[str]:
    return [prefix + expr_text(e) for e in clause.operands]


def map_bucket(map_type: Optional[MapType]) -> str:
    mt = MapType.TOFROM if map_type is None else map_type
    return f"map{int(mt)}"


def resolve_clause(clause: Clause, clauses: ClauseBucket) -> None:
    """Fold one clause into `clauses` (implicit clauses are ignored)."""
    if clause.implicit:
        return
    k = clause.kind

    if k in (ClauseKind.IF, ClauseKind.FINAL):
        clauses["multiversioned"] = True
        return
    if k == ClauseKind.COLLAPSE:
        clauses["collapse"] = expr_text(clause.count)
        return
    if k == ClauseKind.ORDERED:
        clauses["ordered"] = True
        return
    if k == ClauseKind.REDUCTION:
        clauses["reduction"] = _operand_list(clause, reduction_prefix(clause.reduction_op))
        return
    if k in _LIST_CLAUSES:
        clauses[_LIST_CLAUSES[k]] = _operand_list(clause)
        return
    if k == ClauseKind.MAP:
        clauses[map_bucket(clause.map_type)] = _operand_list(clause)


def resolve_all(clause_list: list[Clause], clauses: ClauseBucket) -> ClauseBucket:
    for cl in clause_list:
        resolve_clause(cl, clauses)
    return clauses
