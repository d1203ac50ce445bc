"""
Directive classification.

Every DirectiveKind has an entry in _LABELS (None for regions that never label
a loop). The table is checked against the enum at import time so a new kind
cannot fall through unclassified.
"""

from __future__ import annotations

from typing import Optional

from .nodes import DirectiveKind as DK
from .nodes import Node

NULL_PRAGMA = "NULL"

_LABELS: dict[DK, Optional[str]] = {
    DK.DISTRIBUTE: "distribute",
    DK.DISTRIBUTE_PARALLEL_FOR: "distribute parallel for",
    DK.DISTRIBUTE_PARALLEL_FOR_SIMD: "distribute parallel for simd",
    DK.DISTRIBUTE_SIMD: "distribute simd",
    DK.FOR: "for",
    DK.FOR_SIMD: "for simd",
    DK.PARALLEL_FOR: "parallel for",
    DK.PARALLEL_FOR_SIMD: "parallel for simd",
    DK.SIMD: "simd",
    DK.TARGET_PARALLEL_FOR: "target parallel for",
    DK.TARGET_PARALLEL_FOR_SIMD: "target parallel for simd",
    DK.TARGET_SIMD: "target simd",
    DK.TARGET_TEAMS_DISTRIBUTE: "target teams distribute",
    DK.TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR: "target teams distribute parallel for",
    DK.TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD: "target teams distribute parallel for simd",
    DK.TARGET_TEAMS_DISTRIBUTE_SIMD: "target teams distribute simd",
    DK.TASKLOOP: "taskloop",
    DK.TASKLOOP_SIMD: "taskloop simd",
    DK.TEAMS_DISTRIBUTE: "teams distribute",
    DK.TEAMS_DISTRIBUTE_PARALLEL_FOR: "teams distribute parallel for",
    DK.TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD: "teams distribute parallel for simd",
    DK.TEAMS_DISTRIBUTE_SIMD: "teams distribute simd",
    DK.TARGET_DATA: "target data",
    DK.PARALLEL: None,
    DK.TARGET: None,
    DK.TARGET_PARALLEL: None,
    DK.TARGET_TEAMS: None,
    DK.TARGET_UPDATE: None,
    DK.TARGET_ENTER_DATA: None,
    DK.TARGET_EXIT_DATA: None,
    DK.TEAMS: None,
    DK.ORDERED: None,
    DK.ATOMIC: None,
    DK.OTHER: None,
}

# Only these two depend on whether an enclosing parallel region was seen.
_PARALLEL_CONTEXT_LABELS = {
    DK.FOR: "parallel for",
    DK.FOR_SIMD: "parallel for simd",
}

OFFLOAD_KINDS = frozenset(
    {
        DK.TARGET_PARALLEL_FOR,
        DK.TARGET_PARALLEL_FOR_SIMD,
        DK.TARGET_TEAMS_DISTRIBUTE,
        DK.TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR,
        DK.TARGET_TEAMS_DISTRIBUTE_PARALLEL_FOR_SIMD,
        DK.TARGET_TEAMS_DISTRIBUTE_SIMD,
        DK.TARGET_PARALLEL,
        DK.TARGET_TEAMS,
        DK.TARGET_UPDATE,
        DK.TARGET,
    }
)

DATA_ENVIRONMENT_KINDS = frozenset({DK.TARGET_DATA, DK.TARGET_ENTER_DATA, DK.TARGET_EXIT_DATA})

LOOP_DIRECTIVE_KINDS = frozenset(k for k, label in _LABELS.items() if label is not None) - {DK.TARGET_DATA}

_missing = set(DK) - set(_LABELS)
if _missing:
    raise RuntimeError(f"Unclassified directive kinds: {sorted(k.name for k in _missing)}")


def classify(kind: Optional[DK], inside_parallel: bool = False) -> str:
    """Canonical label for a directive kind ("" for regions without a label)."""
    if kind is None:
        return ""
    if inside_parallel and kind in _PARALLEL_CONTEXT_LABELS:
        return _PARALLEL_CONTEXT_LABELS[kind]
    return _LABELS[kind] or ""


def _kind(node_or_kind) -> Optional[DK]:
    if isinstance(node_or_kind, Node):
        return node_or_kind.directive
    return node_or_kind


def is_offload(node_or_kind) -> bool:
    return _kind(node_or_kind) in OFFLOAD_KINDS


def is_data_environment(node_or_kind) -> bool:
    return _kind(node_or_kind) in DATA_ENVIRONMENT_KINDS


def is_loop_directive(node_or_kind) -> bool:
    return _kind(node_or_kind) in LOOP_DIRECTIVE_KINDS


def is_parallel_region(node_or_kind) -> bool:
    return _kind(node_or_kind) == DK.PARALLEL


def is_target_region(node_or_kind) -> bool:
    return _kind(node_or_kind) == DK.TARGET


def is_target_data(node_or_kind) -> bool:
    return _kind(node_or_kind) == DK.TARGET_DATA


def is_ordered(node_or_kind) -> bool:
    return _kind(node_or_kind) == DK.ORDERED


def is_atomic(node_or_kind) -> bool:
    return _kind(node_or_kind) == DK.ATOMIC
