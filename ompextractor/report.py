"""
Report emission: source snippets, entry field layout and the per-file JSON
document written next to each analyzed source file.
"""

from __future__ import annotations

import json
import os
from typing import Optional

from .clauses import DEPENDENCE_LIST, MAP_BUCKETS, ClauseBucket
from .log import log
from .nodes import SourceBuffer, SourceSpan

REPORT_SUFFIX = ".json"

FALSE = "false"
TRUE = "true"

# accumulator bucket -> report field, in report order
_LIST_FIELDS = (
    ("shared", "shared"),
    ("private", "private"),
    ("firstprivate", "firstprivate"),
    ("lastprivate", "lastprivate"),
    ("linear", "linear"),
    ("reduction", "reduction"),
) + tuple(MAP_BUCKETS.items()) + ((DEPENDENCE_LIST, DEPENDENCE_LIST),)


def entry_key(label: str, object_id: int) -> str:
    return f"{label} - object id : {object_id}"


def source_snippet(buffer: Optional[SourceBuffer], span: Optional[SourceSpan], extend: bool = True) -> str:
    """
    Raw source text for a span, trimmed. With `extend`, the text runs on to the
    first ';' or '}' at or after the span's last character (inclusive), so an
    expression statement picks up its terminating semicolon.
    """
    if buffer is None or span is None or not span.is_valid():
        return ""
    start = buffer.offset(span.start_line, span.start_column)
    end = buffer.offset(span.end_line, span.end_column)
    if end < start:
        return ""
    if extend:
        i = max(start, end - 1)
        n = len(buffer)
        while i < n and buffer.text[i] not in ";}":
            i += 1
        end = min(n, i + 1)
    return buffer.slice(start, end).strip()


def snippet_lines(text: str) -> list[str]:
    """List form of a snippet: one string per source line."""
    if not text:
        return []
    return text.splitlines()


def _flag(clauses: ClauseBucket, name: str) -> str:
    return TRUE if clauses.flag(name) else FALSE


def loop_fields(
    filename: str,
    function: str,
    loop_id: int,
    line: int,
    column: int,
    pragma_type: str,
    counters: dict[str, str],
    clauses: ClauseBucket,
    induction_variable: str = "",
    snippet: Optional[list[str]] = None,
) -> dict:
    fields = {
        "file": filename,
        "function": function,
        "loop id": str(loop_id),
        "loop line": str(line),
        "loop column": str(column),
        "pragma type": pragma_type,
    }
    fields.update(counters)
    fields["ordered"] = _flag(clauses, "ordered")
    fields["offload"] = _flag(clauses, "offload")
    fields["multiversioned"] = _flag(clauses, "multiversioned")
    if "collapse" in clauses:
        fields["collapse"] = str(clauses["collapse"])
    if induction_variable:
        fields["induction variable"] = induction_variable
    for bucket, name in _LIST_FIELDS:
        if bucket in clauses:
            fields[name] = list(clauses[bucket])
    if snippet is not None:
        fields["code snippet"] = snippet
    return fields


def statement_fields(
    label: str,
    filename: str,
    function: str,
    loop_id: Optional[int],
    statement_id: Optional[int],
    line: int,
    column: int,
    snippet: Optional[list[str]] = None,
) -> dict:
    """Auxiliary entry; loop and statement ids are left out when the region is in no loop."""
    fields = {
        "pragma type": label,
        "file": filename,
        "function": function,
    }
    if loop_id is not None:
        fields["loop id"] = str(loop_id)
    if statement_id is not None:
        fields["statement id"] = str(statement_id)
    fields["snippet line"] = str(line)
    fields["snippet column"] = str(column)
    if snippet is not None:
        fields["code snippet"] = snippet
    return fields


def render_report(entries: dict[str, dict]) -> str:
    return json.dumps(entries, indent=2, ensure_ascii=False)


def report_path(filename: str) -> str:
    return filename + REPORT_SUFFIX


def write_report(filename: str, entries: dict[str, dict]) -> bool:
    """Write `<filename>.json`. Failures are logged and reported as False."""
    if not filename:
        return False
    path = report_path(filename)
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_report(entries))
    except OSError as e:
        log(f"[WARN] Failed to write report for {filename}: {e}")
        return False
    log(f"[INFO] Pragma info for file {filename} written to {path} ({len(entries)} entries)")
    return True
