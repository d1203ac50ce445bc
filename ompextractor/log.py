"""Progress output, in the [TAG] message style used throughout the tool."""

from __future__ import annotations

VERBOSE = False


def set_verbose(enabled: bool):
    global VERBOSE
    VERBOSE = bool(enabled)


def log(msg: str):
    print(msg, flush=True)


def debug(msg: str):
    if VERBOSE:
        print(f"[DEBUG] {msg}", flush=True)
