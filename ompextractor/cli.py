from __future__ import annotations

import argparse
import os
import time
from typing import Optional

from clang import cindex

from .config import Options, is_source_file
from .engine import PragmaExtractor, RunContext
from .frontend import FrontendError, configure_libclang, load_translation_unit
from .log import log, set_verbose


def parse_file(ctx: RunContext, path: str, index=None) -> int:
    """Extract one file; returns the number of report entries written."""
    log(f"[INFO] Parsing file: {path}")
    tu = load_translation_unit(path, ctx.options, index=index)
    units = PragmaExtractor(ctx, tu).run()
    return sum(len(u.entries) for u in units)


def source_files(path: str) -> list[str]:
    if os.path.isfile(path):
        return [path] if is_source_file(path) else []
    out: list[str] = []
    for root, _, files in os.walk(path):
        for f in sorted(files):
            if is_source_file(f):
                out.append(os.path.join(root, f))
    return out


def parse_codebase(path: str, options: Optional[Options] = None) -> int:
    """
    Extract every C/C++ file under `path` (or `path` itself).
    One run context spans all files, so object ids never repeat within a run.
    A file that fails to parse is reported and skipped.
    """
    ctx = RunContext(options or Options())
    configure_libclang(ctx.options.libclang_path)
    try:
        index = cindex.Index.create()
    except cindex.LibclangError as e:
        raise FrontendError(f"libclang is not available: {e}") from e
    total = 0
    for file_path in source_files(path):
        try:
            total += parse_file(ctx, file_path, index=index)
        except FrontendError as e:
            log(f"[WARN] Failed to parse {file_path}: {e}")
    return total


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(description="Extract OpenMP loop and pragma metadata into JSON reports")
    parser.add_argument("--path", required=True, help="C/C++ codebase root directory OR a single source file")
    parser.add_argument("--std", default=None, help="Language standard, e.g. c11, c++17")
    parser.add_argument("--no-snippet", action="store_true", help="Do not include code snippets in the reports")
    parser.add_argument("--libclang", default=None, help="Path to the libclang shared library")
    parser.add_argument("--verbose", action="store_true", help="Print debug output")
    parser.add_argument("compile_args", nargs="*", help="Extra compiler arguments (after --)")
    args = parser.parse_args(argv)

    set_verbose(args.verbose)
    compile_args = list(args.compile_args)
    if args.std:
        compile_args.insert(0, f"-std={args.std}")
    options = Options.from_env(
        code_snippets=not args.no_snippet,
        compile_args=compile_args,
        libclang_path=args.libclang,
        verbose=args.verbose,
    )

    all_t0 = time.perf_counter()
    try:
        total = parse_codebase(args.path, options)
    except FrontendError as e:
        log(f"[ERROR] {e}")
        return 1
    log(f"[INFO] {total} entries written")
    log(f"[TIME] Total execution time: {time.perf_counter() - all_t0:.3f}s")
    return 0
