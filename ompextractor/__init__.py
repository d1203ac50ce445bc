"""
OpenMP pragma/loop extractor.

Walks the syntax tree of a C/C++ translation unit, associates OpenMP directives
with the loops they govern and writes one `<source>.json` report per file.
"""

from .config import Options
from .engine import PragmaExtractor, RunContext, SourceUnit, extract

__all__ = ["Options", "PragmaExtractor", "RunContext", "SourceUnit", "extract"]
