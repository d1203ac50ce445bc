"""Run options and their defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

SUPPORTED_EXT = (".c", ".cpp", ".cc", ".cxx")

# Include source snippets in every entry unless turned off.
DEFAULT_CODE_SNIPPETS = True

# With these, libclang hides the statements OpenMP regions govern; directives
# are read from the pragma lines instead.
OPENMP_FLAG_PREFIXES = ("-fopenmp", "-fiopenmp")

LIBCLANG_ENV = "LIBCLANG_PATH"


@dataclass
class Options:
    code_snippets: bool = DEFAULT_CODE_SNIPPETS
    compile_args: list[str] = field(default_factory=list)
    libclang_path: Optional[str] = None
    verbose: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "Options":
        opts = cls(**overrides)
        if not opts.libclang_path:
            opts.libclang_path = os.environ.get(LIBCLANG_ENV) or None
        return opts

    def parse_args(self) -> list[str]:
        return [a for a in self.compile_args if not a.startswith(OPENMP_FLAG_PREFIXES)]


def is_source_file(path: str) -> bool:
    return path.endswith(SUPPORTED_EXT)
