"""Process-wide default options for the depth optimizer."""

from __future__ import annotations

import copy

from .model import SolveOptions

_SOLVE_OPTIONS = SolveOptions()


def get_default_solve_options() -> SolveOptions:
    return copy.deepcopy(_SOLVE_OPTIONS)


def set_default_solve_options(options: SolveOptions) -> None:
    global _SOLVE_OPTIONS
    _SOLVE_OPTIONS = copy.deepcopy(options)
