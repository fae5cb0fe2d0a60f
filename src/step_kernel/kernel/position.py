from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Position:
    # Source location of a declaration, used in diagnostics only.
    source: str
    line: int

    def __str__(self) -> str:
        return f"{self.source}:{self.line}"


def position_of(implementation: object) -> Position | None:
    # Best effort: decorated functions, partials and callable objects all resolve to their code object.
    target = implementation
    while isinstance(target, functools.partial):
        target = target.func
    target = inspect.unwrap(target) if callable(target) else target
    code = getattr(target, "__code__", None)
    if code is None:
        call = getattr(type(target), "__call__", None)
        code = getattr(call, "__code__", None)
    if code is None:
        return None
    return Position(source=code.co_filename, line=code.co_firstlineno)
