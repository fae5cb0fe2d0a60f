from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol

from cucumber_tag_expressions import TagExpressionError as _LibraryTagExpressionError
from cucumber_tag_expressions import parse as parse_tag_expression

from step_kernel.kernel.errors import TagExpressionError


class TagPredicate(Protocol):
    def evaluate(self, tags: Iterable[str]) -> bool:
        raise NotImplementedError("TagPredicate is a protocol")


@dataclass(frozen=True, slots=True)
class AlwaysTrue:
    # Predicate for hooks declared without a tag expression.
    def evaluate(self, tags: Iterable[str]) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class TagExpression:
    # Parsed boolean tag expression, e.g. "@smoke and not @wip".
    source: str
    node: Any

    def evaluate(self, tags: Iterable[str]) -> bool:
        return bool(self.node.evaluate(list(tags)))


def compile_tag_expression(expression: str | None) -> TagPredicate:
    # Parse eagerly so configuration errors surface at declaration time, not mid-run.
    if expression is None:
        return AlwaysTrue()
    if not isinstance(expression, str):
        raise TagExpressionError(f"Tag expression must be a string, got {type(expression).__name__}")
    if not expression.strip():
        return AlwaysTrue()
    try:
        node = parse_tag_expression(expression)
    except _LibraryTagExpressionError as exc:
        raise TagExpressionError(f"Malformed tag expression {expression!r}: {exc}") from exc
    return TagExpression(source=expression, node=node)
