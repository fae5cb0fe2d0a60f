from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from cucumber_expressions.parameter_type import ParameterType
from cucumber_expressions.parameter_type_registry import ParameterTypeRegistry

from step_kernel.kernel.errors import ParameterTypeError

Regexp = str | re.Pattern[str] | Sequence[str | re.Pattern[str]]
Transformer = Callable[..., object]


def _collect_groups(*values: str | None) -> tuple[str | None, ...]:
    # Library-side transformer for user types: keep raw groups, conversion happens at bind time.
    return values


@dataclass(frozen=True, slots=True)
class ParameterTypeDef:
    # User-defined placeholder: {name} in a step pattern matches regexp and converts via transformer.
    name: str
    regexp: Regexp
    transformer: Transformer | None = None
    with_context: bool = False
    use_for_snippets: bool = True
    prefer_for_regexp_match: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ParameterTypeError("Parameter type name must be a non-empty string")
        if not _is_regexp(self.regexp):
            raise ParameterTypeError(f"Parameter type {self.name!r} needs a regexp string or pattern")
        if self.transformer is not None and not callable(self.transformer):
            raise ParameterTypeError(f"Parameter type {self.name!r} transformer must be callable")

    def transform(self, context: object, values: Sequence[str | None]) -> object:
        if self.transformer is None:
            # Identity: a single group yields its text, several groups yield the list.
            return values[0] if len(values) == 1 else list(values)
        if self.with_context:
            return self.transformer(context, *values)
        return self.transformer(*values)


@dataclass(slots=True)
class ParameterTypes:
    # Owns the cucumber-expressions registry plus our own table of user definitions.
    library: ParameterTypeRegistry = field(default_factory=ParameterTypeRegistry)
    _definitions: dict[str, ParameterTypeDef] = field(default_factory=dict)

    def define(self, definition: ParameterTypeDef) -> None:
        if definition.name in self._definitions:
            raise ParameterTypeError(f"Parameter type {definition.name!r} is already defined")
        try:
            self.library.define_parameter_type(
                ParameterType(
                    definition.name,
                    _library_regexp(definition.regexp),
                    object,
                    _collect_groups,
                    definition.use_for_snippets,
                    definition.prefer_for_regexp_match,
                )
            )
        except Exception as exc:  # noqa: BLE001 - library raises plain errors for bad names/duplicates
            raise ParameterTypeError(f"Cannot define parameter type {definition.name!r}: {exc}") from exc
        self._definitions[definition.name] = definition

    def lookup(self, name: str | None) -> ParameterTypeDef | None:
        # Built-in types ({int}, {string}, ...) and anonymous regex groups are not in our table.
        if name is None:
            return None
        return self._definitions.get(name)

    def names(self) -> list[str]:
        return list(self._definitions)


def _is_regexp(value: object) -> bool:
    if isinstance(value, (str, re.Pattern)):
        return bool(value.pattern if isinstance(value, re.Pattern) else value)
    if isinstance(value, Sequence):
        return bool(value) and all(_is_regexp(item) for item in value)
    return False


def _library_regexp(value: Regexp) -> str | list[str]:
    if isinstance(value, re.Pattern):
        return value.pattern
    if isinstance(value, str):
        return value
    return [item.pattern if isinstance(item, re.Pattern) else item for item in value]
