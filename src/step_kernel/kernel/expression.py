from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from cucumber_expressions.errors import UndefinedParameterTypeError as _LibraryUndefinedParameterTypeError
from cucumber_expressions.expression import CucumberExpression
from cucumber_expressions.regular_expression import RegularExpression

from step_kernel.kernel.errors import RegistrationError, StepPatternError, UndefinedParameterTypeError
from step_kernel.kernel.parameter_types import ParameterTypeDef, ParameterTypes

StepPattern = str | re.Pattern[str]

_GLOBAL_FLAGS = re.compile(r"^\(\?[aiLmsux]+\)")


@dataclass(frozen=True, slots=True)
class ArgumentExtractor:
    # One matched group; conversion is deferred until a context is available.
    argument: Any
    definition: ParameterTypeDef | None

    def bind(self, context: object) -> object:
        if self.definition is None:
            return self.argument.value
        raw = self.argument.value
        values: Sequence[str | None] = raw if isinstance(raw, tuple) else (raw,)
        return self.definition.transform(context, values)


class StepExpression(Protocol):
    # Uniform matcher contract for both pattern kinds.
    source: StepPattern

    def match(self, text: str) -> list[ArgumentExtractor] | None:
        raise NotImplementedError("StepExpression is a protocol")

    def render(self) -> str:
        raise NotImplementedError("StepExpression is a protocol")


@dataclass(frozen=True, slots=True)
class CucumberStepExpression:
    # Placeholder-style pattern such as "I have {int} cukes".
    source: str
    compiled: CucumberExpression
    parameter_types: ParameterTypes

    def match(self, text: str) -> list[ArgumentExtractor] | None:
        return _extract(self.compiled.match(text), self.parameter_types)

    def render(self) -> str:
        return self.source


@dataclass(frozen=True, slots=True)
class RegexStepExpression:
    # Regular-expression pattern; its capture groups are the argument source.
    source: re.Pattern[str]
    compiled: RegularExpression
    parameter_types: ParameterTypes

    def match(self, text: str) -> list[ArgumentExtractor] | None:
        return _extract(self.compiled.match(text), self.parameter_types)

    def render(self) -> str:
        return f"/{self.source.pattern}/"


def compile_pattern(pattern: StepPattern, parameter_types: ParameterTypes) -> StepExpression:
    # Variant is chosen once, from the declaration type.
    if isinstance(pattern, str):
        try:
            compiled = CucumberExpression(pattern, parameter_types.library)
        except _LibraryUndefinedParameterTypeError as exc:
            raise UndefinedParameterTypeError(_undefined_name(exc), pattern) from exc
        except Exception as exc:  # noqa: BLE001 - surface syntax errors under our taxonomy
            raise StepPatternError(f"Invalid step pattern {pattern!r}: {exc}") from exc
        return CucumberStepExpression(source=pattern, compiled=compiled, parameter_types=parameter_types)
    if isinstance(pattern, re.Pattern):
        compiled_regex = RegularExpression(_unanchored(pattern), parameter_types.library)
        return RegexStepExpression(source=pattern, compiled=compiled_regex, parameter_types=parameter_types)
    raise RegistrationError(f"Step pattern must be a string or compiled regex, got {type(pattern).__name__}")


def _extract(arguments: list[Any] | None, parameter_types: ParameterTypes) -> list[ArgumentExtractor] | None:
    if arguments is None:
        return None
    return [
        ArgumentExtractor(argument=argument, definition=parameter_types.lookup(argument.parameter_type.name))
        for argument in arguments
    ]


def _undefined_name(exc: Exception) -> str:
    # The library keeps the offending name on the error; fall back to its message.
    name = getattr(exc, "undefined_parameter_type_name", None)
    if isinstance(name, str) and name:
        return name
    match = re.search(r"Undefined parameter type '([^']*)'", str(exc))
    return match.group(1) if match else "?"


def _unanchored(pattern: re.Pattern[str]) -> re.Pattern[str]:
    # The library matches from the start of the text; a lazy prefix lets the pattern match anywhere.
    # Leading global flags are already in pattern.flags and may not appear mid-pattern.
    body = _GLOBAL_FLAGS.sub("", pattern.pattern)
    return re.compile(r"[\s\S]*?(?:" + body + ")", pattern.flags)
