from __future__ import annotations

import inspect
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal, TypeVar

from step_kernel.kernel.definitions import (
    CASE_HOOK_KEYWORDS,
    DEFAULT_HOOK_ORDER,
    RUN_HOOK_KEYWORDS,
    STEP_HOOK_KEYWORDS,
    CaseHook,
    CaseHookBody,
    CaseHookKeyword,
    CaseHookParameter,
    PreliminaryCaseHook,
    PreliminaryStepDefinition,
    RunHook,
    RunHookBody,
    RunHookKeyword,
    StepBody,
    StepDefinition,
    StepHook,
    StepHookBody,
    StepHookKeyword,
    StepHookParameter,
)
from step_kernel.kernel.errors import (
    MissingDefinitionError,
    MultipleDefinitionsError,
    RegistrationError,
    RegistryClosedError,
    RegistryStateError,
)
from step_kernel.kernel.expression import ArgumentExtractor, StepPattern, compile_pattern
from step_kernel.kernel.ids import IdGenerator
from step_kernel.kernel.parameter_types import ParameterTypeDef, ParameterTypes, Regexp, Transformer
from step_kernel.kernel.pickle import StepArgument
from step_kernel.kernel.position import Position, position_of
from step_kernel.kernel.tags import compile_tag_expression

H = TypeVar("H", CaseHook, StepHook, RunHook)

RegistryState = Literal["open", "active"]


@dataclass(slots=True)
class Registry:
    # Declarations accumulate while "open"; finalize() compiles them and switches to "active",
    # after which only resolution queries and run_* entry points are served.
    source_positions: bool = True
    parameter_types: ParameterTypes = field(default_factory=ParameterTypes)
    _preliminary_step_definitions: list[PreliminaryStepDefinition] = field(default_factory=list)
    _preliminary_case_hooks: list[PreliminaryCaseHook] = field(default_factory=list)
    _step_definitions: list[StepDefinition] = field(default_factory=list)
    _case_hooks: list[CaseHook] = field(default_factory=list)
    _step_hooks: list[StepHook] = field(default_factory=list)
    _run_hooks: list[RunHook] = field(default_factory=list)
    _state: RegistryState = "open"

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def step_definitions(self) -> tuple[StepDefinition, ...]:
        return tuple(self._step_definitions)

    @property
    def case_hooks(self) -> tuple[CaseHook, ...]:
        return tuple(self._case_hooks)

    @property
    def step_hooks(self) -> tuple[StepHook, ...]:
        return tuple(self._step_hooks)

    @property
    def run_hooks(self) -> tuple[RunHook, ...]:
        return tuple(self._run_hooks)

    def finalize(self, new_id: IdGenerator) -> None:
        # Compile everything first so a bad pattern leaves the registry untouched and still open.
        if self._state != "open":
            raise RegistryStateError("Registry is already finalized")
        step_definitions = [
            StepDefinition(
                id=new_id(),
                expression=compile_pattern(preliminary.pattern, self.parameter_types),
                implementation=preliminary.implementation,
                position=preliminary.position,
            )
            for preliminary in self._preliminary_step_definitions
        ]
        case_hooks = [
            CaseHook(
                id=new_id(),
                predicate=hook.predicate,
                implementation=hook.implementation,
                keyword=hook.keyword,
                order=hook.order,
                position=hook.position,
                tags=hook.tags,
                name=hook.name,
            )
            for hook in self._preliminary_case_hooks
        ]
        self._step_definitions = step_definitions
        self._case_hooks = case_hooks
        self._state = "active"

    # Declarations.

    def define_step(self, pattern: StepPattern, implementation: StepBody) -> None:
        self._ensure_open("step definition")
        if not isinstance(pattern, (str, re.Pattern)):
            raise RegistrationError(f"Unexpected argument for step definition: {pattern!r}")
        _require_callable(implementation, "step definition")
        self._preliminary_step_definitions.append(
            PreliminaryStepDefinition(
                pattern=pattern,
                implementation=implementation,
                position=self._position(implementation),
            )
        )

    def define_parameter_type(
        self,
        name: str,
        regexp: Regexp,
        transformer: Transformer | None = None,
        *,
        with_context: bool = False,
        use_for_snippets: bool = True,
        prefer_for_regexp_match: bool = False,
    ) -> ParameterTypeDef:
        self._ensure_open("parameter type")
        definition = ParameterTypeDef(
            name=name,
            regexp=regexp,
            transformer=transformer,
            with_context=with_context,
            use_for_snippets=use_for_snippets,
            prefer_for_regexp_match=prefer_for_regexp_match,
        )
        self.parameter_types.define(definition)
        return definition

    def define_case_hook(
        self,
        keyword: CaseHookKeyword,
        implementation: CaseHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self._ensure_open(f"{keyword} hook")
        if keyword not in CASE_HOOK_KEYWORDS:
            raise RegistrationError(f"Unknown case hook keyword: {keyword!r}")
        _require_callable(implementation, f"{keyword} hook")
        _require_name(name, keyword)
        self._preliminary_case_hooks.append(
            PreliminaryCaseHook(
                predicate=compile_tag_expression(tags),
                implementation=implementation,
                keyword=keyword,
                order=_resolve_order(order, keyword),
                position=self._position(implementation),
                tags=tags,
                name=name,
            )
        )

    def define_before(
        self,
        implementation: CaseHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self.define_case_hook("Before", implementation, tags=tags, order=order, name=name)

    def define_after(
        self,
        implementation: CaseHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self.define_case_hook("After", implementation, tags=tags, order=order, name=name)

    def define_step_hook(
        self,
        keyword: StepHookKeyword,
        implementation: StepHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self._ensure_open(f"{keyword} hook")
        if keyword not in STEP_HOOK_KEYWORDS:
            raise RegistrationError(f"Unknown step hook keyword: {keyword!r}")
        _require_callable(implementation, f"{keyword} hook")
        _require_name(name, keyword)
        self._step_hooks.append(
            StepHook(
                predicate=compile_tag_expression(tags),
                implementation=implementation,
                keyword=keyword,
                order=_resolve_order(order, keyword),
                position=self._position(implementation),
                tags=tags,
                name=name,
            )
        )

    def define_before_step(
        self,
        implementation: StepHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self.define_step_hook("BeforeStep", implementation, tags=tags, order=order, name=name)

    def define_after_step(
        self,
        implementation: StepHookBody,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ) -> None:
        self.define_step_hook("AfterStep", implementation, tags=tags, order=order, name=name)

    def define_run_hook(self, keyword: RunHookKeyword, implementation: RunHookBody, *, order: int | None = None) -> None:
        self._ensure_open(f"{keyword} hook")
        if keyword not in RUN_HOOK_KEYWORDS:
            raise RegistrationError(f"Unknown run hook keyword: {keyword!r}")
        _require_callable(implementation, f"{keyword} hook")
        self._run_hooks.append(
            RunHook(
                implementation=implementation,
                keyword=keyword,
                order=_resolve_order(order, keyword),
                position=self._position(implementation),
            )
        )

    def define_before_all(self, implementation: RunHookBody, *, order: int | None = None) -> None:
        self.define_run_hook("BeforeAll", implementation, order=order)

    def define_after_all(self, implementation: RunHookBody, *, order: int | None = None) -> None:
        self.define_run_hook("AfterAll", implementation, order=order)

    # Step resolution.

    def get_matching_step_definitions(self, text: str) -> list[StepDefinition]:
        return [definition for definition, _ in self._matches(text)]

    def resolve_step_definition(self, text: str) -> StepDefinition:
        definition, _ = self._resolve(text)
        return definition

    def run_step_definition(
        self,
        context: object,
        text: str,
        dry_run: bool,
        argument: StepArgument | None = None,
    ) -> object:
        # Arguments are bound even in dry runs so transformer and arity problems still surface.
        definition, extractors = self._resolve(text)
        args = [extractor.bind(context) for extractor in extractors]
        if argument is not None:
            args.append(argument)
        if dry_run:
            _check_arity(definition.implementation, context, args)
            return None
        return definition.implementation(context, *args)

    # Hook resolution: Before kinds ascend by order, After kinds are the same sequence reversed.

    def resolve_case_hooks(self, keyword: CaseHookKeyword, tags: Sequence[str]) -> list[CaseHook]:
        self._ensure_active()
        if keyword not in CASE_HOOK_KEYWORDS:
            raise ValueError(f"Unknown case hook keyword: {keyword!r}")
        return _ordered(hook for hook in self._case_hooks if hook.keyword == keyword and hook.predicate.evaluate(tags))

    def resolve_before_hooks(self, tags: Sequence[str]) -> list[CaseHook]:
        return self.resolve_case_hooks("Before", tags)

    def resolve_after_hooks(self, tags: Sequence[str]) -> list[CaseHook]:
        return _reversed(self.resolve_case_hooks("After", tags))

    def run_case_hook(self, context: object, hook: CaseHook, parameter: CaseHookParameter) -> object:
        return hook.implementation(context, parameter)

    def resolve_step_hooks(self, keyword: StepHookKeyword, tags: Sequence[str]) -> list[StepHook]:
        self._ensure_active()
        if keyword not in STEP_HOOK_KEYWORDS:
            raise ValueError(f"Unknown step hook keyword: {keyword!r}")
        return _ordered(hook for hook in self._step_hooks if hook.keyword == keyword and hook.predicate.evaluate(tags))

    def resolve_before_step_hooks(self, tags: Sequence[str]) -> list[StepHook]:
        return self.resolve_step_hooks("BeforeStep", tags)

    def resolve_after_step_hooks(self, tags: Sequence[str]) -> list[StepHook]:
        return _reversed(self.resolve_step_hooks("AfterStep", tags))

    def run_step_hook(self, context: object, hook: StepHook, parameter: StepHookParameter) -> object:
        return hook.implementation(context, parameter)

    def resolve_run_hooks(self, keyword: RunHookKeyword) -> list[RunHook]:
        self._ensure_active()
        if keyword not in RUN_HOOK_KEYWORDS:
            raise ValueError(f"Unknown run hook keyword: {keyword!r}")
        return _ordered(hook for hook in self._run_hooks if hook.keyword == keyword)

    def resolve_before_all_hooks(self) -> list[RunHook]:
        return self.resolve_run_hooks("BeforeAll")

    def resolve_after_all_hooks(self) -> list[RunHook]:
        return _reversed(self.resolve_run_hooks("AfterAll"))

    def run_run_hook(self, context: object, hook: RunHook) -> object:
        return hook.implementation(context)

    # Internals.

    def _matches(self, text: str) -> list[tuple[StepDefinition, list[ArgumentExtractor]]]:
        self._ensure_active()
        found: list[tuple[StepDefinition, list[ArgumentExtractor]]] = []
        for definition in self._step_definitions:
            # An empty argument list is still a match.
            extractors = definition.expression.match(text)
            if extractors is not None:
                found.append((definition, extractors))
        return found

    def _resolve(self, text: str) -> tuple[StepDefinition, list[ArgumentExtractor]]:
        matches = self._matches(text)
        if not matches:
            raise MissingDefinitionError(f"Step implementation missing for: {text}")
        if len(matches) > 1:
            raise MultipleDefinitionsError(
                f"Multiple matching step definitions for: {text}\n"
                + "\n".join(_describe(definition) for definition, _ in matches)
            )
        return matches[0]

    def _ensure_open(self, what: str) -> None:
        if self._state != "open":
            raise RegistryClosedError(f"Cannot declare a {what} after the registry was finalized")

    def _ensure_active(self) -> None:
        if self._state != "active":
            raise RegistryStateError("Registry must be finalized before resolving steps or hooks")

    def _position(self, implementation: Callable[..., object]) -> Position | None:
        return position_of(implementation) if self.source_positions else None


def _describe(definition: StepDefinition) -> str:
    rendered = definition.expression.render()
    if definition.position is not None:
        return f" {rendered} - {definition.position}"
    return f" {rendered}"


def _ordered(hooks: Iterable[H]) -> list[H]:
    # sorted() is stable, so equal orders keep declaration order.
    return sorted(hooks, key=lambda hook: hook.order)


def _reversed(hooks: list[H]) -> list[H]:
    return hooks[::-1]


def _require_callable(implementation: object, what: str) -> None:
    if not callable(implementation):
        raise RegistrationError(f"Unexpected argument for {what}: expected a callable, got {implementation!r}")


def _require_name(name: object, keyword: str) -> None:
    if name is not None and not isinstance(name, str):
        raise RegistrationError(f"{keyword} hook name must be a string, got {name!r}")


def _resolve_order(order: object, keyword: str) -> int:
    if order is None:
        return DEFAULT_HOOK_ORDER
    if isinstance(order, bool) or not isinstance(order, int):
        raise RegistrationError(f"{keyword} hook order must be an integer, got {order!r}")
    return order


def _check_arity(implementation: Callable[..., object], context: object, args: list[object]) -> None:
    # Raises TypeError when the body cannot accept the bound arguments.
    try:
        signature = inspect.signature(implementation)
    except (TypeError, ValueError):
        # Some builtins expose no signature; they are checked when actually called.
        return
    signature.bind(context, *args)
