from __future__ import annotations

import re
from collections.abc import Callable
from typing import TypeVar

from step_kernel.kernel.binding import RegistryBinding, default_binding
from step_kernel.kernel.definitions import (
    CaseHookBody,
    CaseHookKeyword,
    RunHookBody,
    RunHookKeyword,
    StepHookBody,
    StepHookKeyword,
)
from step_kernel.kernel.errors import NotAFeatureError, RegistrationError
from step_kernel.kernel.expression import StepPattern
from step_kernel.kernel.parameter_types import ParameterTypeDef, Regexp, Transformer
from step_kernel.kernel.pickle import StepArgument
from step_kernel.kernel.tags import compile_tag_expression

F = TypeVar("F", bound=Callable[..., object])

_NOT_A_FEATURE = (
    "Expected the context to carry a pickle, but it didn't. This is likely because "
    "does_feature_match() was called outside of a scenario. Combine it with is_feature() "
    "when the same code runs both inside and outside of scenarios"
)


class StepDsl:
    # Decorator surface for step modules; every declaration goes to the registry currently bound.
    def __init__(self, binding: RegistryBinding) -> None:
        self._binding = binding

    def step(self, pattern: StepPattern) -> Callable[[F], F]:
        if not isinstance(pattern, (str, re.Pattern)):
            raise RegistrationError(f"Unexpected argument for step definition: {pattern!r}")

        def _decorate(fn: F) -> F:
            self._binding.current().define_step(pattern, fn)
            return fn

        return _decorate

    # Gherkin keywords are interchangeable for matching purposes.
    given = step
    when = step
    then = step

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
        return self._binding.current().define_parameter_type(
            name,
            regexp,
            transformer,
            with_context=with_context,
            use_for_snippets=use_for_snippets,
            prefer_for_regexp_match=prefer_for_regexp_match,
        )

    def parameter_type(
        self,
        name: str,
        regexp: Regexp,
        transformer: Transformer | None = None,
        *,
        with_context: bool = False,
        use_for_snippets: bool = True,
        prefer_for_regexp_match: bool = False,
    ):
        # Direct call when a transformer is given, otherwise a decorator over the transformer.
        if transformer is not None:
            return self.define_parameter_type(
                name,
                regexp,
                transformer,
                with_context=with_context,
                use_for_snippets=use_for_snippets,
                prefer_for_regexp_match=prefer_for_regexp_match,
            )

        def _decorate(fn: F) -> F:
            self.define_parameter_type(
                name,
                regexp,
                fn,
                with_context=with_context,
                use_for_snippets=use_for_snippets,
                prefer_for_regexp_match=prefer_for_regexp_match,
            )
            return fn

        return _decorate

    def before(
        self,
        fn: CaseHookBody | None = None,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ):
        return self._case_hook("Before", fn, tags=tags, order=order, name=name)

    def after(
        self,
        fn: CaseHookBody | None = None,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ):
        return self._case_hook("After", fn, tags=tags, order=order, name=name)

    def before_step(
        self,
        fn: StepHookBody | None = None,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ):
        return self._step_hook("BeforeStep", fn, tags=tags, order=order, name=name)

    def after_step(
        self,
        fn: StepHookBody | None = None,
        *,
        tags: str | None = None,
        order: int | None = None,
        name: str | None = None,
    ):
        return self._step_hook("AfterStep", fn, tags=tags, order=order, name=name)

    def before_all(self, fn: RunHookBody | None = None, *, order: int | None = None):
        return self._run_hook("BeforeAll", fn, order=order)

    def after_all(self, fn: RunHookBody | None = None, *, order: int | None = None):
        return self._run_hook("AfterAll", fn, order=order)

    def run_step(self, context: object, text: str, argument: StepArgument | None = None) -> object:
        # Invoke another step from inside a step body; async bodies return an awaitable to await.
        return self._binding.current().run_step_definition(context, text, False, argument)

    def _case_hook(self, keyword: CaseHookKeyword, fn: object, **options: object):
        def _register(body: CaseHookBody) -> CaseHookBody:
            self._binding.current().define_case_hook(keyword, body, **options)  # type: ignore[arg-type]
            return body

        return _bare_or_factory(keyword, fn, _register)

    def _step_hook(self, keyword: StepHookKeyword, fn: object, **options: object):
        def _register(body: StepHookBody) -> StepHookBody:
            self._binding.current().define_step_hook(keyword, body, **options)  # type: ignore[arg-type]
            return body

        return _bare_or_factory(keyword, fn, _register)

    def _run_hook(self, keyword: RunHookKeyword, fn: object, *, order: int | None):
        def _register(body: RunHookBody) -> RunHookBody:
            self._binding.current().define_run_hook(keyword, body, order=order)
            return body

        return _bare_or_factory(keyword, fn, _register)


def _bare_or_factory(keyword: str, fn: object, register: Callable[[F], F]):
    # Supports both @before and @before(tags=...); anything else is a malformed call.
    if fn is None:
        return register
    if callable(fn):
        return register(fn)  # type: ignore[arg-type]
    raise RegistrationError(f"Unexpected argument for {keyword} hook: {fn!r}")


def is_feature(context: object) -> bool:
    return getattr(context, "pickle", None) is not None


def does_feature_match(context: object, expression: str) -> bool:
    pickle = getattr(context, "pickle", None)
    if pickle is None:
        raise NotAFeatureError(_NOT_A_FEATURE)
    return compile_tag_expression(expression).evaluate(pickle.tags)


dsl = StepDsl(default_binding)

step = dsl.step
given = dsl.given
when = dsl.when
then = dsl.then
define_parameter_type = dsl.define_parameter_type
parameter_type = dsl.parameter_type
before = dsl.before
after = dsl.after
before_step = dsl.before_step
after_step = dsl.after_step
before_all = dsl.before_all
after_all = dsl.after_all
run_step = dsl.run_step
