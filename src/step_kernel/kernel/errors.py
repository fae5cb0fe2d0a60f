from __future__ import annotations


class StepKernelError(RuntimeError):
    # Base error for registry, binding and resolution failures.
    pass


class MissingDefinitionError(StepKernelError):
    # Raised when no step definition matches the step text.
    pass


class MultipleDefinitionsError(StepKernelError):
    # Raised when more than one step definition matches the step text.
    pass


class TagExpressionError(StepKernelError, ValueError):
    # Raised when a tag expression cannot be parsed (fails at declaration time).
    pass


class ParameterTypeError(StepKernelError, ValueError):
    # Raised for invalid or duplicate parameter type definitions.
    pass


class UndefinedParameterTypeError(ParameterTypeError):
    # Raised when a step pattern references a parameter type nobody defined.
    def __init__(self, type_name: str, pattern: str) -> None:
        super().__init__(f"Undefined parameter type {{{type_name}}} in step pattern: {pattern}")
        self.type_name = type_name
        self.pattern = pattern


class RegistrationError(StepKernelError, TypeError):
    # Raised synchronously at the declaration call site for malformed arguments.
    pass


class RegistryClosedError(RegistrationError):
    # Raised when declarations arrive after the registry was finalized.
    pass


class StepPatternError(RegistrationError):
    # Raised when a step pattern is not a valid cucumber expression.
    pass


class RegistryStateError(StepKernelError):
    # Raised for lifecycle misuse: double finalize, queries before finalize.
    pass


class RegistryBindingError(StepKernelError):
    # Raised when binding a registry into an occupied slot.
    pass


class NoActiveRegistryError(RegistryBindingError):
    # Raised when the slot is empty, i.e. no run is currently loading or executing steps.
    pass


class NotAFeatureError(StepKernelError):
    # Raised when feature tags are queried from a context that carries no pickle.
    pass
