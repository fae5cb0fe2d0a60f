from .binding import RegistryBinding, default_binding, with_registry
from .data_table import DataTable
from .definitions import (
    DEFAULT_HOOK_ORDER,
    CaseHook,
    CaseHookParameter,
    RunHook,
    StepDefinition,
    StepHook,
    StepHookParameter,
)
from .errors import (
    MissingDefinitionError,
    MultipleDefinitionsError,
    NoActiveRegistryError,
    NotAFeatureError,
    ParameterTypeError,
    RegistrationError,
    RegistryBindingError,
    RegistryClosedError,
    RegistryStateError,
    StepKernelError,
    StepPatternError,
    TagExpressionError,
    UndefinedParameterTypeError,
)
from .expression import compile_pattern
from .ids import incrementing_ids, uuid_ids
from .pickle import Pickle, PickleStep
from .position import Position
from .registry import Registry
from .tags import compile_tag_expression

# Kernel exports: registry, its records and the error taxonomy.
__all__ = [
    "RegistryBinding",
    "default_binding",
    "with_registry",
    "DataTable",
    "DEFAULT_HOOK_ORDER",
    "CaseHook",
    "CaseHookParameter",
    "RunHook",
    "StepDefinition",
    "StepHook",
    "StepHookParameter",
    "MissingDefinitionError",
    "MultipleDefinitionsError",
    "NoActiveRegistryError",
    "NotAFeatureError",
    "ParameterTypeError",
    "RegistrationError",
    "RegistryBindingError",
    "RegistryClosedError",
    "RegistryStateError",
    "StepKernelError",
    "StepPatternError",
    "TagExpressionError",
    "UndefinedParameterTypeError",
    "compile_pattern",
    "incrementing_ids",
    "uuid_ids",
    "Pickle",
    "PickleStep",
    "Position",
    "Registry",
    "compile_tag_expression",
]
