from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from step_kernel.kernel.errors import TagExpressionError
from step_kernel.kernel.tags import compile_tag_expression

# Config models map the YAML run config to typed structures.


class LoggingConfig(BaseModel):
    # Where the runner's structured log messages go.
    model_config = ConfigDict(extra="forbid")
    sink: Literal["none", "stdout", "jsonl"] = "none"
    path: str | None = None
    # Messages below this level are dropped by the sink.
    level: Literal["debug", "info", "warning", "error"] = "info"

    @model_validator(mode="after")
    def _jsonl_needs_path(self) -> LoggingConfig:
        if self.sink == "jsonl" and not self.path:
            raise ValueError("logging.path is required when logging.sink is 'jsonl'")
        return self


class RunConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    # Modules imported while the registry is bound; their decorators declare steps and hooks.
    step_modules: list[str] = Field(default_factory=list)
    # Tag expression selecting which pickles run.
    tags: str | None = None
    dry_run: bool = False
    source_positions: bool = True
    ids: Literal["uuid", "incrementing"] = "uuid"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("step_modules")
    @classmethod
    def _non_empty_module_names(cls, value: list[str]) -> list[str]:
        if any(not name.strip() for name in value):
            raise ValueError("step_modules entries must be non-empty module names")
        return value

    @field_validator("tags")
    @classmethod
    def _tags_compile(cls, value: str | None) -> str | None:
        # Reject malformed filters at load time rather than at the first pickle.
        try:
            compile_tag_expression(value)
        except TagExpressionError as exc:
            raise ValueError(str(exc)) from exc
        return value
