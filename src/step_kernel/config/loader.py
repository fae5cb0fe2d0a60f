from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from step_kernel.config.models import RunConfig


class ConfigError(ValueError):
    # Raised for invalid run config (fail fast).
    pass


def load_yaml_config(path: Path) -> dict[str, object]:
    # Returns the raw mapping; validation happens in load_run_config.
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def load_run_config(path: Path) -> RunConfig:
    raw = load_yaml_config(path)
    try:
        return RunConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid run config {path}: {exc}") from exc
