from __future__ import annotations

from pathlib import Path

import pytest

from step_kernel.config.loader import ConfigError, load_run_config, load_yaml_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "run.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_full_config_is_parsed(tmp_path: Path) -> None:
    # All documented keys map onto RunConfig.
    path = _write(
        tmp_path,
        """
step_modules:
  - features.steps.login
  - features.steps.cart
tags: "@smoke and not @wip"
dry_run: true
source_positions: false
ids: incrementing
logging:
  sink: jsonl
  path: out/run.jsonl
""",
    )
    config = load_run_config(path)
    assert config.step_modules == ["features.steps.login", "features.steps.cart"]
    assert config.tags == "@smoke and not @wip"
    assert config.dry_run is True
    assert config.source_positions is False
    assert config.ids == "incrementing"
    assert config.logging.sink == "jsonl"
    assert config.logging.path == "out/run.jsonl"


def test_empty_file_gives_defaults(tmp_path: Path) -> None:
    # An empty document is an empty mapping.
    config = load_run_config(_write(tmp_path, ""))
    assert config.step_modules == []
    assert config.tags is None
    assert config.ids == "uuid"
    assert config.logging.sink == "none"


def test_non_mapping_root_is_rejected(tmp_path: Path) -> None:
    # The YAML root must be a mapping.
    with pytest.raises(ConfigError):
        load_yaml_config(_write(tmp_path, "- a\n- b\n"))


@pytest.mark.parametrize(
    "text",
    [
        "unknown_key: 1\n",
        "tags: '@a and'\n",
        "step_modules: ['  ']\n",
        "ids: sequential\n",
        "logging:\n  sink: jsonl\n",
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, text: str) -> None:
    # Unknown keys, malformed tag filters and incomplete sinks fail fast.
    with pytest.raises(ConfigError):
        load_run_config(_write(tmp_path, text))


def test_logging_level_defaults_to_info(tmp_path: Path) -> None:
    # The sink level is configurable and defaults to info.
    assert load_run_config(_write(tmp_path, "")).logging.level == "info"
    config = load_run_config(_write(tmp_path, "logging:\n  sink: stdout\n  level: warning\n"))
    assert config.logging.level == "warning"
    with pytest.raises(ConfigError):
        load_run_config(_write(tmp_path, "logging:\n  level: chatty\n"))
