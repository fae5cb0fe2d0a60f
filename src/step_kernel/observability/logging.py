from __future__ import annotations

import dataclasses
import json
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import IO, Protocol, runtime_checkable

LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True, slots=True)
class LogMessage:
    # Structured log payload emitted by the run driver.
    level: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    fields: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.level or not self.message:
            raise ValueError("LogMessage requires non-empty level/message")
        if self.level not in LEVELS:
            raise ValueError(f"LogMessage.level must be one of: {list(LEVELS)}")


@runtime_checkable
class LogSink(Protocol):
    def emit(self, message: LogMessage) -> None:
        """Consume one LogMessage."""
        raise NotImplementedError("LogSink is a port; use a concrete sink.")


class _JsonLineSink:
    # One JSON object per message; messages below min_level are dropped.
    def __init__(self, min_level: str = "debug") -> None:
        if min_level not in LEVELS:
            raise ValueError(f"min_level must be one of: {list(LEVELS)}")
        self._threshold = LEVELS.index(min_level)

    def emit(self, message: LogMessage) -> None:
        if LEVELS.index(message.level) < self._threshold:
            return
        self._write(json.dumps(message_to_dict(message), separators=(",", ":"), ensure_ascii=False))

    def _write(self, line: str) -> None:
        raise NotImplementedError


class StdoutLogSink(_JsonLineSink):
    # Writes to the given stream, or to whatever sys.stdout is at emit time.
    def __init__(self, min_level: str = "debug", stream: IO[str] | None = None) -> None:
        super().__init__(min_level)
        self._stream = stream

    def _write(self, line: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(line + "\n")


class JsonlLogSink(_JsonLineSink):
    # Appends run logs to a file; usable as a context manager.
    def __init__(self, path: Path, min_level: str = "debug") -> None:
        super().__init__(min_level)
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    def _write(self, line: str) -> None:
        self._file.write(line + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> JsonlLogSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def message_to_dict(message: LogMessage) -> dict[str, object]:
    return {
        "level": message.level,
        "message": message.message,
        "timestamp": _timestamp(message.timestamp),
        "fields": {key: render_value(value) for key, value in message.fields.items()},
    }


def render_value(value: object) -> object:
    # Execution records, error info and timestamps become plain JSON values.
    # Stack traces stay on the records; log lines carry type and message only.
    if isinstance(value, datetime):
        return _timestamp(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: render_value(getattr(value, item.name))
            for item in dataclasses.fields(value)
            if item.name != "stack"
        }
    if isinstance(value, dict):
        return {str(key): render_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [render_value(item) for item in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _timestamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")
