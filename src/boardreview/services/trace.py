"""Structured trace events emitted by the review queue core."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog


class TraceObserver(Protocol):
    """Receives named events with keyword payloads."""

    def emit(self, event: str, **fields: Any) -> None:
        ...


class StructlogObserver:
    """Forwards trace events to a structlog logger at debug level."""

    def __init__(self, name: str = "boardreview.trace") -> None:
        self._logger = structlog.get_logger(name)

    def emit(self, event: str, **fields: Any) -> None:
        self._logger.debug(event, **fields)


class NullObserver:
    def emit(self, event: str, **fields: Any) -> None:
        return None


@dataclass
class RecordingObserver:
    """Keeps every event in memory; handy for tests and diagnostics."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]
