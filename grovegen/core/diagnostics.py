from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Protocol

LOG_LEVEL_ENV_VAR = "LOG_LEVEL"

GRAMMAR_CLAMPED = "grammar_clamped"
INSTANCE_TRUNCATED = "instance_truncated"
INSTANCE_SKIPPED = "instance_skipped"
CHUNK_TRUNCATED = "chunk_truncated"


def _configure_logger(logger: logging.Logger, log_level: str) -> None:
    level = getattr(logging, log_level, logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        # Logger already configured elsewhere; respect existing handlers.
        return

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.setLevel(level)
    logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a logger with a stream handler at ``$LOG_LEVEL`` (default INFO)."""

    log_level = os.getenv(LOG_LEVEL_ENV_VAR, "INFO").upper()
    logger = logging.getLogger(name)
    _configure_logger(logger, log_level)
    return logger


logger = get_logger("grovegen.diagnostics")


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    reason: str
    chunk_id: tuple[int, int] | None = None
    instance_id: int | None = None
    requested: int | None = None
    allowed: int | None = None

    def message(self) -> str:
        parts = [self.kind]
        if self.chunk_id is not None:
            parts.append(f"chunk={self.chunk_id[0]},{self.chunk_id[1]}")
        if self.instance_id is not None:
            parts.append(f"instance={self.instance_id}")
        if self.requested is not None:
            parts.append(f"requested={self.requested}")
        if self.allowed is not None:
            parts.append(f"allowed={self.allowed}")
        parts.append(self.reason)
        return " ".join(parts)


class DiagnosticsSink(Protocol):
    def emit(self, diagnostic: Diagnostic) -> None: ...


class LoggingSink:
    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def emit(self, diagnostic: Diagnostic) -> None:
        self._log.warning(
            diagnostic.message(),
            extra={
                "diagnostic_kind": diagnostic.kind,
                "chunk_id": diagnostic.chunk_id,
                "instance_id": diagnostic.instance_id,
                "requested": diagnostic.requested,
                "allowed": diagnostic.allowed,
            },
        )


class CollectingSink:
    """Keeps every diagnostic; safe to share between worker threads."""

    def __init__(self, forward: DiagnosticsSink | None = None):
        self._lock = threading.Lock()
        self._items: list[Diagnostic] = []
        self._forward = forward

    def emit(self, diagnostic: Diagnostic) -> None:
        with self._lock:
            self._items.append(diagnostic)
        if self._forward is not None:
            self._forward.emit(diagnostic)

    @property
    def items(self) -> list[Diagnostic]:
        with self._lock:
            return list(self._items)

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self.items if d.kind == kind]


DEFAULT_SINK: DiagnosticsSink = LoggingSink()
