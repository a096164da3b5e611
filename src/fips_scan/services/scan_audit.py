"""Audit helpers recording one summary event per scan."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Mapping, MutableSequence, Protocol

from .audit_log import JsonlAuditLog

_LOG = logging.getLogger(__name__)
EVENT_NAME = "FIPS_SCAN_FINISHED"

OUTCOME_COMPLETED = "completed"
OUTCOME_CANCELLED = "cancelled"


class ScanAuditSink(Protocol):
    """Protocol describing a scan audit sink."""

    def emit(self, entry: dict[str, object]) -> None:  # pragma: no cover - trivial
        ...


@dataclass
class InMemoryScanAuditSink:
    """Thread-safe list sink used by tests and callers that poll."""

    events: MutableSequence[dict[str, object]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def emit(self, entry: dict[str, object]) -> None:
        with self._lock:
            self.events.append(dict(entry))

    def snapshot(self) -> list[dict[str, object]]:
        with self._lock:
            return list(self.events)

    def clear(self) -> None:
        with self._lock:
            self.events.clear()


class ProductionScanAuditSink:
    """Sink that writes events to the persistent JSONL log."""

    __slots__ = ("_log",)

    def __init__(self, log: JsonlAuditLog | None = None) -> None:
        self._log = log or JsonlAuditLog()

    def emit(self, entry: dict[str, object]) -> None:
        self._log.append(entry)


_IN_MEMORY_SINK = InMemoryScanAuditSink()
_PRODUCTION_SINK: ScanAuditSink | None = None


def set_production_scan_audit_sink(sink: ScanAuditSink | None) -> None:
    """Install a persistent sink such as :class:`ProductionScanAuditSink`.

    Persistent auditing is off until a sink is installed; ``None`` turns it
    off again.
    """

    global _PRODUCTION_SINK
    _PRODUCTION_SINK = sink


def record_scan_event(
    outcome: str,
    candidates: int,
    counts: Mapping[str, int],
) -> None:
    """Record a non-sensitive scan summary; never includes file paths."""

    entry = {
        "event": EVENT_NAME,
        "outcome": outcome,
        "candidates": candidates,
        "counts": dict(counts),
    }
    _IN_MEMORY_SINK.emit(entry)
    if _PRODUCTION_SINK is not None:
        _PRODUCTION_SINK.emit(entry)


def get_scan_events() -> list[dict[str, object]]:
    """Return a snapshot of recorded scan events."""

    return _IN_MEMORY_SINK.snapshot()


def clear_scan_events() -> None:
    """Clear the recorded scan events (testing aid)."""

    _IN_MEMORY_SINK.clear()
