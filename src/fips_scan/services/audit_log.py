"""JSONL sink for scan lifecycle events with size-based rotation."""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

_LOG = logging.getLogger(__name__)

AUDIT_DIR_ENV = "FIPSCHECK_AUDIT_DIR"
AUDIT_MAX_BYTES_ENV = "FIPSCHECK_AUDIT_MAX_BYTES"
AUDIT_FILE_NAME = "scan_audit.jsonl"
DEFAULT_MAX_AUDIT_BYTES = 1_000_000
"""Rotate once the live file reaches this size; non-positive disables rotation."""

_WRITE_LOCK = threading.Lock()


def _default_state_dir() -> Path:
    base = os.getenv("XDG_STATE_HOME") or str(Path.home() / ".local" / "state")
    return Path(base) / "fips-scan"


def _parse_max_bytes(raw: str | None) -> int | None:
    if not raw or not raw.strip():
        return DEFAULT_MAX_AUDIT_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_MAX_AUDIT_BYTES
    return parsed if parsed > 0 else None


@dataclass(frozen=True)
class AuditConfig:
    """Where scan events go and when the file rotates."""

    audit_file: Path
    max_bytes: int | None

    @classmethod
    def from_env(cls) -> "AuditConfig":
        raw_dir = os.getenv(AUDIT_DIR_ENV)
        base_dir = Path(raw_dir) if raw_dir else _default_state_dir()
        return cls(
            audit_file=base_dir / AUDIT_FILE_NAME,
            max_bytes=_parse_max_bytes(os.getenv(AUDIT_MAX_BYTES_ENV)),
        )


class WarningLimiter:
    """Allow one warning per failure kind per interval."""

    def __init__(self, interval_seconds: float = 60.0) -> None:
        self.interval_seconds = max(interval_seconds, 0.0)
        self._last: dict[str, float] = {}

    def allow(self, kind: str) -> bool:
        if self.interval_seconds <= 0:
            return True
        now = time.monotonic()
        last = self._last.get(kind)
        if last is not None and now - last < self.interval_seconds:
            return False
        self._last[kind] = now
        return True

    def reset(self) -> None:
        self._last.clear()


class JsonlAuditLog:
    """Append-only event log; I/O failures are logged, never raised."""

    def __init__(
        self,
        config: AuditConfig | None = None,
        limiter: WarningLimiter | None = None,
    ) -> None:
        self._config = config
        self.limiter = limiter or WarningLimiter()

    @property
    def config(self) -> AuditConfig:
        if self._config is None:
            self._config = AuditConfig.from_env()
        return self._config

    def _warn(self, kind: str, message: str, *args: object) -> None:
        if self.limiter.allow(kind):
            _LOG.warning(message, *args)

    def append(self, event: dict[str, object]) -> None:
        config = self.config
        record = dict(event)
        record.setdefault("recorded_at", datetime.now(timezone.utc).isoformat())
        line = json.dumps(record, ensure_ascii=False, sort_keys=True)
        with _WRITE_LOCK:
            try:
                config.audit_file.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                self._warn(
                    "mkdir",
                    "Unable to create audit directory %s: %s",
                    config.audit_file.parent,
                    exc,
                )
                return
            self._rotate_if_needed(config)
            try:
                with config.audit_file.open("a", encoding="utf-8") as fh:
                    fh.write(line + "\n")
            except OSError as exc:
                self._warn(
                    "write",
                    "Unable to write audit event to %s: %s",
                    config.audit_file,
                    exc,
                )

    def _rotate_if_needed(self, config: AuditConfig) -> None:
        path = config.audit_file
        if config.max_bytes is None or not path.exists():
            return
        try:
            if path.stat().st_size < config.max_bytes:
                return
            backup = path.with_name(path.name + ".1")
            path.replace(backup)
        except OSError as exc:
            self._warn("rotate", "Unable to rotate audit log %s: %s", path, exc)
