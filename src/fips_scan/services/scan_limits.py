"""Configurable limits for binary compliance scans."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_MAX_PARALLEL = 10
"""Default number of candidates checked at the same time."""

MAX_PARALLEL_CEILING = 256
"""Upper bound applied to any configured parallelism."""

DEFAULT_PROBE_TIMEOUT_SECONDS = 2.0
"""Wall-clock budget for each runtime probe."""

DEFAULT_EXCLUDED_PREFIXES: tuple[str, ...] = ("/proc/", "/sys/", "/dev/")
"""Virtual filesystems whose entries link into live processes or devices."""

MAX_PARALLEL_ENV = "FIPSCHECK_MAX_PARALLEL"
PROBE_TIMEOUT_ENV = "FIPSCHECK_PROBE_TIMEOUT_SECONDS"
EXCLUDED_PREFIXES_ENV = "FIPSCHECK_EXCLUDED_PREFIXES"


def _env_int(
    name: str,
    default: int,
    *,
    min_value: int = 0,
    max_value: int | None = None,
) -> int:
    """Return a bounded integer limit sourced from the environment."""

    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    if parsed < min_value:
        return default
    if max_value is not None and parsed > max_value:
        return max_value
    return parsed


def _env_seconds(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        parsed = float(raw)
    except ValueError:
        return default
    if parsed != parsed or parsed <= 0:
        return default
    return parsed


def _env_prefixes(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return tuple(part.strip() for part in raw.split(":") if part.strip())


@dataclass(frozen=True)
class ScanLimitConfig:
    """Container describing every configurable scan limit."""

    max_parallel: int
    probe_timeout_seconds: float
    excluded_prefixes: tuple[str, ...]

    @classmethod
    def from_env(cls) -> "ScanLimitConfig":
        """Return a limit set using the configured environment variables."""

        return cls(
            max_parallel=_env_int(
                MAX_PARALLEL_ENV,
                DEFAULT_MAX_PARALLEL,
                min_value=1,
                max_value=MAX_PARALLEL_CEILING,
            ),
            probe_timeout_seconds=_env_seconds(
                PROBE_TIMEOUT_ENV, DEFAULT_PROBE_TIMEOUT_SECONDS
            ),
            excluded_prefixes=_env_prefixes(
                EXCLUDED_PREFIXES_ENV, DEFAULT_EXCLUDED_PREFIXES
            ),
        )


DEFAULT_SCAN_LIMITS = ScanLimitConfig(
    DEFAULT_MAX_PARALLEL,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_EXCLUDED_PREFIXES,
)
