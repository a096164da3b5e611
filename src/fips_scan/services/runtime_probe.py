"""Execute a candidate in strict validated-module mode and read its stderr.

The verdict is a heuristic over the captured standard-error text: the binary
fails only when its output contains one of the configured refusal markers.
A clean exit, an unrelated error exit or a timeout all count as a (tentative)
pass, so the worst case per candidate is bounded by the timeout. Candidates
are executed without any isolation beyond that bound.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Mapping, Pattern, Protocol

from ..domain.models import RuntimeProbeResult
from .errors import ProbeError
from .scan_limits import DEFAULT_PROBE_TIMEOUT_SECONDS

_LOG = logging.getLogger(__name__)

STRICT_MODE_ENV: Mapping[str, str] = {"GOFIPS": "1"}
"""Environment injected so the crypto backend enforces validated-module mode."""

DEFAULT_REFUSAL_MARKERS: tuple[str, ...] = (
    "panic: opensslcrypto: FIPS mode requested",
    "FIPS mode requested",
    "but not available in OpenSSL",
)
"""Substrings printed when the backend refuses to start without a module."""

MAX_DIAGNOSTIC_CHARS = 65_536
"""Upper bound on the stderr text retained per candidate; matching sees it all."""


@dataclass(frozen=True)
class RefusalMarkers:
    """Swappable predicate set recognising a strict-mode refusal."""

    substrings: tuple[str, ...] = DEFAULT_REFUSAL_MARKERS
    patterns: tuple[Pattern[str], ...] = field(default=())

    @classmethod
    def with_patterns(cls, *patterns: str) -> "RefusalMarkers":
        return cls(substrings=(), patterns=tuple(re.compile(p) for p in patterns))

    def first_match(self, text: str) -> str | None:
        """Return the first marker found in ``text`` or ``None``."""

        for marker in self.substrings:
            if marker in text:
                return marker
        for pattern in self.patterns:
            if pattern.search(text):
                return pattern.pattern
        return None


DEFAULT_REFUSAL_MARKER_SET = RefusalMarkers()


class Probe(Protocol):
    """Contract shared by the real probe and test doubles."""

    def run(self, path: str) -> RuntimeProbeResult: ...


def _decode(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    return raw.decode("utf-8", errors="replace")


class RuntimeProbe:
    """Run a binary with strict-mode env under a hard deadline."""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        markers: RefusalMarkers = DEFAULT_REFUSAL_MARKER_SET,
        extra_env: Mapping[str, str] = STRICT_MODE_ENV,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.markers = markers
        self.extra_env = dict(extra_env)

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.extra_env)
        return env

    def run(self, path: str) -> RuntimeProbeResult:
        timed_out = False
        returncode: int | None = None
        try:
            completed = subprocess.run(
                [path],
                env=self._environment(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                timeout=self.timeout_seconds,
                check=False,
            )
            stderr = _decode(completed.stderr)
            returncode = completed.returncode
        except subprocess.TimeoutExpired as exc:
            timed_out = True
            stderr = _decode(exc.stderr)
        except OSError as exc:
            raise ProbeError(f"Unable to start binary: {exc.strerror or exc}") from exc

        marker = self.markers.first_match(stderr)
        if marker is not None:
            _LOG.debug("Probe of %s refused strict mode (%s)", path, marker)
            return RuntimeProbeResult(
                passed=False,
                diagnostic=stderr[:MAX_DIAGNOSTIC_CHARS],
                timed_out=timed_out,
                returncode=returncode,
                matched_marker=marker,
            )

        _LOG.debug(
            "Probe of %s passed (timed_out=%s, returncode=%s)",
            path,
            timed_out,
            returncode,
        )
        return RuntimeProbeResult(
            passed=True,
            diagnostic=stderr[:MAX_DIAGNOSTIC_CHARS],
            timed_out=timed_out,
            returncode=returncode,
        )
