"""Providers for the host's cryptographic capability.

Detection itself lives outside the scanner; a provider is called exactly once
per scan and its answer is shared read-only by every candidate.
"""

from __future__ import annotations

import logging
import ssl
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..domain.models import HostCapability

_LOG = logging.getLogger(__name__)

KERNEL_FIPS_FLAG = Path("/proc/sys/crypto/fips_enabled")


class HostCapabilityProvider(Protocol):
    """Anything able to describe the host crypto library."""

    def detect(self) -> HostCapability: ...


@dataclass(frozen=True)
class StaticHostCapabilityProvider:
    """Provider returning a fixed, caller-supplied answer."""

    capability: HostCapability

    def detect(self) -> HostCapability:
        return self.capability


class SystemHostCapabilityProvider:
    """Best-effort provider built from the kernel FIPS flag.

    This approximates the host capability rather than measuring it. The
    kernel flag at ``/proc/sys/crypto/fips_enabled`` says the system runs in
    FIPS mode; it does not prove that the libcrypto candidates load ships a
    usable FIPS provider. ``library_version`` is ``ssl.OPENSSL_VERSION``, the
    OpenSSL this interpreter links, which can differ from the system
    ``libcrypto.so`` a Go binary opens at runtime. Callers with a precise
    answer should pass a :class:`StaticHostCapabilityProvider` instead.
    """

    __slots__ = ("_flag_path",)

    def __init__(self, flag_path: Path = KERNEL_FIPS_FLAG) -> None:
        self._flag_path = flag_path

    def detect(self) -> HostCapability:
        try:
            raw = self._flag_path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            _LOG.info("Kernel FIPS flag unavailable at %s: %s", self._flag_path, exc)
            raw = ""
        return HostCapability(
            fips_capable=raw == "1",
            library_version=ssl.OPENSSL_VERSION,
        )


class CachedHostCapabilityProvider:
    """Wrap a provider so its answer is computed once and then reused.

    Pass the same instance to ``scan()`` and later to
    ``build_scan_payload(reports, provider.detect())`` to export the host
    facts the scan evaluated against without detecting twice.
    """

    def __init__(self, inner: HostCapabilityProvider) -> None:
        self._inner = inner
        self._capability: HostCapability | None = None
        self._lock = threading.Lock()

    def detect(self) -> HostCapability:
        with self._lock:
            if self._capability is None:
                self._capability = self._inner.detect()
            return self._capability
